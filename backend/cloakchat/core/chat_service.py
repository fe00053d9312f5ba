"""
Chat Service - Runs conversation turns on top of the chat store.

Wires the context assembler, model clients, summarizer, reconciler and the
remote chat provider together. Holds no session state of its own; every
change goes through the store.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from ..errors import CloakChatError, GenerationError, RemoteChatError, classify_generation_error
from ..llm.base import LLMProvider
from ..llm.client import ChatCallbacks, ChatRequest, ChatTask, ModelClient
from ..llm.controller import ChatControllerPool
from ..llm.factory import provider_for_model
from ..llm.families import ModelFamily
from ..models.message import ChatMessage, Role, create_message, multimodal_content
from ..models.session import DEFAULT_TOPIC, ChatSession, ChatState, Mask
from ..services.remote_chat import RemoteChatProvider
from .chat_store import ChatStore, DeleteReceipt
from .context_assembler import ContextAssembler
from .logging_config import SessionLoggerAdapter
from .prompts import fill_template_with
from .reconciler import ReconcileResult, organize_chat_messages, reconcile, reorganize_chats
from .summarizer import Summarizer
from .token_estimator import TokenEstimator

logger = logging.getLogger(__name__)

# Model config fields forwarded with a chat request
REQUEST_CONFIG_FIELDS = {"model", "temperature", "top_p", "max_tokens", "presence_penalty", "frequency_penalty"}


def pretty_object(obj: Any) -> str:
    """Render an object as an indented JSON block for display in a message."""
    text = json.dumps(obj, indent=2, ensure_ascii=False, default=str)
    if text == "{}":
        return text
    return f"```json\n{text}\n```"


@dataclass
class ChatTurn:
    """The messages a user input created and the request producing the reply."""
    session_id: str
    user_message: ChatMessage
    bot_message: ChatMessage
    task: ChatTask


class ChatService:
    """Entry point for conversation turns, summarization and sync."""

    def __init__(
        self,
        store: ChatStore,
        estimator: TokenEstimator,
        providers: Dict[ModelFamily, LLMProvider],
        remote: Optional[RemoteChatProvider] = None,
        available_models: Optional[List[str]] = None,
        enable_auto_title: bool = True,
        summarize_model: str = "gpt-3.5-turbo",
        gemini_summarize_model: str = "gemini-pro",
    ):
        self.store = store
        self.estimator = estimator
        self.providers = providers
        self.remote = remote
        self.assembler = ContextAssembler(estimator)
        self.controllers = ChatControllerPool()
        self.summarizer = Summarizer(
            store,
            estimator,
            self.client_for_model,
            available_models=available_models or [],
            enable_auto_title=enable_auto_title,
            summarize_model=summarize_model,
            gemini_summarize_model=gemini_summarize_model,
        )
        self._background: Set[ChatTask] = set()

    @classmethod
    def from_settings(
        cls,
        config,
        store: ChatStore,
        estimator: TokenEstimator,
        providers: Dict[ModelFamily, LLMProvider],
        remote: Optional[RemoteChatProvider] = None,
    ) -> "ChatService":
        return cls(
            store,
            estimator,
            providers,
            remote=remote,
            available_models=config.available_models,
            enable_auto_title=config.enable_auto_generate_title,
            summarize_model=config.summarize_model,
            gemini_summarize_model=config.gemini_summarize_model,
        )

    def client_for_model(self, model: str) -> Optional[ModelClient]:
        provider = provider_for_model(self.providers, model)
        return ModelClient(provider) if provider is not None else None

    def _session_logger(self, session: ChatSession) -> SessionLoggerAdapter:
        return SessionLoggerAdapter(logger, {"session_id": session.id, "chat_id": session.chat_id})

    # ------------------------------------------------------------------ #
    # Turns

    def assemble_context(self, session_id: str) -> List[ChatMessage]:
        return self.assembler.assemble(self.store.get_session(session_id))

    def on_user_input(
        self,
        session_id: str,
        content: str,
        attach_images: Optional[List[str]] = None,
        listener: Optional[ChatCallbacks] = None,
    ) -> ChatTurn:
        """
        Append the user's message and a streaming assistant placeholder, then
        start the model request. Must be called from a running event loop.

        Args:
            session_id: Session to add the turn to
            content: Raw user input, before the input template is applied
            attach_images: Image URLs sent alongside the text
            listener: Optional callbacks notified after each store update.
                Called synchronously; must not block.
        """
        listener = listener or ChatCallbacks()

        def notify(callback, *args):
            if callback is None:
                return
            try:
                callback(*args)
            except Exception:
                logger.exception("Chat listener raised")

        session = self.store.get_session(session_id)
        log = self._session_logger(session)
        model_config = session.mask.model_settings

        client = self.client_for_model(model_config.model)
        if client is None:
            raise GenerationError(f"No model client configured for {model_config.model}")

        user_content = fill_template_with(content, model_config, lang=session.mask.lang)
        log.debug(f"[User Input] after template: {user_content}")

        user_message = create_message(
            role=Role.USER,
            content=multimodal_content(user_content, attach_images),
        )
        bot_message = create_message(
            role=Role.ASSISTANT,
            content="",
            streaming=True,
            model=model_config.model,
        )

        send_messages = [*self.assembler.assemble(session), user_message]
        self.store.append_messages(session_id, [user_message, bot_message])

        bot_id = bot_message.id
        user_id = user_message.id

        def on_update(text: str):
            def apply(m: ChatMessage):
                m.streaming = True
                if text:
                    m.content = text
            self.store.update_message(session_id, bot_id, apply)
            notify(listener.on_update, text)

        async def on_finish(text: str):
            def apply(m: ChatMessage):
                m.streaming = False
                if text:
                    m.content = text
            final = self.store.update_message(session_id, bot_id, apply)
            self.controllers.remove(session_id, bot_id)
            notify(listener.on_finish, text)
            if text and final is not None:
                await self.on_new_message(session_id, final)

        def on_error(error: BaseException):
            is_aborted = classify_generation_error(error) == "aborted"
            error_text = "\n\n" + pretty_object({"error": True, "message": str(error)})

            def apply_bot(m: ChatMessage):
                m.content = (m.content if isinstance(m.content, str) else "") + error_text
                m.streaming = False
                m.is_error = not is_aborted

            def apply_user(m: ChatMessage):
                m.is_error = not is_aborted

            self.store.update_message(session_id, bot_id, apply_bot)
            self.store.update_message(session_id, user_id, apply_user)
            self.controllers.remove(session_id, bot_id)
            notify(listener.on_error, error)
            if is_aborted:
                log.info(f"[Chat] aborted reply {bot_id}")
            else:
                log.error(f"[Chat] failed: {error}")

        def on_controller(task: ChatTask):
            self.controllers.add(session_id, bot_id, task)

        config = model_config.model_dump(include=REQUEST_CONFIG_FIELDS)
        task = client.chat(
            ChatRequest(messages=send_messages, config=config, stream=True),
            ChatCallbacks(
                on_update=on_update,
                on_finish=on_finish,
                on_error=on_error,
                on_controller=on_controller,
            ),
        )
        return ChatTurn(session_id, user_message, bot_message, task)

    async def on_new_message(self, session_id: str, message: ChatMessage) -> None:
        """Book-keeping after a reply completes; may rename and summarize."""
        def touch(s: ChatSession):
            s.last_update = int(time.time() * 1000)

        try:
            session = self.store.update_session(session_id, touch)
        except KeyError:
            return
        self.store.update_stat(session_id, message)

        if self.remote is not None and len(session.messages) > 2 and not session.topic_updated:
            try:
                renamed = await self.remote.autorename(session.chat_id)
            except RemoteChatError as e:
                logger.warning(f"Error while fetching autorename for chat {session.chat_id}: {e}")
            else:
                def apply(s: ChatSession):
                    s.topic = renamed.name or s.topic
                    s.topic_updated = True
                self.store.update_session(session_id, apply)

        self.summarize_session(session_id)

    def summarize_session(self, session_id: str) -> List[ChatTask]:
        """Start title/memory requests in the background."""
        tasks = self.summarizer.summarize_session(session_id)
        for task in tasks:
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return tasks

    async def wait_background(self) -> None:
        """Wait until every background summarization has finished."""
        while self._background:
            task = self._background.pop()
            await task.wait()

    def stop(self, session_id: str, message_id: str) -> bool:
        return self.controllers.stop(session_id, message_id)

    def stop_all(self) -> None:
        self.controllers.stop_all()

    # ------------------------------------------------------------------ #
    # Sessions backed by the remote service

    async def new_session(self, mask: Optional[Mask] = None) -> ChatSession:
        return self.store.new_session(mask=mask)

    async def delete_session(self, index: int) -> DeleteReceipt:
        """
        Delete remotely first; the local session is removed only on success.

        Raises:
            IndexError: index is out of range
            KeyError: the session disappeared while the remote delete ran
        """
        sessions = self.store.sessions
        if not 0 <= index < len(sessions):
            raise IndexError(f"Session index out of range: {index}")
        session = sessions[index]
        if self.remote is not None and session.chat_id:
            await self.remote.delete(session.chat_id)
        return self.store.delete_session(self.store.session_index(session.id))

    async def clear_all_data(self) -> None:
        """Delete every chat remotely, then reset local sessions."""
        sessions = list(self.store.sessions)
        if self.remote is not None:
            await asyncio.gather(*(
                self.remote.delete(s.chat_id) for s in sessions if s.chat_id
            ))
        self.stop_all()
        self.store.clear_sessions()
        logger.info(f"Cleared {len(sessions)} sessions")

    async def sync(self) -> ReconcileResult:
        """
        Pull the remote history and reconcile it into local sessions.

        Any fetch failure propagates and leaves local state untouched.
        """
        if self.remote is None:
            raise CloakChatError("No remote chat provider configured")

        snapshot = await self.remote.fetch_all()
        remote_messages = organize_chat_messages(snapshot.messages)
        chats = reorganize_chats(snapshot.chats)

        # titles for chats we are about to adopt, fetched before committing
        local_ids = {s.chat_id for s in self.store.sessions}
        topics: Dict[str, str] = {}
        for chat_id, messages in remote_messages.items():
            if chat_id in local_ids or len(messages) <= 2:
                continue
            meta = chats.get(chat_id)
            name = meta.name if meta else ""
            if name and name != DEFAULT_TOPIC:
                topics[chat_id] = name
                continue
            try:
                renamed = await self.remote.autorename(chat_id)
                topics[chat_id] = renamed.name
            except RemoteChatError as e:
                logger.warning(f"Error while fetching autorename for chat {chat_id}: {e}")
                topics[chat_id] = name or DEFAULT_TOPIC

        outcome: List[ReconcileResult] = []

        def factory(chat_id: str, messages: List[ChatMessage], topic: Optional[str]) -> ChatSession:
            session = self.store.build_session(
                chat_id=chat_id, messages=messages, topic=topics.get(chat_id, topic)
            )
            if session.topic != DEFAULT_TOPIC:
                session.topic_updated = True
            return session

        def apply(state: ChatState):
            current_id = state.sessions[state.current_session_index].id
            result = reconcile(chats, remote_messages, state.sessions, factory)
            outcome.append(result)
            state.sessions = result.sessions
            state.chats = chats
            state.current_session_index = next(
                (i for i, s in enumerate(state.sessions) if s.id == current_id), 0
            )

        self.store.update(apply)
        result = outcome[0]
        logger.info(
            "Sync completed",
            extra={"extra_fields": {
                "created": len(result.created_chat_ids),
                "updated": len(result.updated_chat_ids),
                "dropped": len(result.dropped_chat_ids),
                "kept_previous": result.kept_previous,
            }}
        )
        return result

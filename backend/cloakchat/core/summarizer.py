"""
Summarizer - Topic titles and long-term memory compression.

Both triggers run after a turn completes and never block it: requests are
started as background tasks and failures are only logged. Session state is
written only from completion callbacks, so a failed summary leaves the
session exactly as it was.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..llm.client import ChatCallbacks, ChatRequest, ChatTask, ModelClient
from ..llm.families import get_summarize_model
from ..models.message import ChatMessage, Role, create_message
from ..models.session import DEFAULT_TOPIC, ChatSession
from .chat_store import ChatStore
from .context_assembler import get_memory_prompt
from .prompts import SUMMARIZE_PROMPT, TOPIC_PROMPT, trim_topic
from .token_estimator import TokenEstimator, count_messages

logger = logging.getLogger(__name__)

# should summarize topic after chatting more than this many tokens
SUMMARIZE_MIN_LEN = 50

ClientResolver = Callable[[str], Optional[ModelClient]]


class Summarizer:
    """Decides when to title or compress a session and applies the results."""

    def __init__(
        self,
        store: ChatStore,
        estimator: TokenEstimator,
        client_for_model: ClientResolver,
        available_models: Iterable[str] = (),
        enable_auto_title: bool = True,
        summarize_model: str = "gpt-3.5-turbo",
        gemini_summarize_model: str = "gemini-pro",
    ):
        self.store = store
        self.estimator = estimator
        self.client_for_model = client_for_model
        self.available_models = list(available_models)
        self.enable_auto_title = enable_auto_title
        self.summarize_model = summarize_model
        self.gemini_summarize_model = gemini_summarize_model
        # partial memory text of in-flight compressions, never committed on its own
        self.pending_memory: Dict[str, str] = {}
        self._titling: Set[str] = set()
        self._compressing: Set[str] = set()

    def summarize_model_for(self, model: str) -> str:
        return get_summarize_model(
            model,
            self.available_models,
            summarize_model=self.summarize_model,
            gemini_summarize_model=self.gemini_summarize_model,
        )

    # ------------------------------------------------------------------ #
    # Topic title

    def should_generate_title(self, session: ChatSession) -> bool:
        return (
            self.enable_auto_title
            and not session.topic_updated
            and session.topic == DEFAULT_TOPIC
            and session.id not in self._titling
            and count_messages(session.messages, self.estimator) >= SUMMARIZE_MIN_LEN
        )

    def start_title_generation(self, session_id: str) -> Optional[ChatTask]:
        session = self.store.get_session(session_id)
        if not self.should_generate_title(session):
            return None

        model = self.summarize_model_for(session.mask.model_settings.model)
        client = self.client_for_model(model)
        if client is None:
            logger.debug(f"No model client for {model}; skipping title for session {session_id}")
            return None

        topic_messages = [
            *session.messages,
            create_message(role=Role.USER, content=TOPIC_PROMPT),
        ]
        self._titling.add(session_id)

        def on_finish(message: str):
            self._titling.discard(session_id)
            topic = trim_topic(message) if message else ""

            def apply(s: ChatSession):
                if topic:
                    s.topic = topic
                    s.topic_updated = True
                else:
                    s.topic = DEFAULT_TOPIC
            self.store.update_session(session_id, apply)
            logger.info(f"Session {session_id} titled: {topic or DEFAULT_TOPIC}")

        def on_error(error: BaseException):
            self._titling.discard(session_id)
            logger.error(
                f"Title generation failed for session {session_id}: {error}",
                extra={"extra_fields": {"session_id": session_id, "model": model}}
            )

        return client.chat(
            ChatRequest(messages=topic_messages, config={"model": model}, stream=False),
            ChatCallbacks(on_finish=on_finish, on_error=on_error),
        )

    # ------------------------------------------------------------------ #
    # Long-term memory

    def messages_to_summarize(self, session: ChatSession) -> tuple:
        """
        Collect what a compression would send.

        Returns:
            (messages including the prior memory prompt, token count of the
            new history before truncation)
        """
        model_config = session.mask.model_settings
        summarize_index = max(session.last_summarize_index, session.clear_context_index or 0)
        to_summarize: List[ChatMessage] = [
            m for m in session.messages[summarize_index:] if not m.is_error
        ]

        history_length = count_messages(to_summarize, self.estimator)
        if history_length > model_config.max_tokens:
            n = len(to_summarize)
            to_summarize = to_summarize[max(0, n - model_config.history_message_count):]

        memory_prompt = get_memory_prompt(session)
        if memory_prompt is not None:
            to_summarize.insert(0, memory_prompt)

        return to_summarize, history_length

    def start_memory_compression(self, session_id: str) -> Optional[ChatTask]:
        session = self.store.get_session(session_id)
        model_config = session.mask.model_settings
        if session_id in self._compressing:
            return None

        to_summarize, history_length = self.messages_to_summarize(session)
        if not (history_length > model_config.compress_message_length_threshold
                and model_config.send_memory):
            return None

        model = self.summarize_model_for(model_config.model)
        client = self.client_for_model(model)
        if client is None:
            logger.debug(f"No model client for {model}; skipping memory for session {session_id}")
            return None

        # messages included in this summary end here
        last_summarize_index = len(session.messages)

        # max_tokens conflicts with the summarization call
        config = model_config.model_dump(
            include={"temperature", "top_p", "presence_penalty", "frequency_penalty"}
        )
        config["model"] = model

        logger.info(
            f"Compressing memory for session {session_id}",
            extra={"extra_fields": {
                "session_id": session_id,
                "messages": len(to_summarize),
                "history_tokens": history_length,
                "threshold": model_config.compress_message_length_threshold,
            }}
        )
        self._compressing.add(session_id)

        def on_update(message: str):
            self.pending_memory[session_id] = message

        def on_finish(message: str):
            self._compressing.discard(session_id)
            self.pending_memory.pop(session_id, None)

            def apply(s: ChatSession):
                if len(s.messages) < last_summarize_index:
                    logger.warning(f"Session {session_id} shrank during summarization; discarding memory")
                    return
                s.last_summarize_index = last_summarize_index
                s.memory_prompt = message
            self.store.update_session(session_id, apply)
            logger.info(f"Memory updated for session {session_id}: {len(message)} chars")

        def on_error(error: BaseException):
            self._compressing.discard(session_id)
            self.pending_memory.pop(session_id, None)
            logger.error(
                f"Memory compression failed for session {session_id}: {error}",
                extra={"extra_fields": {"session_id": session_id, "model": model}}
            )

        return client.chat(
            ChatRequest(
                messages=[*to_summarize, create_message(role=Role.SYSTEM, content=SUMMARIZE_PROMPT, date=None)],
                config=config,
                stream=True,
            ),
            ChatCallbacks(on_update=on_update, on_finish=on_finish, on_error=on_error),
        )

    def summarize_session(self, session_id: str) -> List[ChatTask]:
        """Run both triggers for a session; returns whatever requests started."""
        tasks: List[ChatTask] = []
        for trigger in (self.start_title_generation, self.start_memory_compression):
            try:
                task = trigger(session_id)
            except KeyError:
                logger.debug(f"Session {session_id} no longer exists; skipping summarization")
                return tasks
            if task is not None:
                tasks.append(task)
        return tasks

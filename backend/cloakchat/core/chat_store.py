"""
Chat Store - The application state object for sessions.

Every mutation goes through `ChatStore.update`: take the lock, copy the
committed state, apply the updater to the copy, commit the copy. Readers
get committed snapshots that later updates never touch.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..errors import UndoExpiredError
from ..models.message import ChatMessage, get_message_text_content
from ..models.remote import RemoteChatMeta
from ..models.session import ChatSession, ChatState, Mask, ModelConfig, create_empty_session

logger = logging.getLogger(__name__)

StateUpdater = Callable[[ChatState], Optional[ChatState]]


@dataclass
class DeleteReceipt:
    """Lets a caller restore the state from just before a session delete."""
    token: str
    deleted_session_id: str
    restore_state: ChatState
    expires_at: float


def _normalize(state: ChatState) -> ChatState:
    if not state.sessions:
        state.sessions = [create_empty_session()]
        state.current_session_index = 0
    if not 0 <= state.current_session_index < len(state.sessions):
        state.current_session_index = min(len(state.sessions) - 1, max(0, state.current_session_index))
    return state


class ChatStore:
    """
    Owns the session list, the current selection and remote chat metadata.
    """

    def __init__(
        self,
        state: Optional[ChatState] = None,
        default_model_config: Optional[ModelConfig] = None,
        undo_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._lock = threading.RLock()
        self._state = _normalize(state or ChatState())
        self.default_model_config = default_model_config or ModelConfig()
        self.undo_seconds = undo_seconds
        self._clock = clock
        self._receipts: Dict[str, DeleteReceipt] = {}

    # ------------------------------------------------------------------ #
    # Core read / update

    @property
    def state(self) -> ChatState:
        """The committed state. Treat as read-only; mutate through update()."""
        return self._state

    @property
    def sessions(self) -> List[ChatSession]:
        return self._state.sessions

    def update(self, updater: StateUpdater) -> ChatState:
        """
        Read the latest state, apply `updater` to a copy, commit the copy.

        The updater may mutate the copy in place or return a replacement.
        """
        with self._lock:
            draft = self._state.model_copy(deep=True)
            replaced = updater(draft)
            committed = _normalize(replaced if replaced is not None else draft)
            self._state = committed
            return committed

    def replace(self, state: ChatState) -> ChatState:
        """Swap in a whole new state (e.g. after loading from storage)."""
        return self.update(lambda _: state.model_copy(deep=True))

    # ------------------------------------------------------------------ #
    # Lookup

    def session_index(self, session_id: str) -> int:
        for i, session in enumerate(self._state.sessions):
            if session.id == session_id:
                return i
        raise KeyError(f"Unknown session: {session_id}")

    def get_session(self, session_id: str) -> ChatSession:
        return self._state.sessions[self.session_index(session_id)]

    def current_session(self) -> ChatSession:
        with self._lock:
            index = self._state.current_session_index
            sessions = self._state.sessions
            if index < 0 or index >= len(sessions):
                index = min(len(sessions) - 1, max(0, index))
                self.update(lambda s: setattr(s, "current_session_index", index))
            return self._state.sessions[index]

    # ------------------------------------------------------------------ #
    # Session list operations

    def select_session(self, index: int) -> None:
        def apply(state: ChatState):
            if not 0 <= index < len(state.sessions):
                raise IndexError(f"Session index out of range: {index}")
            state.current_session_index = index
        self.update(apply)

    def next_session(self, delta: int) -> None:
        def apply(state: ChatState):
            n = len(state.sessions)
            state.current_session_index = (state.current_session_index + delta) % n
        self.update(apply)

    def move_session(self, from_index: int, to_index: int) -> None:
        """Reorder sessions while keeping the same session selected."""
        def apply(state: ChatState):
            sessions = state.sessions
            if not (0 <= from_index < len(sessions) and 0 <= to_index < len(sessions)):
                raise IndexError("Session index out of range")
            old_index = state.current_session_index
            session = sessions.pop(from_index)
            sessions.insert(to_index, session)

            new_index = to_index if old_index == from_index else old_index
            if from_index < old_index <= to_index:
                new_index -= 1
            elif to_index <= old_index < from_index:
                new_index += 1
            state.current_session_index = new_index
        self.update(apply)

    def build_session(
        self,
        mask: Optional[Mask] = None,
        chat_id: Optional[str] = None,
        messages: Optional[List[ChatMessage]] = None,
        topic: Optional[str] = None,
    ) -> ChatSession:
        """
        Create (but do not add) a session.

        A remote chat is only adopted when it carries more than two messages.
        """
        session = create_empty_session()
        if chat_id and messages and len(messages) > 2:
            session.messages = list(messages)
            session.chat_id = chat_id
            if topic:
                session.topic = topic
        if mask is not None:
            merged = self.default_model_config.model_copy(
                update=mask.model_settings.model_dump(exclude_unset=True)
            )
            session.mask = mask.model_copy(update={"model_settings": merged}, deep=True)
        else:
            session.mask.model_settings = self.default_model_config.model_copy()
        return session

    def new_session(
        self,
        mask: Optional[Mask] = None,
        chat_id: Optional[str] = None,
        messages: Optional[List[ChatMessage]] = None,
        topic: Optional[str] = None,
    ) -> ChatSession:
        """Prepend a new session and make it current."""
        session = self.build_session(mask, chat_id, messages, topic)

        def apply(state: ChatState):
            state.sessions.insert(0, session)
            state.current_session_index = 0
        self.update(apply)
        return self.get_session(session.id)

    def delete_session(self, index: int) -> DeleteReceipt:
        """
        Remove a session; deleting the last one leaves a fresh empty session.

        Returns a receipt that `undo_delete` accepts until it expires.
        """
        with self._lock:
            before = self._state
            if not 0 <= index < len(before.sessions):
                raise IndexError(f"Session index out of range: {index}")
            deleted = before.sessions[index]

            def apply(state: ChatState):
                deleting_last = len(state.sessions) == 1
                state.sessions.pop(index)
                current = state.current_session_index
                next_index = min(current - int(index < current), len(state.sessions) - 1)
                if deleting_last:
                    next_index = 0
                    state.sessions.append(create_empty_session())
                state.current_session_index = max(0, next_index)

            self.update(apply)
            receipt = DeleteReceipt(
                token=uuid.uuid4().hex,
                deleted_session_id=deleted.id,
                restore_state=before,
                expires_at=self._clock() + self.undo_seconds,
            )
            self._receipts[receipt.token] = receipt
            logger.info(f"Deleted session {deleted.id} (chat {deleted.chat_id})")
            return receipt

    def undo_delete(self, token: str) -> None:
        """Restore the state captured by a delete receipt."""
        with self._lock:
            receipt = self._receipts.pop(token, None)
            if receipt is None:
                raise KeyError(f"Unknown undo token: {token}")
            if self._clock() > receipt.expires_at:
                raise UndoExpiredError(f"Undo window for session {receipt.deleted_session_id} has closed")
            restore = receipt.restore_state

            def apply(state: ChatState):
                state.sessions = restore.model_copy(deep=True).sessions
                state.current_session_index = restore.current_session_index
            self.update(apply)

    def clear_sessions(self) -> None:
        def apply(state: ChatState):
            state.sessions = [create_empty_session()]
            state.current_session_index = 0
        self.update(apply)

    def set_chats(self, chats: Dict[str, RemoteChatMeta]) -> None:
        self.update(lambda state: setattr(state, "chats", dict(chats)))

    # ------------------------------------------------------------------ #
    # Per-session operations

    def update_session(self, session_id: str, fn: Callable[[ChatSession], None]) -> ChatSession:
        def apply(state: ChatState):
            for session in state.sessions:
                if session.id == session_id:
                    fn(session)
                    return
            raise KeyError(f"Unknown session: {session_id}")
        self.update(apply)
        return self.get_session(session_id)

    def update_message(
        self,
        session_id: str,
        message_id: str,
        fn: Callable[[ChatMessage], None],
    ) -> Optional[ChatMessage]:
        """Apply `fn` to one message; a message no longer present is skipped."""
        found: List[ChatMessage] = []

        def apply(session: ChatSession):
            for message in session.messages:
                if message.id == message_id:
                    fn(message)
                    found.append(message)
                    return

        try:
            self.update_session(session_id, apply)
        except KeyError:
            logger.debug(f"Session {session_id} gone before message {message_id} could be updated")
            return None
        return found[0] if found else None

    def append_messages(self, session_id: str, messages: List[ChatMessage]) -> ChatSession:
        def apply(session: ChatSession):
            session.messages.extend(m.model_copy(deep=True) for m in messages)
            session.last_update = int(time.time() * 1000)
        return self.update_session(session_id, apply)

    def reset_session(self, session_id: str) -> ChatSession:
        """Forget all messages and long-term memory of a session."""
        def apply(session: ChatSession):
            session.messages = []
            session.memory_prompt = ""
            session.last_summarize_index = 0
            session.clear_context_index = None
        return self.update_session(session_id, apply)

    def clear_context(self, session_id: str) -> ChatSession:
        """
        Mark everything so far as out of context.

        Calling it again with no new messages removes the boundary.
        """
        def apply(session: ChatSession):
            total = len(session.messages)
            if session.clear_context_index == total:
                session.clear_context_index = None
            else:
                session.clear_context_index = total
        return self.update_session(session_id, apply)

    def update_stat(self, session_id: str, message: ChatMessage) -> None:
        length = len(get_message_text_content(message))

        def apply(session: ChatSession):
            session.stat.char_count += length
        self.update_session(session_id, apply)

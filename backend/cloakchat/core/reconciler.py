"""
Session Reconciler - Merges the remote chat history into local sessions.

The remote service is authoritative per chat: a local session whose chat
exists remotely has its messages replaced wholesale.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from ..models.message import ChatMessage, Role
from ..models.remote import RemoteChatMeta, RemoteChatRecord, RemoteMessageRecord
from ..models.session import ChatSession, ChatState

logger = logging.getLogger(__name__)

# Builds a new local session for a remote chat: (chat_id, messages, topic) -> session
SessionFactory = Callable[[str, List[ChatMessage], Optional[str]], ChatSession]


@dataclass
class ReconcileResult:
    sessions: List[ChatSession]
    created_chat_ids: List[str] = field(default_factory=list)
    updated_chat_ids: List[str] = field(default_factory=list)
    dropped_chat_ids: List[str] = field(default_factory=list)
    kept_previous: bool = False


def _to_message(record: RemoteMessageRecord) -> ChatMessage:
    # anything the user did not send is a reply
    role = Role.USER if record.role == Role.USER.value else Role.ASSISTANT
    return ChatMessage(
        id=record.id,
        role=role,
        content=record.text,
        date=record.created_at,
        model=record.model_id,
    )


def interleave_messages(records: Iterable[RemoteMessageRecord]) -> List[ChatMessage]:
    """
    Order one chat's messages as request/response pairs.

    Each user message is followed by the earliest reply not older than it.
    The reply cursor only moves forward, so replies older than the current
    user message are skipped for good; replies left over after the last
    user message are appended in order.
    """
    user_records = sorted((r for r in records if r.role == Role.USER.value), key=lambda r: r.created_at)
    reply_records = sorted((r for r in records if r.role != Role.USER.value), key=lambda r: r.created_at)

    combined: List[RemoteMessageRecord] = []
    reply_index = 0
    for user_record in user_records:
        combined.append(user_record)
        while (reply_index < len(reply_records)
               and reply_records[reply_index].created_at < user_record.created_at):
            reply_index += 1
        if reply_index < len(reply_records):
            combined.append(reply_records[reply_index])
            reply_index += 1

    combined.extend(reply_records[reply_index:])
    return [_to_message(r) for r in combined]


def organize_chat_messages(records: Iterable[RemoteMessageRecord]) -> Dict[str, List[ChatMessage]]:
    """Group remote messages by chat id and interleave each group."""
    grouped: Dict[str, List[RemoteMessageRecord]] = OrderedDict()
    for record in records:
        grouped.setdefault(record.chat_id, []).append(record)
    return {chat_id: interleave_messages(group) for chat_id, group in grouped.items()}


def reorganize_chats(chats: Iterable[RemoteChatRecord]) -> Dict[str, RemoteChatMeta]:
    """Index remote chat records by id, dropping the id from the value."""
    return {
        chat.id: RemoteChatMeta(**chat.model_dump(exclude={"id"}))
        for chat in chats
    }


def dedupe_sessions(sessions: Iterable[ChatSession]) -> List[ChatSession]:
    """
    Keep one session per chat id; the last occurrence wins but takes the
    position of the first.
    """
    unique: Dict[str, ChatSession] = OrderedDict()
    for session in sessions:
        unique[session.chat_id] = session
    return list(unique.values())


def reconcile(
    remote_chats: Dict[str, RemoteChatMeta],
    remote_messages: Dict[str, List[ChatMessage]],
    local_sessions: List[ChatSession],
    new_session: SessionFactory,
) -> ReconcileResult:
    """
    Merge organized remote state into a copy of the local sessions.

    Steps: replace messages of sessions whose chat exists remotely; create
    sessions for unknown chats (the factory may decline short chats by
    returning a session with a different chat id, which is then discarded);
    dedupe by chat id; drop sessions whose chat is not remote. If that
    would leave nothing, the previous local list is returned unchanged.
    """
    remote_ids = set(remote_messages)
    sessions = [s.model_copy(deep=True) for s in local_sessions]
    result = ReconcileResult(sessions=[])

    seen = set()
    for session in sessions:
        if session.chat_id in remote_ids:
            seen.add(session.chat_id)
            session.messages = [m.model_copy(deep=True) for m in remote_messages[session.chat_id]]
            session.last_summarize_index = min(session.last_summarize_index, len(session.messages))
            if session.clear_context_index is not None:
                session.clear_context_index = min(session.clear_context_index, len(session.messages))
            result.updated_chat_ids.append(session.chat_id)

    created: List[ChatSession] = []
    for chat_id in remote_messages:
        if chat_id in seen:
            continue
        meta = remote_chats.get(chat_id)
        session = new_session(chat_id, remote_messages[chat_id], meta.name if meta else None)
        if session.chat_id != chat_id:
            logger.debug(f"Skipping remote chat {chat_id}: too few messages")
            continue
        created.append(session)
        result.created_chat_ids.append(chat_id)

    # new sessions go first, like a freshly created session
    merged = dedupe_sessions([*reversed(created), *sessions])
    filtered = [s for s in merged if s.chat_id in remote_ids]
    result.dropped_chat_ids = [s.chat_id for s in merged if s.chat_id not in remote_ids]

    if not filtered:
        logger.warning("Reconciliation would remove every session; keeping local sessions")
        result.sessions = list(local_sessions)
        result.kept_previous = True
        result.dropped_chat_ids = []
        return result

    result.sessions = filtered
    return result


def merge_backup(local: ChatState, imported: ChatState) -> ChatState:
    """
    Merge an imported backup into the local state (mutates and returns `local`).

    Imported sessions without messages are ignored. Unknown sessions are
    added; for known sessions, messages with new ids are added and the list
    re-sorted by date. Sessions end up most recently updated first.
    """
    by_id = {s.id: s for s in local.sessions}
    for remote_session in imported.sessions:
        if not remote_session.messages:
            continue
        local_session = by_id.get(remote_session.id)
        if local_session is None:
            copy = remote_session.model_copy(deep=True)
            local.sessions.append(copy)
            by_id[copy.id] = copy
            continue
        known = {m.id for m in local_session.messages}
        for message in remote_session.messages:
            if message.id not in known:
                local_session.messages.append(message.model_copy(deep=True))
        local_session.messages.sort(key=lambda m: m.date.timestamp() if m.date else 0.0)
        local_session.last_update = max(local_session.last_update, remote_session.last_update)

    current_id = local.sessions[local.current_session_index].id if local.sessions else None
    local.sessions.sort(key=lambda s: s.last_update, reverse=True)
    if current_id is not None:
        local.current_session_index = next(
            i for i, s in enumerate(local.sessions) if s.id == current_id
        )
    for chat_id, meta in imported.chats.items():
        local.chats.setdefault(chat_id, meta)
    return local

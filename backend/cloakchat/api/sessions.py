"""
Session API endpoints - List, create, select, reorder and delete sessions.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from ..core.chat_service import ChatService
from ..errors import RemoteChatError, UndoExpiredError
from ..models import ChatSession, Mask
from .deps import get_chat_service, persist_state, to_http_error

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionSummary(BaseModel):
    id: str
    chat_id: str
    topic: str
    message_count: int
    last_update: int
    topic_updated: bool

    @classmethod
    def from_session(cls, session: ChatSession) -> "SessionSummary":
        return cls(
            id=session.id,
            chat_id=session.chat_id,
            topic=session.topic,
            message_count=len(session.messages),
            last_update=session.last_update,
            topic_updated=session.topic_updated,
        )


class SessionList(BaseModel):
    current_session_index: int
    sessions: List[SessionSummary]


class CreateSessionRequest(BaseModel):
    mask: Optional[Mask] = None


class MoveSessionRequest(BaseModel):
    from_index: int
    to_index: int


def _session_list(service: ChatService) -> SessionList:
    state = service.store.state
    return SessionList(
        current_session_index=state.current_session_index,
        sessions=[SessionSummary.from_session(s) for s in state.sessions],
    )


def _dump(session: ChatSession) -> dict:
    return session.model_dump(by_alias=True, mode="json")


@router.get("", response_model=SessionList)
async def list_sessions(service: ChatService = Depends(get_chat_service)):
    """List sessions in display order along with the current selection."""
    return _session_list(service)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    request: Request,
    body: Optional[CreateSessionRequest] = None,
    service: ChatService = Depends(get_chat_service),
):
    """
    Create a new session at the top of the list and select it.

    Args:
        body: Optional mask to start the session from

    Returns:
        The new session
    """
    session = await service.new_session(mask=body.mask if body else None)
    await persist_state(request)
    return _dump(session)


@router.post("/move", response_model=SessionList)
async def move_session(
    body: MoveSessionRequest,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    count = len(service.store.sessions)
    if not (0 <= body.from_index < count and 0 <= body.to_index < count):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session index out of range")
    service.store.move_session(body.from_index, body.to_index)
    await persist_state(request)
    return _session_list(service)


@router.post("/undo/{token}", response_model=SessionList)
async def undo_delete(
    token: str,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    """Restore a session deleted within the undo window."""
    try:
        service.store.undo_delete(token)
    except (KeyError, UndoExpiredError) as e:
        raise to_http_error(e)
    await persist_state(request)
    return _session_list(service)


@router.post("/{index}/select", response_model=SessionList)
async def select_session(
    index: int,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    try:
        service.store.select_session(index)
    except IndexError as e:
        raise to_http_error(e)
    await persist_state(request)
    return _session_list(service)


@router.delete("/{index}")
async def delete_session(
    index: int,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    """
    Delete a session. The remote chat is deleted first; on failure nothing
    changes locally.

    Returns:
        The undo token and how long it stays valid
    """
    if not 0 <= index < len(service.store.sessions):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session index out of range")
    try:
        receipt = await service.delete_session(index)
    except (RemoteChatError, IndexError, KeyError) as e:
        raise to_http_error(e)
    await persist_state(request)
    return {
        "deleted_session_id": receipt.deleted_session_id,
        "undo_token": receipt.token,
        "undo_seconds": service.store.undo_seconds,
    }


@router.get("/{session_id}")
async def get_session(session_id: str, service: ChatService = Depends(get_chat_service)):
    try:
        return _dump(service.store.get_session(session_id))
    except KeyError as e:
        raise to_http_error(e)


@router.post("/{session_id}/reset")
async def reset_session(
    session_id: str,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    """Clear a session's messages and memory."""
    try:
        session = service.store.reset_session(session_id)
    except KeyError as e:
        raise to_http_error(e)
    await persist_state(request)
    return _dump(session)


@router.post("/{session_id}/clear-context")
async def clear_context(
    session_id: str,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    """Toggle the context break at the end of the session."""
    try:
        session = service.store.clear_context(session_id)
    except KeyError as e:
        raise to_http_error(e)
    await persist_state(request)
    return {"clear_context_index": session.clear_context_index}


@router.get("/{session_id}/context")
async def get_context(session_id: str, service: ChatService = Depends(get_chat_service)):
    """Preview the messages the next request would send."""
    try:
        messages = service.assemble_context(session_id)
    except KeyError as e:
        raise to_http_error(e)
    return [m.model_dump(by_alias=True, mode="json") for m in messages]

"""
Shared API dependencies - Access to the service objects built at startup.
"""

import logging

from fastapi import HTTPException, Request, status

from ..core.chat_service import ChatService
from ..errors import CloakChatError, GenerationError, RemoteChatError, UndoExpiredError
from ..storage.state_store import StateStore

logger = logging.getLogger(__name__)


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_state_store(request: Request) -> StateStore:
    return request.app.state.state_store


async def persist_state(request: Request) -> None:
    """Write the current chat state to storage."""
    service = get_chat_service(request)
    saved = await get_state_store(request).save(service.store.state)
    if not saved:
        logger.warning("Failed to persist chat state")


def to_http_error(error: Exception) -> HTTPException:
    """Map a core exception onto an HTTP error response."""
    if isinstance(error, RemoteChatError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    if isinstance(error, UndoExpiredError):
        return HTTPException(status_code=status.HTTP_410_GONE, detail=str(error))
    if isinstance(error, (KeyError, IndexError)):
        detail = error.args[0] if error.args else "Not found"
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(detail))
    if isinstance(error, GenerationError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    if isinstance(error, CloakChatError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

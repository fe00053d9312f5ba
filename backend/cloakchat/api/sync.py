"""
Sync API endpoints - Reconcile with the remote service, backup and restore.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
from pydantic import ValidationError

from ..core.chat_service import ChatService
from ..errors import CloakChatError
from ..storage.state_store import StateStore
from .deps import get_chat_service, get_state_store, persist_state, to_http_error

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("")
async def sync_sessions(request: Request, service: ChatService = Depends(get_chat_service)):
    """
    Pull the remote chat history and reconcile local sessions with it.
    A failed fetch leaves local state unchanged.
    """
    try:
        result = await service.sync()
    except CloakChatError as e:
        raise to_http_error(e)
    await persist_state(request)
    return {
        "sessions": len(result.sessions),
        "created": result.created_chat_ids,
        "updated": result.updated_chat_ids,
        "dropped": result.dropped_chat_ids,
        "kept_previous": result.kept_previous,
    }


@router.get("/export")
async def export_backup(
    service: ChatService = Depends(get_chat_service),
    state_store: StateStore = Depends(get_state_store),
):
    """Download the chat state as a JSON backup."""
    filename = f"Backup-{datetime.now().strftime('%Y-%m-%d %H-%M-%S')}.json"
    return Response(
        content=state_store.export_backup(service.store.state),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_backup(
    request: Request,
    service: ChatService = Depends(get_chat_service),
    state_store: StateStore = Depends(get_state_store),
):
    """Merge a JSON backup (request body) into the local sessions."""
    text = (await request.body()).decode("utf-8")
    try:
        state = service.store.update(lambda local: state_store.import_backup(local, text))
    except (json.JSONDecodeError, ValidationError, AttributeError, TypeError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid backup: {e}")
    await persist_state(request)
    return {"sessions": len(state.sessions)}


@router.delete("/all")
async def clear_all_data(request: Request, service: ChatService = Depends(get_chat_service)):
    """Delete every chat remotely, then reset local sessions."""
    try:
        await service.clear_all_data()
    except CloakChatError as e:
        raise to_http_error(e)
    await persist_state(request)
    return {"status": "success"}

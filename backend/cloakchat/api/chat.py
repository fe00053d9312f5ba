"""
Chat API endpoints - Run conversation turns.
Supports plain responses and Server-Sent Events streaming.
"""

import asyncio
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ..core.chat_service import ChatService
from ..errors import GenerationError, classify_generation_error
from ..llm.client import ChatCallbacks
from .deps import get_chat_service, persist_state, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class SendMessageRequest(BaseModel):
    content: str
    images: List[str] = Field(default_factory=list)


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


@router.post("/{session_id}/message")
async def send_message(
    session_id: str,
    body: SendMessageRequest,
    request: Request,
    stream: bool = Query(False, description="Enable streaming output"),
    service: ChatService = Depends(get_chat_service),
):
    """
    Send a user message to a session and get the assistant reply.

    Args:
        session_id: Target session
        body: Message text and optional image URLs
        stream: Enable Server-Sent Events streaming

    Returns:
        The final assistant message (stream=false) or a StreamingResponse
        emitting content/done/error events (stream=true)
    """
    events: asyncio.Queue = asyncio.Queue()
    listener = ChatCallbacks(
        on_update=lambda text: events.put_nowait(("update", text)),
        on_finish=lambda text: events.put_nowait(("finish", text)),
        on_error=lambda error: events.put_nowait(("error", error)),
    )

    try:
        turn = service.on_user_input(
            session_id, body.content, attach_images=body.images or None, listener=listener
        )
    except (KeyError, GenerationError) as e:
        raise to_http_error(e)

    bot_id = turn.bot_message.id

    if not stream:
        result = await turn.task.wait()
        await persist_state(request)
        session = service.store.get_session(session_id)
        reply = next((m for m in session.messages if m.id == bot_id), turn.bot_message)
        return {
            "status": result.status.value,
            "message": reply.model_dump(by_alias=True, mode="json"),
        }

    async def event_generator():
        sent = 0
        try:
            while True:
                kind, payload = await events.get()
                if kind == "update":
                    delta = payload[sent:]
                    sent = len(payload)
                    if delta:
                        yield _sse({"type": "content", "content": delta})
                elif kind == "finish":
                    await persist_state(request)
                    yield _sse({"type": "done", "message_id": bot_id, "content": payload})
                    return
                else:
                    await persist_state(request)
                    yield _sse({
                        "type": "error",
                        "message_id": bot_id,
                        "error": str(payload),
                        "aborted": classify_generation_error(payload) == "aborted",
                    })
                    return
        except GeneratorExit:
            # Client disconnected; the reply keeps running and lands in the store
            logger.info(f"Stream client for {session_id}/{bot_id} disconnected")
            return

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "X-Message-Id": bot_id,
        }
    )


@router.post("/{session_id}/stop/{message_id}")
async def stop_generation(
    session_id: str,
    message_id: str,
    service: ChatService = Depends(get_chat_service),
):
    """Abort an in-flight reply."""
    if not service.stop(session_id, message_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending reply")
    return {"stopped": True}

"""
Message Models - Chat messages as stored in a session.
Supports multimodal content (text + images).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Message author role."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


MessageContent = Union[str, List[Dict[str, Any]]]


def new_id() -> str:
    """Generate an opaque identifier for sessions and messages."""
    return uuid.uuid4().hex


class ChatMessage(BaseModel):
    """
    A single message in a conversation.

    Identity (`id`) is fixed once appended to a session; only `content`,
    `streaming` and `is_error` change while a reply streams in.
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str = Field(default_factory=new_id)
    role: Role = Role.USER
    content: MessageContent = ""
    date: Optional[datetime] = Field(default_factory=lambda: datetime.now(timezone.utc))
    streaming: bool = False
    is_error: bool = Field(default=False, alias="isError")
    model: Optional[str] = None


def create_message(**overrides: Any) -> ChatMessage:
    """Create a message with a fresh id and the current timestamp."""
    return ChatMessage(**overrides)


def multimodal_content(text: str, image_urls: Optional[List[str]] = None) -> MessageContent:
    """
    Build message content from text and optional image URLs.

    Plain text is returned unchanged when there are no images.
    """
    if not image_urls:
        return text
    parts: List[Dict[str, Any]] = [{"type": "text", "text": text}]
    for url in image_urls:
        parts.append({"type": "image_url", "image_url": {"url": url}})
    return parts


def get_message_text_content(message: ChatMessage) -> str:
    """Return the text of a message; for multimodal content, the first text part."""
    if isinstance(message.content, str):
        return message.content
    for part in message.content:
        if part.get("type") == "text":
            return part.get("text", "")
    return ""

"""
Session Models - Defines structures for chat sessions and the chat state.
"""

import time
import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .message import ChatMessage, new_id
from .remote import RemoteChatMeta

DEFAULT_TOPIC = "New Conversation"
DEFAULT_INPUT_TEMPLATE = "{{input}}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ModelConfig(BaseModel):
    """Per-session model configuration."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: str = "gpt-3.5-turbo"
    temperature: float = 0.5
    top_p: float = 1.0
    max_tokens: int = Field(default=4000, gt=0)
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    send_memory: bool = Field(default=True, alias="sendMemory")
    history_message_count: int = Field(default=4, ge=0, alias="historyMessageCount")
    compress_message_length_threshold: int = Field(
        default=1000, alias="compressMessageLengthThreshold"
    )
    enable_inject_system_prompts: bool = Field(default=True, alias="enableInjectSystemPrompts")
    template: str = DEFAULT_INPUT_TEMPLATE

    @classmethod
    def from_settings(cls, config) -> "ModelConfig":
        """Build the global default model config from application settings."""
        return cls(
            model=config.default_model,
            temperature=config.default_temperature,
            max_tokens=config.default_max_tokens,
            send_memory=config.default_send_memory,
            history_message_count=config.default_history_message_count,
            compress_message_length_threshold=config.default_compress_message_length_threshold,
            enable_inject_system_prompts=config.default_enable_inject_system_prompts,
        )


class Mask(BaseModel):
    """Preset persona: fixed context messages plus model configuration."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    id: str = Field(default_factory=new_id)
    name: str = DEFAULT_TOPIC
    context: List[ChatMessage] = Field(default_factory=list)
    model_settings: ModelConfig = Field(default_factory=ModelConfig, alias="modelConfig")
    lang: str = "en"
    builtin: bool = False


class ChatStat(BaseModel):
    """Running counters for a session."""
    model_config = ConfigDict(populate_by_name=True)

    token_count: int = Field(default=0, alias="tokenCount")
    word_count: int = Field(default=0, alias="wordCount")
    char_count: int = Field(default=0, alias="charCount")


class ChatSession(BaseModel):
    """One conversation thread with its own history, memory and configuration."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    topic: str = DEFAULT_TOPIC
    memory_prompt: str = Field(default="", alias="memoryPrompt")
    messages: List[ChatMessage] = Field(default_factory=list)
    stat: ChatStat = Field(default_factory=ChatStat)
    last_update: int = Field(default_factory=_now_ms, alias="lastUpdate")
    last_summarize_index: int = Field(default=0, ge=0, alias="lastSummarizeIndex")
    clear_context_index: Optional[int] = Field(default=None, alias="clearContextIndex")
    chat_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    mask: Mask = Field(default_factory=Mask)
    topic_updated: bool = Field(default=False, alias="topicUpdated")


def create_empty_session(mask: Optional[Mask] = None) -> ChatSession:
    """Create a fresh session with no messages."""
    session = ChatSession()
    if mask is not None:
        session.mask = mask
    return session


class ChatState(BaseModel):
    """
    Everything the chat store owns.

    The session list is never empty; `current_session_index` selects the
    active one.
    """
    model_config = ConfigDict(populate_by_name=True)

    sessions: List[ChatSession] = Field(default_factory=lambda: [create_empty_session()])
    current_session_index: int = Field(default=0, alias="currentSessionIndex")
    chats: Dict[str, RemoteChatMeta] = Field(default_factory=dict)

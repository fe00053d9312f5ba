"""Models module."""

from .message import (
    ChatMessage, Role, MessageContent, create_message, new_id,
    multimodal_content, get_message_text_content,
)
from .remote import (
    RemoteChatRecord, RemoteMessageRecord, RemoteChatMeta, SyncSnapshot, RenamedChat,
)
from .session import (
    ModelConfig, Mask, ChatStat, ChatSession, ChatState,
    create_empty_session, DEFAULT_TOPIC, DEFAULT_INPUT_TEMPLATE,
)

__all__ = [
    'ChatMessage', 'Role', 'MessageContent', 'create_message', 'new_id',
    'multimodal_content', 'get_message_text_content',
    'RemoteChatRecord', 'RemoteMessageRecord', 'RemoteChatMeta', 'SyncSnapshot', 'RenamedChat',
    'ModelConfig', 'Mask', 'ChatStat', 'ChatSession', 'ChatState',
    'create_empty_session', 'DEFAULT_TOPIC', 'DEFAULT_INPUT_TEMPLATE',
]

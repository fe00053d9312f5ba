"""Services module - clients for external services."""

from .remote_chat import RemoteChatProvider, HttpRemoteChatProvider

__all__ = ['RemoteChatProvider', 'HttpRemoteChatProvider']

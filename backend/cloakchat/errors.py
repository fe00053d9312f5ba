"""
Exception hierarchy shared across the chat core.
"""

import asyncio
from typing import Optional


class CloakChatError(Exception):
    """Base class for all chat core errors."""


class RemoteChatError(CloakChatError):
    """The remote chat history service failed or returned a non-success status."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.status_code = status_code


class GenerationError(CloakChatError):
    """A model call reported an error."""


class GenerationAborted(GenerationError):
    """A model call was cancelled by the caller."""

    def __init__(self, message: str = "The user aborted a request."):
        super().__init__(message)


class UndoExpiredError(CloakChatError):
    """An undo token was used after its restore window closed."""


def classify_generation_error(error: BaseException) -> str:
    """
    Classify a generation failure.

    Returns:
        "aborted" for user cancellation, "error" for everything else
    """
    if isinstance(error, (GenerationAborted, asyncio.CancelledError)):
        return "aborted"
    if "aborted" in str(error).lower():
        return "aborted"
    return "error"

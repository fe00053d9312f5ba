"""
Storage Interface - Abstract base class for all storage implementations.
Lets the state store run on local disk today and object storage later.
"""

from abc import ABC, abstractmethod
from typing import Optional


class StorageInterface(ABC):
    """Key-addressed blob storage."""

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """
        Save content to the specified path.

        Args:
            path: Relative path, e.g. "chat-next-web-store.json"
            content: Bytes or text to store

        Returns:
            bool: True if save was successful
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: Content, or None if nothing is stored there
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if something is stored at the specified path."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete content at the specified path.

        Returns:
            bool: True if something was deleted
        """
        pass

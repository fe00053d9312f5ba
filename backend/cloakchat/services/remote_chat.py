"""
Remote Chat Provider - Client for the remote chat history service.
Fetches all chats and messages, renames chats, and deletes them.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import RemoteChatError
from ..models.remote import RenamedChat, SyncSnapshot

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RemoteChatProvider(ABC):
    """Source of truth for chats and their messages."""

    @abstractmethod
    async def fetch_all(self) -> SyncSnapshot:
        """Fetch every chat and message visible to the user."""
        pass

    @abstractmethod
    async def autorename(self, chat_id: str) -> RenamedChat:
        """Ask the service to title a chat from its content."""
        pass

    @abstractmethod
    async def delete(self, chat_id: str) -> bool:
        """Delete a chat. Raises RemoteChatError on failure."""
        pass


class HttpRemoteChatProvider(RemoteChatProvider):
    """
    HTTP client for the chat history service.

    Endpoints:
        GET    /sync/all
        PUT    /chats/{chat_id}/autorename
        DELETE /chats/{chat_id}
    """

    def __init__(self, base_url: str, auth_token: Optional[str] = None, timeout: float = 30.0):
        """
        Initialize the remote provider.

        Args:
            base_url: Service root, e.g. "https://cloak.i.inc"
            auth_token: Bearer token sent with every request
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout

    def _get_auth_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _request(self, operation: str, method: str, path: str) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(method, url, headers=self._get_auth_headers())
        except httpx.HTTPError as e:
            logger.error(f"Remote {operation} transport error: {e}", exc_info=True)
            raise RemoteChatError(operation, str(e)) from e

        if resp.status_code >= 400:
            logger.error(
                f"Remote {operation} returned {resp.status_code}",
                extra={"extra_fields": {"operation": operation, "status_code": resp.status_code, "path": path}}
            )
            raise RemoteChatError(operation, f"HTTP {resp.status_code}", status_code=resp.status_code)
        return resp

    def _parse(self, operation: str, resp: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(resp.json())
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Remote {operation} returned an unexpected body: {e}")
            raise RemoteChatError(operation, f"Invalid response body: {e}") from e

    async def fetch_all(self) -> SyncSnapshot:
        resp = await self._request("sync", "GET", "/sync/all")
        snapshot = self._parse("sync", resp, SyncSnapshot)
        logger.info(f"Fetched {len(snapshot.chats)} chats and {len(snapshot.messages)} messages")
        return snapshot

    async def autorename(self, chat_id: str) -> RenamedChat:
        resp = await self._request("autorename", "PUT", f"/chats/{chat_id}/autorename")
        return self._parse("autorename", resp, RenamedChat)

    async def delete(self, chat_id: str) -> bool:
        await self._request("delete", "DELETE", f"/chats/{chat_id}")
        return True

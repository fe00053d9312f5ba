"""
State Store - Persists the chat state as one versioned JSON document.
Also produces and merges JSON backups.
"""

import json
import logging
from typing import Optional

from ..core.migrations import CHAT_STATE_VERSION, migrate_chat_state
from ..core.reconciler import merge_backup
from ..models.session import ChatState, ModelConfig
from .interface import StorageInterface

logger = logging.getLogger(__name__)


class StateStore:
    """Loads, migrates and saves the chat state."""

    def __init__(
        self,
        storage: StorageInterface,
        path: str = "chat-next-web-store.json",
        default_model_config: Optional[ModelConfig] = None,
    ):
        self.storage = storage
        self.path = path
        self.default_model_config = default_model_config or ModelConfig()

    def _to_document(self, state: ChatState) -> str:
        return json.dumps(
            {"state": state.model_dump(by_alias=True, mode="json"), "version": CHAT_STATE_VERSION},
            ensure_ascii=False,
            indent=2,
        )

    def _from_document(self, text: str) -> ChatState:
        document = json.loads(text)
        version = float(document.get("version", 0))
        raw_state = migrate_chat_state(document.get("state", {}), version, self.default_model_config)
        return ChatState.model_validate(raw_state)

    async def load(self) -> Optional[ChatState]:
        """Return the stored state, or None when nothing has been saved."""
        content = await self.storage.load(self.path)
        if content is None:
            return None
        state = self._from_document(content.decode('utf-8'))
        logger.info(f"Loaded chat state with {len(state.sessions)} sessions")
        return state

    async def save(self, state: ChatState) -> bool:
        return await self.storage.save(self.path, self._to_document(state))

    def export_backup(self, state: ChatState) -> str:
        return self._to_document(state)

    def import_backup(self, local: ChatState, text: str) -> ChatState:
        """Merge a backup into a copy of `local` and return the result."""
        imported = self._from_document(text)
        return merge_backup(local.model_copy(deep=True), imported)

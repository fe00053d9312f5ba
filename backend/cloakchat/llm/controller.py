"""
Registry of in-flight generations, keyed by session and message slot.
"""

import logging
from typing import Dict

from .client import ChatTask

logger = logging.getLogger(__name__)


class ChatControllerPool:
    """Tracks cancellation handles so a caller can stop a specific reply."""

    def __init__(self):
        self._controllers: Dict[str, ChatTask] = {}

    @staticmethod
    def _key(session_id: str, message_id: str) -> str:
        return f"{session_id},{message_id}"

    def add(self, session_id: str, message_id: str, task: ChatTask) -> str:
        key = self._key(session_id, message_id)
        self._controllers[key] = task
        return key

    def stop(self, session_id: str, message_id: str) -> bool:
        """Abort one generation. Returns False when nothing is registered."""
        task = self._controllers.get(self._key(session_id, message_id))
        if task is None:
            return False
        logger.info(f"Stopping generation {session_id}/{message_id}")
        task.cancel()
        return True

    def stop_all(self) -> None:
        for task in list(self._controllers.values()):
            task.cancel()

    def has_pending(self) -> bool:
        return len(self._controllers) > 0

    def remove(self, session_id: str, message_id: str) -> None:
        self._controllers.pop(self._key(session_id, message_id), None)

    def __contains__(self, key: object) -> bool:
        return key in self._controllers

"""
One-time upgrades for persisted chat state.

Operates on the raw JSON document (camelCase keys) before it is validated
into a ChatState, so documents written by any earlier version load.
"""

import copy
import logging
import uuid
from typing import Any, Dict

from ..models.message import new_id
from ..models.session import DEFAULT_TOPIC, ModelConfig, create_empty_session

logger = logging.getLogger(__name__)

CHAT_STATE_VERSION = 3.2


def _model_config_of(session: Dict[str, Any]) -> Dict[str, Any]:
    return session.setdefault("mask", {}).setdefault("modelConfig", {})


def migrate_chat_state(
    state: Dict[str, Any],
    version: float,
    default_model_config: ModelConfig,
) -> Dict[str, Any]:
    """
    Upgrade a persisted state document to CHAT_STATE_VERSION.

    Args:
        state: Raw state as loaded from storage
        version: Version the document was written with
        default_model_config: Current global defaults, used for flags that
            did not exist when the document was written

    Returns:
        A new, upgraded document
    """
    new_state = copy.deepcopy(state)
    sessions = new_state.setdefault("sessions", [])

    if version < 2:
        new_state["sessions"] = sessions = []
        for old_session in state.get("sessions", []):
            session = create_empty_session().model_dump(by_alias=True, mode="json")
            session["topic"] = old_session.get("topic", DEFAULT_TOPIC)
            session["messages"] = list(old_session.get("messages", []))
            model_config = _model_config_of(session)
            model_config["sendMemory"] = True
            model_config["historyMessageCount"] = 4
            model_config["compressMessageLengthThreshold"] = 1000
            sessions.append(session)

    if version < 3:
        for session in sessions:
            session["id"] = new_id()
            for message in session.get("messages", []):
                message["id"] = new_id()

    if version < 3.1:
        for session in sessions:
            model_config = _model_config_of(session)
            # keep what the user set; otherwise follow the current global default
            if ("enableInjectSystemPrompts" not in model_config
                    and "enable_inject_system_prompts" not in model_config):
                model_config["enableInjectSystemPrompts"] = default_model_config.enable_inject_system_prompts

    if version < 3.2:
        for session in sessions:
            if not session.get("chat_id"):
                session["chat_id"] = str(uuid.uuid4())
            session.setdefault("topicUpdated", False)

    if version < CHAT_STATE_VERSION:
        logger.info(f"Migrated chat state from version {version} to {CHAT_STATE_VERSION}")
    return new_state

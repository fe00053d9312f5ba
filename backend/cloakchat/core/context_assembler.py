"""
Context Assembler - Decides which messages go into a model request.

The request is built from four parts, in order:
  0. an injected system prompt (GPT models only, when enabled)
  1. long-term memory: the session's running summary
  2. the mask's fixed in-context prompts
  3. short-term memory: the most recent messages that fit the token budget
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..llm.families import should_inject_system_prompt
from ..models.message import ChatMessage, Role, create_message
from ..models.session import ChatSession
from .prompts import DEFAULT_SYSTEM_TEMPLATE, fill_template_with, memory_prompt_content
from .token_estimator import TokenEstimator, estimate_message

logger = logging.getLogger(__name__)


@dataclass
class AssembledContext:
    """The parts of an assembled request, kept apart for inspection."""
    system_prompts: List[ChatMessage] = field(default_factory=list)
    memory_prompts: List[ChatMessage] = field(default_factory=list)
    context_prompts: List[ChatMessage] = field(default_factory=list)
    recent_messages: List[ChatMessage] = field(default_factory=list)
    context_start_index: int = 0
    recent_token_count: int = 0

    @property
    def messages(self) -> List[ChatMessage]:
        return [
            *self.system_prompts,
            *self.memory_prompts,
            *self.context_prompts,
            *self.recent_messages,
        ]


def get_memory_prompt(session: ChatSession) -> Optional[ChatMessage]:
    """Wrap the session's long-term memory as a system message, if there is one."""
    if not session.memory_prompt:
        return None
    return create_message(
        role=Role.SYSTEM,
        content=memory_prompt_content(session.memory_prompt),
        date=None,
    )


def should_send_long_term_memory(session: ChatSession) -> bool:
    clear_context_index = session.clear_context_index or 0
    return bool(
        session.mask.model_settings.send_memory
        and session.memory_prompt
        and session.last_summarize_index > clear_context_index
    )


def compute_context_start_index(session: ChatSession) -> int:
    """First message index eligible for the recent window."""
    model_config = session.mask.model_settings
    clear_context_index = session.clear_context_index or 0
    total = len(session.messages)

    short_term_start = max(0, total - model_config.history_message_count)
    if should_send_long_term_memory(session):
        memory_start = min(session.last_summarize_index, short_term_start)
    else:
        memory_start = short_term_start

    # a cleared context excludes the memory too
    return max(clear_context_index, memory_start)


class ContextAssembler:
    """Builds the ordered message list sent to the model for a session."""

    def __init__(self, estimator: TokenEstimator):
        self.estimator = estimator

    def build(self, session: ChatSession, now: Optional[datetime] = None) -> AssembledContext:
        model_config = session.mask.model_settings
        result = AssembledContext()

        if model_config.enable_inject_system_prompts and should_inject_system_prompt(model_config.model):
            result.system_prompts.append(create_message(
                role=Role.SYSTEM,
                content=fill_template_with(
                    "", model_config,
                    template=DEFAULT_SYSTEM_TEMPLATE,
                    lang=session.mask.lang,
                    now=now,
                ),
            ))

        if should_send_long_term_memory(session):
            memory_prompt = get_memory_prompt(session)
            if memory_prompt is not None:
                result.memory_prompts.append(memory_prompt)

        result.context_prompts = [m for m in session.mask.context if not m.is_error]

        start = compute_context_start_index(session)
        result.context_start_index = start

        # walk backwards collecting as many recent messages as the budget allows
        max_tokens = model_config.max_tokens
        token_count = 0
        reversed_recent: List[ChatMessage] = []
        for i in range(len(session.messages) - 1, start - 1, -1):
            message = session.messages[i]
            if message.is_error:
                continue
            cost = estimate_message(message, self.estimator)
            if token_count + cost > max_tokens:
                break
            token_count += cost
            reversed_recent.append(message)

        reversed_recent.reverse()
        result.recent_messages = reversed_recent
        result.recent_token_count = token_count

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Assembled context for session {session.id}: "
                f"system={len(result.system_prompts)}, memory={len(result.memory_prompts)}, "
                f"context={len(result.context_prompts)}, recent={len(result.recent_messages)}, "
                f"start={start}, tokens={token_count}"
            )

        return result

    def assemble(self, session: ChatSession, now: Optional[datetime] = None) -> List[ChatMessage]:
        """Return the messages to send, in request order."""
        return self.build(session, now=now).messages

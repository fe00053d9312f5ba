"""
Token estimation for context budgeting.

Counts are approximate; they bound what we send, not what the provider
accepts.
"""

import math
from typing import Iterable, Optional, Protocol

import tiktoken

from ..models.message import ChatMessage, get_message_text_content


class TokenEstimator(Protocol):
    def estimate(self, text: str) -> int:
        ...


class HeuristicTokenEstimator:
    """
    Character-class estimate: ASCII letters cost a quarter token, other ASCII
    half a token, everything else one and a half.
    """

    def estimate(self, text: str) -> int:
        quarters = 0
        for char in text:
            code = ord(char)
            if code < 128:
                quarters += 1 if 65 <= code <= 122 else 2
            else:
                quarters += 6
        return math.ceil(quarters / 4)


class TiktokenEstimator:
    """Exact BPE count using the model's tiktoken encoding."""

    def __init__(self, model: Optional[str] = None, fallback_encoding: str = "cl100k_base"):
        try:
            self._encoder = tiktoken.encoding_for_model(model) if model else tiktoken.get_encoding(fallback_encoding)
        except KeyError:
            self._encoder = tiktoken.get_encoding(fallback_encoding)

    def estimate(self, text: str) -> int:
        return len(self._encoder.encode(text, disallowed_special=()))


def estimate_message(message: ChatMessage, estimator: TokenEstimator) -> int:
    return estimator.estimate(get_message_text_content(message))


def count_messages(messages: Iterable[ChatMessage], estimator: TokenEstimator) -> int:
    """Sum the estimated token cost of a run of messages."""
    return sum(estimate_message(m, estimator) for m in messages)

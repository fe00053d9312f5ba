"""
Model family classification.

Which family a model belongs to decides the backend it is sent to, whether a
system prompt is injected, and which model summarizes its sessions.
"""

from enum import Enum
from typing import Iterable, Optional


class ModelFamily(str, Enum):
    GPT = "gpt"
    GEMINI = "gemini"
    CLAUDE = "claude"


def is_claude_model(model: str) -> bool:
    return model.lower().startswith("claude")


def classify_model(model: str) -> ModelFamily:
    """Map a model identifier to its provider family; unknown models count as GPT."""
    if model.startswith("gemini"):
        return ModelFamily.GEMINI
    if is_claude_model(model):
        return ModelFamily.CLAUDE
    return ModelFamily.GPT


def is_gpt_model(model: str) -> bool:
    return model.startswith("gpt")


def should_inject_system_prompt(model: str) -> bool:
    return model.startswith("gpt-")


def get_summarize_model(
    current_model: str,
    available_models: Iterable[str],
    summarize_model: str = "gpt-3.5-turbo",
    gemini_summarize_model: str = "gemini-pro",
) -> str:
    """
    Pick the model used for titles and memory compression.

    GPT models are swapped for the cheaper summarize model when it is
    available; Gemini models always use the Gemini summarize model; anything
    else keeps its own model.
    """
    if is_gpt_model(current_model):
        found: Optional[str] = next(
            (name for name in available_models if name == summarize_model), None
        )
        return found or current_model
    if current_model.startswith("gemini"):
        return gemini_summarize_model
    return current_model

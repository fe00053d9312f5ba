"""LLM module - provider abstraction and the cancellable model client."""

from .base import LLMProvider, LLMMessage, LLMResponse
from .openai_provider import OpenAIProvider
from .factory import create_llm_provider, create_family_providers, provider_for_model
from .families import (
    ModelFamily, classify_model, is_claude_model, is_gpt_model,
    should_inject_system_prompt, get_summarize_model,
)
from .client import ModelClient, ChatTask, ChatRequest, ChatCallbacks, ChatResult, ChatStatus
from .controller import ChatControllerPool

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'OpenAIProvider',
    'create_llm_provider',
    'create_family_providers',
    'provider_for_model',
    'ModelFamily',
    'classify_model',
    'is_claude_model',
    'is_gpt_model',
    'should_inject_system_prompt',
    'get_summarize_model',
    'ModelClient',
    'ChatTask',
    'ChatRequest',
    'ChatCallbacks',
    'ChatResult',
    'ChatStatus',
    'ChatControllerPool',
]

"""
LLM Provider Factory - Creates provider instances per model family.
"""

from typing import Dict, Optional

from .base import LLMProvider
from .families import ModelFamily, classify_model
from .openai_provider import OpenAIProvider


def create_llm_provider(
    provider: str = "openai",
    api_key: str = "",
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance based on configuration.

    Args:
        provider: Provider name (only "openai"-compatible endpoints are supported)
        api_key: API key for the provider
        model: Model name (uses provider default if not specified)
        base_url: Custom base URL (uses provider default if not specified)
        **kwargs: Additional provider-specific parameters

    Returns:
        LLMProvider instance, or None if api_key is not configured
    """
    if not api_key:
        return None

    if provider == "openai":
        params = {"api_key": api_key}
        if model:
            params["model"] = model
        if base_url:
            params["base_url"] = base_url
        params.update(kwargs)
        return OpenAIProvider(**params)

    raise ValueError(f"Unsupported LLM provider: {provider}")


def create_family_providers(config) -> Dict[ModelFamily, LLMProvider]:
    """
    Build one provider per model family from application settings.

    Families without their own base URL share the default gateway.
    Returns an empty dict when no API key is configured.
    """
    base_urls = {
        ModelFamily.GPT: config.llm_base_url,
        ModelFamily.GEMINI: config.gemini_base_url or config.llm_base_url,
        ModelFamily.CLAUDE: config.claude_base_url or config.llm_base_url,
    }
    providers: Dict[ModelFamily, LLMProvider] = {}
    for family, base_url in base_urls.items():
        provider = create_llm_provider(
            provider="openai",
            api_key=config.llm_api_key or "",
            base_url=base_url,
            timeout=config.llm_timeout,
            log_calls=config.log_llm_calls,
        )
        if provider is not None:
            providers[family] = provider
    return providers


def provider_for_model(providers: Dict[ModelFamily, LLMProvider], model: str) -> Optional[LLMProvider]:
    """Look up the provider serving a model's family."""
    return providers.get(classify_model(model))

"""
LLM provider factory.

Builds the provider registry from application settings and wraps it in an
LLMServiceManager. Provider instances are cached to reuse connections; each
manager starts with its own empty metrics registry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.llm.deepseek_provider import DeepSeekProvider
from app.llm.manager import LLMServiceManager
from app.llm.ollama_provider import OllamaProvider
from app.llm.openai_provider import OpenAIProvider
from app.llm.provider import ReviewAnalysisProvider

if TYPE_CHECKING:
    from app.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "deepseek", "ollama")

# Module-level cache: provider key -> instance
_provider_cache: dict[str, ReviewAnalysisProvider] = {}


def build_providers(settings: Settings) -> dict[str, ReviewAnalysisProvider]:
    """Instantiate every supported provider from settings (availability is checked later)."""
    return {
        "openai": OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.llm_timeout,
            max_retries=settings.llm_max_retries,
            base_url=settings.openai_base_url,
        ),
        "deepseek": DeepSeekProvider(
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            model=settings.deepseek_model,
            timeout=settings.deepseek_timeout,
        ),
        "ollama": OllamaProvider(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout=settings.ollama_timeout,
            chunking_threshold=settings.ollama_chunking_threshold,
            chunk_size=settings.ollama_chunk_size,
        ),
    }


def get_llm_manager(settings: Settings | None = None) -> LLMServiceManager:
    """Return an LLMServiceManager over the configured providers.

    Args:
        settings: Application settings. If *None*, loads from ``get_settings()``.

    Raises:
        ValueError: If the configured primary provider is not supported.
    """
    if settings is None:
        from app.config import get_settings

        settings = get_settings()

    primary = settings.llm_primary_provider.lower()
    if primary not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unknown LLM provider: '{primary}'. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    unknown = [key for key in settings.llm_fallback_order if key not in SUPPORTED_PROVIDERS]
    if unknown:
        logger.warning("Ignoring unknown providers in LLM_FALLBACK_ORDER: %s", unknown)

    if not _provider_cache:
        _provider_cache.update(build_providers(settings))
        logger.info("Created LLM providers: %s", ", ".join(_provider_cache))

    return LLMServiceManager(
        _provider_cache,
        primary=primary,
        fallback_order=[key for key in settings.llm_fallback_order if key in SUPPORTED_PROVIDERS],
    )


def clear_provider_cache() -> None:
    """Clear the provider cache. Useful for testing."""
    _provider_cache.clear()

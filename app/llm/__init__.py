"""LLM review analysis providers. Providers score reviews; the manager picks and falls back."""

from app.llm.deepseek_provider import DeepSeekProvider
from app.llm.manager import LLMServiceManager, ProviderMetrics
from app.llm.ollama_provider import OllamaProvider
from app.llm.openai_provider import OpenAIProvider
from app.llm.provider import ReviewAnalysisProvider
from app.llm.router import clear_provider_cache, get_llm_manager

__all__ = [
    "DeepSeekProvider",
    "LLMServiceManager",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderMetrics",
    "ReviewAnalysisProvider",
    "clear_provider_cache",
    "get_llm_manager",
]

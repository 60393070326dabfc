"""LLM Provider 工厂."""

from feedletter.config import Settings
from feedletter.llm.base import LLMConfig, LLMProvider
from feedletter.llm.ollama import OllamaProvider
from feedletter.llm.openai import OpenAIProvider


def create_llm_provider(settings: Settings) -> LLMProvider:
    """根据配置创建 LLM Provider."""
    if settings.llm_provider == "ollama":
        return OllamaProvider(
            config=LLMConfig(model=settings.ollama_model),
            host=settings.ollama_host,
        )

    return OpenAIProvider(
        config=LLMConfig(model=settings.openai_model),
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )

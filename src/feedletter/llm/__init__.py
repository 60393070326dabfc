"""LLM 抽象层."""

from feedletter.llm.base import LLMConfig, LLMProvider, Message
from feedletter.llm.factory import create_llm_provider
from feedletter.llm.ollama import OllamaProvider
from feedletter.llm.openai import OpenAIProvider
from feedletter.llm.synthesizer import (
    ArticleDigest,
    GeneratedNewsletter,
    NewsletterSynthesizer,
)

__all__ = [
    "ArticleDigest",
    "GeneratedNewsletter",
    "LLMConfig",
    "LLMProvider",
    "Message",
    "NewsletterSynthesizer",
    "OllamaProvider",
    "OpenAIProvider",
    "create_llm_provider",
]

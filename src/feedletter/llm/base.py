"""LLM 抽象基类."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from pydantic import BaseModel


class Message(BaseModel):
    """对话消息."""

    role: str  # "system" | "user" | "assistant"
    content: str


class LLMConfig(BaseModel):
    """LLM 配置."""

    model: str
    temperature: float = 0.7
    max_tokens: int = 4000
    json_mode: bool = True  # 要求模型只输出 JSON


class LLMProvider(ABC):
    """LLM 服务提供者抽象基类."""

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    @abstractmethod
    async def chat(self, messages: list[Message]) -> str:
        """返回完整响应."""
        ...

    @abstractmethod
    def chat_stream(self, messages: list[Message]) -> AsyncIterator[str]:
        """流式返回响应文本片段."""
        ...

    async def close(self) -> None:  # noqa: B027
        """释放底层连接."""

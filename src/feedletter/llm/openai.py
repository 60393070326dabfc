"""OpenAI LLM Provider."""

from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from feedletter.llm.base import LLMConfig, LLMProvider, Message


class OpenAIProvider(LLMProvider):
    """OpenAI API Provider（支持所有 OpenAI 兼容接口）."""

    def __init__(
        self,
        config: LLMConfig,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
    ) -> None:
        super().__init__(config)
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def close(self) -> None:
        await self.client.close()

    def _request_kwargs(self, messages: list[Message]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if self.config.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    async def chat(self, messages: list[Message]) -> str:
        response = await self.client.chat.completions.create(
            **self._request_kwargs(messages)
        )
        return response.choices[0].message.content or ""

    async def chat_stream(self, messages: list[Message]) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(
            **self._request_kwargs(messages),
            stream=True,
        )

        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

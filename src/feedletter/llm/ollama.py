"""Ollama LLM Provider."""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

from feedletter.llm.base import LLMConfig, LLMProvider, Message


class OllamaProvider(LLMProvider):
    """Ollama 本地模型 Provider."""

    def __init__(
        self,
        config: LLMConfig,
        host: str = "http://localhost:11434",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config)
        self.host = host.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=300.0)

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    def _payload(self, messages: list[Message], stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": stream,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }
        if self.config.json_mode:
            payload["format"] = "json"
        return payload

    async def chat(self, messages: list[Message]) -> str:
        response = await self._client.post(
            f"{self.host}/api/chat", json=self._payload(messages, stream=False)
        )
        response.raise_for_status()

        data = response.json()
        return data.get("message", {}).get("content", "")

    async def chat_stream(self, messages: list[Message]) -> AsyncIterator[str]:
        url = f"{self.host}/api/chat"
        payload = self._payload(messages, stream=True)

        async with self._client.stream("POST", url, json=payload) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line:
                    continue
                data = json.loads(line)
                content = data.get("message", {}).get("content", "")
                if content:
                    yield content
                if data.get("done", False):
                    break

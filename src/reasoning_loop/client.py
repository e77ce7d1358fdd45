# client.py
# Model collaborator contract and the OpenAI-compatible adapter.
#
# The engine only needs text in, text out. Streaming is optional and is
# consumed for display only.

import os
from typing import AsyncIterator, Protocol, runtime_checkable

from openai import AsyncOpenAI

from reasoning_loop.errors import ServiceFailureError

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_SYSTEM_ROLE = "You are a helpful assistant that follows the response format exactly."


@runtime_checkable
class ModelClient(Protocol):
    async def complete(
        self, prompt: str, system_role: str | None = None, use_context: bool = False
    ) -> str: ...


class OpenAIModel:
    """
    Chat-completions model behind an OpenAI-compatible endpoint.

    Defaults to OpenRouter, so any OpenRouter model string works.
    `use_context` is accepted for interface compatibility; this adapter has
    no retrieval context to add.

    Example:
        model = OpenAIModel("anthropic/claude-3.5-haiku", temperature=0.2)
        text = await model.complete("Say hi")
    """

    def __init__(
        self,
        model: str,
        *,
        temperature: float = 0.7,
        base_url: str | None = None,
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._client = client or AsyncOpenAI(
            base_url=base_url or os.getenv("REASONING_BASE_URL", DEFAULT_BASE_URL),
            api_key=api_key or os.getenv("OPENROUTER_API_KEY"),
        )

    @property
    def model(self) -> str:
        return self._model

    def _messages(self, prompt: str, system_role: str | None) -> list[dict]:
        return [
            {"role": "system", "content": system_role or DEFAULT_SYSTEM_ROLE},
            {"role": "user", "content": prompt},
        ]

    async def complete(
        self, prompt: str, system_role: str | None = None, use_context: bool = False
    ) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=self._messages(prompt, system_role),
            temperature=self._temperature,
        )
        content = response.choices[0].message.content
        if content is None:
            raise ServiceFailureError(f"Model {self._model} returned no content")
        return content.strip()

    async def stream(
        self, prompt: str, system_role: str | None = None, use_context: bool = False
    ) -> AsyncIterator[str]:
        """Yield response fragments as they arrive. Finite and not restartable."""
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=self._messages(prompt, system_role),
            temperature=self._temperature,
            stream=True,
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            fragment = chunk.choices[0].delta.content
            if fragment:
                yield fragment

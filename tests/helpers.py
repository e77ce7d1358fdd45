# helpers.py
# Test doubles shared across the suite. No network, no real model.

import asyncio

from reasoning_loop.models import ToolParameter, ToolSpec
from reasoning_loop.tools import ToolRegistry


class ScriptedModel:
    """
    Model double that replays a fixed script of responses.

    Items that are exceptions are raised instead of returned. Once the
    script runs out, the last item repeats.
    """

    def __init__(self, responses, delay: float = 0.0) -> None:
        self.responses = list(responses)
        self.delay = delay
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt, system_role=None, use_context=False):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses[min(len(self.prompts), len(self.responses)) - 1]
        if isinstance(item, BaseException):
            raise item
        return item


class StreamingModel(ScriptedModel):
    """ScriptedModel that also streams each response word by word."""

    def __init__(self, responses) -> None:
        super().__init__(responses)
        self.streamed = 0

    async def stream(self, prompt, system_role=None, use_context=False):
        text = await self.complete(prompt, system_role, use_context)
        self.streamed += 1
        words = text.split(" ")
        for i, word in enumerate(words):
            yield word + (" " if i < len(words) - 1 else "")


def time_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(name="getCurrentTime", description="Get the current date and time", category="system"),
        lambda args: "Current date and time: 2026-10-18 12:00:00",
    )
    return registry


def calendar_spec(permission: str | None = "calendar") -> ToolSpec:
    return ToolSpec(
        name="getCalendarEvents",
        description="Retrieve calendar events for a specific date range",
        parameters={
            "startDate": ToolParameter(type="string", description="Start date", required=True),
            "endDate": ToolParameter(type="string", description="End date", required=True),
            "limit": ToolParameter(type="integer", description="Maximum events"),
        },
        category="calendar",
        permission=permission,
    )

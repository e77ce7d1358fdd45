# tools.py
# Tool registry and the built-in tool set.
# The engine never calls these functions directly; everything goes through
# ToolDispatcher, which looks handlers up here by name.

import math
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterator, Union

from reasoning_loop.errors import ToolExecutionError
from reasoning_loop.models import ToolParameter, ToolSpec

ToolHandler = Callable[[dict], Union[str, Awaitable[str]]]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Ordered allowlist of tools. Registration order is prompt order."""

    def __init__(self) -> None:
        self._specs: dict[str, ToolSpec] = {}
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, spec: ToolSpec, handler: ToolHandler) -> None:
        if spec.name in self._specs:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._specs[spec.name] = spec
        self._handlers[spec.name] = handler

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def handler(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def specs(self) -> list[ToolSpec]:
        return list(self._specs.values())

    def names(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self.specs())


# ---------------------------------------------------------------------------
# Built-in tools
# ---------------------------------------------------------------------------


def _tool_get_current_time(args: dict) -> str:
    now = datetime.now().astimezone()
    return f"Current date and time: {now.strftime('%Y-%m-%d %H:%M:%S %Z')}"


def _tool_calculate_days_between(args: dict) -> str:
    start_raw = args["startDate"]
    end_raw = args["endDate"]
    try:
        start = _parse_date(start_raw)
        end = _parse_date(end_raw)
    except ValueError:
        return "Error: Invalid date format. Please use ISO format (YYYY-MM-DD)"
    days = math.ceil(abs((end - start).total_seconds()) / 86_400)
    return f"There are {days} days between {start_raw} and {end_raw}"


def _parse_date(value: str) -> datetime:
    # Offsets are dropped: day counts compare wall-clock dates.
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).replace(tzinfo=None)


def _tool_web_search(args: dict) -> str:
    from ddgs import DDGS

    query = args["query"].strip()
    if not query:
        raise ToolExecutionError("webSearch", "Search query is empty", field="query")
    limit = min(max(int(args.get("maxResults") or 5), 1), 10)

    try:
        hits = list(DDGS().text(query, max_results=limit))
    except Exception as exc:
        raise ToolExecutionError("webSearch", f"Web search failed: {exc}") from exc

    if not hits:
        return f'No web results for "{query}".'

    results = [
        f"{n}. {hit.get('title') or 'Untitled'}\n   {hit.get('body', '').strip()}\n   {hit.get('href', '')}"
        for n, hit in enumerate(hits, start=1)
    ]
    return f'Found {len(results)} web result(s) for "{query}":\n\n' + "\n\n".join(results)


BUILTIN_TOOLS: list[tuple[ToolSpec, ToolHandler]] = [
    (
        ToolSpec(
            name="getCurrentTime",
            description="Get the current date and time",
            category="system",
        ),
        _tool_get_current_time,
    ),
    (
        ToolSpec(
            name="calculateDaysBetween",
            description="Calculate the number of days between two dates",
            parameters={
                "startDate": ToolParameter(
                    type="string", description="Start date in ISO format (YYYY-MM-DD)", required=True
                ),
                "endDate": ToolParameter(
                    type="string", description="End date in ISO format (YYYY-MM-DD)", required=True
                ),
            },
            category="utility",
        ),
        _tool_calculate_days_between,
    ),
    (
        ToolSpec(
            name="echo",
            description="Repeat a message back verbatim",
            parameters={
                "message": ToolParameter(type="string", description="Text to echo", required=True),
            },
            category="utility",
        ),
        lambda args: args.get("message", ""),
    ),
    (
        ToolSpec(
            name="webSearch",
            description="Search the web and return the top results",
            parameters={
                "query": ToolParameter(type="string", description="Search query", required=True),
                "maxResults": ToolParameter(
                    type="integer", description="Maximum number of results, 1 to 10 (default 5)"
                ),
            },
            category="web",
            permission="network",
        ),
        _tool_web_search,
    ),
]


def default_registry(extra: list[tuple[ToolSpec, Any]] | None = None) -> ToolRegistry:
    """Registry holding the built-in tools, followed by any `extra` ones."""
    registry = ToolRegistry()
    for spec, handler in BUILTIN_TOOLS + list(extra or []):
        registry.register(spec, handler)
    return registry

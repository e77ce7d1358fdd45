# dispatcher.py
# Resolves, authorises, validates and runs one tool action.
#
# dispatch() is the only boundary the engine uses and it never raises a
# ToolError: every failure comes back as Observation text so the model can
# see it and correct course on the next iteration.

import asyncio
import inspect
from typing import Any, Callable

from reasoning_loop import display
from reasoning_loop.errors import (
    PermissionDeniedError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
)
from reasoning_loop.models import ToolAction, ToolSpec
from reasoning_loop.permissions import PermissionProvider, PermissionStatus, StaticPermissions
from reasoning_loop.tools import ToolRegistry

_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
}


def validate_args(spec: ToolSpec, args: dict[str, Any]) -> dict[str, Any]:
    """
    Check `args` against the tool's parameter schema.

    Required parameters must be present and non-null. Any declared parameter
    that is supplied must match its declared type. Undeclared keys pass
    through untouched. Raises ToolExecutionError naming the offending field.
    """
    for name, param in spec.parameters.items():
        value = args.get(name)
        if value is None:
            if param.required:
                raise ToolExecutionError(
                    spec.name,
                    f"Missing required parameter '{name}' for {spec.name}",
                    field=name,
                )
            continue
        check = _TYPE_CHECKS.get(param.type)
        if check is not None and not check(value):
            raise ToolExecutionError(
                spec.name,
                f"Parameter '{name}' for {spec.name} must be of type {param.type}, "
                f"got {type(value).__name__}",
                field=name,
            )
    return dict(args)


def format_tool_error(error: ToolError) -> str:
    return f"Error: {error}"


class ToolDispatcher:
    """
    Stateless bridge between parsed actions and registered handlers.

    `request_permissions` lets a denied permission be requested from the
    provider once per dispatch; an unavailable one is never requested.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        permissions: PermissionProvider | None = None,
        *,
        request_permissions: bool = False,
    ) -> None:
        self._registry = registry
        self._permissions = permissions if permissions is not None else StaticPermissions()
        self._request_permissions = request_permissions

    async def dispatch(self, action: ToolAction) -> str:
        try:
            return await self.invoke(action)
        except ToolError as exc:
            display.tool_failed(exc.tool, exc.kind, str(exc))
            return format_tool_error(exc)

    async def invoke(self, action: ToolAction) -> str:
        """Run the action. Raises ToolError; use dispatch() for observation text."""
        spec = self._registry.get(action.tool)
        if spec is None:
            available = ", ".join(self._registry.names()) or "none"
            raise ToolNotFoundError(
                action.tool,
                f"Tool '{action.tool}' is not available. Available tools: {available}",
            )

        await self._authorize(spec)
        args = validate_args(spec, action.args)
        handler = self._registry.handler(spec.name)

        try:
            if inspect.iscoroutinefunction(handler):
                result = await handler(args)
            else:
                # Sync handlers run off the loop so a deadline can still fire.
                result = await asyncio.to_thread(handler, args)
                if inspect.isawaitable(result):
                    result = await result
        except ToolError:
            raise
        except Exception as exc:
            raise ToolExecutionError(spec.name, f"{type(exc).__name__}: {exc}") from exc

        return "" if result is None else str(result)

    async def _authorize(self, spec: ToolSpec) -> None:
        if not spec.requires_permission:
            return

        permission = spec.permission
        try:
            status = self._permissions.check(permission)
            if status is PermissionStatus.GRANTED:
                return

            if status is PermissionStatus.UNAVAILABLE:
                raise PermissionDeniedError(
                    spec.name,
                    permission,
                    f"Permission '{permission}' is unavailable on this platform; '{spec.name}' cannot run",
                )

            if self._request_permissions and await self._permissions.request(permission):
                return
        except ToolError:
            raise
        except Exception as exc:
            # A provider that cannot answer (closed stdin, dead bridge) counts as a refusal.
            raise PermissionDeniedError(
                spec.name, permission, f"Permission check failed: {type(exc).__name__}: {exc}"
            ) from exc

        raise PermissionDeniedError(spec.name, permission)

# permissions.py
# Capability checks behind one interface.
#
# The dispatcher only ever talks to a PermissionProvider: check() answers
# from known state, request() may ask someone and suspend. Each adapter maps
# one environment (headless, terminal, tests) onto that contract.

import asyncio
from enum import Enum
from typing import Iterable, Protocol, runtime_checkable

from rich.prompt import Confirm

from reasoning_loop import display


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


@runtime_checkable
class PermissionProvider(Protocol):
    def check(self, permission: str) -> PermissionStatus: ...

    async def request(self, permission: str) -> bool: ...


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class StaticPermissions:
    """Fixed grants. Anything not listed is denied; `unavailable` never asks."""

    def __init__(
        self,
        granted: Iterable[str] = (),
        unavailable: Iterable[str] = (),
    ) -> None:
        self._granted = set(granted)
        self._unavailable = set(unavailable)

    def check(self, permission: str) -> PermissionStatus:
        if permission in self._unavailable:
            return PermissionStatus.UNAVAILABLE
        if permission in self._granted:
            return PermissionStatus.GRANTED
        return PermissionStatus.DENIED

    async def request(self, permission: str) -> bool:
        return self.check(permission) is PermissionStatus.GRANTED


class AllowAll:
    def check(self, permission: str) -> PermissionStatus:
        return PermissionStatus.GRANTED

    async def request(self, permission: str) -> bool:
        return True


class ConsolePermissions:
    """
    Asks on the terminal the first time a permission is needed.

    Answers are remembered for the lifetime of the provider, so a denied
    permission is not asked for twice.
    """

    def __init__(self, granted: Iterable[str] = ()) -> None:
        self._answers: dict[str, bool] = {p: True for p in granted}

    def check(self, permission: str) -> PermissionStatus:
        if self._answers.get(permission):
            return PermissionStatus.GRANTED
        return PermissionStatus.DENIED

    async def request(self, permission: str) -> bool:
        if permission in self._answers:
            return self._answers[permission]
        display.permission_prompt(permission)
        answer = await asyncio.to_thread(
            Confirm.ask, f"Allow the agent to use [bold]{permission}[/bold]?", default=False
        )
        self._answers[permission] = bool(answer)
        return self._answers[permission]

import pytest
from unittest.mock import MagicMock

from helpers import calendar_spec

from reasoning_loop.dispatcher import ToolDispatcher, validate_args
from reasoning_loop.errors import (
    PermissionDeniedError,
    ToolExecutionError,
    ToolNotFoundError,
)
from reasoning_loop.models import ToolAction, ToolParameter, ToolSpec
from reasoning_loop.permissions import PermissionStatus, StaticPermissions
from reasoning_loop.tools import ToolRegistry

ARGS = {"startDate": "2024-01-01", "endDate": "2024-01-07"}


class RecordingPermissions:
    """Provider double that reports a fixed status and records requests."""

    def __init__(self, status: PermissionStatus, grant_on_request: bool = False) -> None:
        self.status = status
        self.grant_on_request = grant_on_request
        self.requested: list[str] = []

    def check(self, permission):
        return self.status

    async def request(self, permission):
        self.requested.append(permission)
        return self.grant_on_request


def _registry(handler, spec=None) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(spec or calendar_spec(), handler)
    return registry


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_tool_becomes_observation():
    dispatcher = ToolDispatcher(_registry(MagicMock()))
    observation = await dispatcher.dispatch(ToolAction(tool="launchRocket"))
    assert observation.startswith("Error: Tool 'launchRocket' is not available")
    assert "getCalendarEvents" in observation


@pytest.mark.asyncio
async def test_invoke_raises_not_found():
    dispatcher = ToolDispatcher(ToolRegistry())
    with pytest.raises(ToolNotFoundError):
        await dispatcher.invoke(ToolAction(tool="missing"))


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_permission_denied_short_circuits_handler():
    handler = MagicMock(return_value="events")
    dispatcher = ToolDispatcher(_registry(handler), StaticPermissions())

    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert observation.startswith("Error: Permission 'calendar'")
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_permission_granted_runs_handler():
    handler = MagicMock(return_value="2 events")
    dispatcher = ToolDispatcher(_registry(handler), StaticPermissions(granted=["calendar"]))

    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert observation == "2 events"
    handler.assert_called_once_with(ARGS)


@pytest.mark.asyncio
async def test_denied_permission_is_requested_when_enabled():
    handler = MagicMock(return_value="ok")
    permissions = RecordingPermissions(PermissionStatus.DENIED, grant_on_request=True)
    dispatcher = ToolDispatcher(_registry(handler), permissions, request_permissions=True)

    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert observation == "ok"
    assert permissions.requested == ["calendar"]


@pytest.mark.asyncio
async def test_denied_permission_is_not_requested_by_default():
    permissions = RecordingPermissions(PermissionStatus.DENIED, grant_on_request=True)
    dispatcher = ToolDispatcher(_registry(MagicMock()), permissions)

    with pytest.raises(PermissionDeniedError) as excinfo:
        await dispatcher.invoke(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert excinfo.value.permission == "calendar"
    assert permissions.requested == []


@pytest.mark.asyncio
async def test_refused_request_is_permission_denied():
    handler = MagicMock()
    permissions = RecordingPermissions(PermissionStatus.DENIED, grant_on_request=False)
    dispatcher = ToolDispatcher(_registry(handler), permissions, request_permissions=True)

    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert "not granted" in observation
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_unavailable_permission_is_never_requested():
    handler = MagicMock()
    permissions = RecordingPermissions(PermissionStatus.UNAVAILABLE, grant_on_request=True)
    dispatcher = ToolDispatcher(_registry(handler), permissions, request_permissions=True)

    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert "unavailable" in observation
    assert permissions.requested == []
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_tool_without_permission_ignores_provider():
    handler = MagicMock(return_value="fine")
    dispatcher = ToolDispatcher(_registry(handler, calendar_spec(permission=None)), StaticPermissions())
    assert await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS)) == "fine"


class ClosedStdinPermissions(RecordingPermissions):
    """Provider whose interactive request fails, as Confirm.ask does on closed stdin."""

    async def request(self, permission):
        self.requested.append(permission)
        raise EOFError("stdin closed")


@pytest.mark.asyncio
async def test_failing_permission_request_becomes_denial():
    handler = MagicMock()
    permissions = ClosedStdinPermissions(PermissionStatus.DENIED)
    dispatcher = ToolDispatcher(_registry(handler), permissions, request_permissions=True)

    with pytest.raises(PermissionDeniedError) as excinfo:
        await dispatcher.invoke(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert str(excinfo.value) == "Permission check failed: EOFError: stdin closed"
    assert isinstance(excinfo.value.__cause__, EOFError)
    assert permissions.requested == ["calendar"]
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_failing_permission_check_becomes_observation():
    permissions = MagicMock()
    permissions.check.side_effect = RuntimeError("bridge gone")
    dispatcher = ToolDispatcher(_registry(MagicMock()), permissions)

    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert observation == "Error: Permission check failed: RuntimeError: bridge gone"


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_required_argument_names_the_field():
    handler = MagicMock()
    dispatcher = ToolDispatcher(_registry(handler, calendar_spec(permission=None)))

    with pytest.raises(ToolExecutionError) as excinfo:
        await dispatcher.invoke(ToolAction(tool="getCalendarEvents", args={"startDate": "2024-01-01"}))

    assert excinfo.value.field == "endDate"
    assert "endDate" in str(excinfo.value)
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_mistyped_argument_becomes_observation():
    dispatcher = ToolDispatcher(_registry(MagicMock(), calendar_spec(permission=None)))
    observation = await dispatcher.dispatch(
        ToolAction(tool="getCalendarEvents", args={"startDate": 20240101, "endDate": "2024-01-07"})
    )
    assert observation.startswith("Error: Parameter 'startDate'")
    assert "string" in observation


def test_validate_args_checks_optional_types_when_present():
    spec = calendar_spec()
    with pytest.raises(ToolExecutionError) as excinfo:
        validate_args(spec, {**ARGS, "limit": True})
    assert excinfo.value.field == "limit"


def test_validate_args_allows_absent_optional_and_extra_keys():
    spec = calendar_spec()
    assert validate_args(spec, {**ARGS, "verbose": True}) == {**ARGS, "verbose": True}


@pytest.mark.parametrize(
    "type_, good, bad",
    [
        ("number", 1.5, "1.5"),
        ("integer", 3, 3.0),
        ("boolean", False, 0),
        ("object", {}, []),
        ("array", [], {}),
    ],
)
def test_validate_args_type_table(type_, good, bad):
    spec = ToolSpec(name="t", description="t", parameters={"x": ToolParameter(type=type_, required=True)})
    assert validate_args(spec, {"x": good}) == {"x": good}
    with pytest.raises(ToolExecutionError):
        validate_args(spec, {"x": bad})


# ---------------------------------------------------------------------------
# Handler invocation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_handler_exception_becomes_observation():
    handler = MagicMock(side_effect=RuntimeError("calendar offline"))
    dispatcher = ToolDispatcher(_registry(handler, calendar_spec(permission=None)))

    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))

    assert observation == "Error: RuntimeError: calendar offline"


@pytest.mark.asyncio
async def test_handler_tool_error_keeps_its_message():
    def handler(args):
        raise ToolExecutionError("getCalendarEvents", "No calendar selected")

    dispatcher = ToolDispatcher(_registry(handler, calendar_spec(permission=None)))
    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))
    assert observation == "Error: No calendar selected"


@pytest.mark.asyncio
async def test_async_handler_is_awaited():
    async def handler(args):
        return f"events from {args['startDate']}"

    dispatcher = ToolDispatcher(_registry(handler, calendar_spec(permission=None)))
    observation = await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS))
    assert observation == "events from 2024-01-01"


@pytest.mark.asyncio
async def test_non_string_results_are_stringified():
    dispatcher = ToolDispatcher(_registry(MagicMock(return_value=None), calendar_spec(permission=None)))
    assert await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS)) == ""

    dispatcher = ToolDispatcher(_registry(MagicMock(return_value=3), calendar_spec(permission=None)))
    assert await dispatcher.dispatch(ToolAction(tool="getCalendarEvents", args=ARGS)) == "3"

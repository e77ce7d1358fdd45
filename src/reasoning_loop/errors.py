# errors.py
# Exception taxonomy for the reasoning loop.
#
# AgentError terminates run() and reaches the caller.
# ToolError never leaves the dispatcher; it is rendered as Observation text.


# ---------------------------------------------------------------------------
# Agent errors (terminal)
# ---------------------------------------------------------------------------


class AgentError(Exception):
    """Base class for failures that end a run."""

    kind = "agent_error"

    def __init__(self, message: str, steps: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.steps = tuple(steps)


class AgentTimeoutError(AgentError):
    """Raised when a run exceeds its wall-clock budget."""

    kind = "timeout"

    def __init__(self, timeout_ms: int, steps: tuple[str, ...] = ()) -> None:
        super().__init__(f"Agent execution timeout after {timeout_ms} ms", steps)
        self.timeout_ms = timeout_ms


class MaxIterationsExceededError(AgentError):
    """Raised when the model never emits a final answer within the budget."""

    kind = "max_iterations_exceeded"

    def __init__(self, limit: int, steps: tuple[str, ...] = ()) -> None:
        super().__init__(
            f"Agent reached maximum iterations ({limit}) without providing a final answer",
            steps,
        )
        self.limit = limit


class ServiceFailureError(AgentError):
    """Raised when the model call keeps failing after every retry."""

    kind = "service_failure"


class InvalidConfigurationError(AgentError):
    """Raised for invalid AgentConfig values or an unusable run request."""

    kind = "invalid_configuration"


# ---------------------------------------------------------------------------
# Tool errors (absorbed into the transcript)
# ---------------------------------------------------------------------------


class ToolError(Exception):
    """Base class for tool dispatch failures."""

    kind = "tool_error"

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(message)
        self.tool = tool


class ToolNotFoundError(ToolError):
    """Raised when the model requests a tool absent from the registry."""

    kind = "not_found"


class PermissionDeniedError(ToolError):
    """Raised when a tool's permission is not granted. The handler never runs."""

    kind = "permission_denied"

    def __init__(self, tool: str, permission: str, message: str | None = None) -> None:
        super().__init__(
            tool,
            message or f"Permission '{permission}' is required to use '{tool}' and was not granted",
        )
        self.permission = permission


class ToolExecutionError(ToolError):
    """Raised for bad arguments or a failing handler."""

    kind = "execution_failed"

    def __init__(self, tool: str, message: str, field: str | None = None) -> None:
        super().__init__(tool, message)
        self.field = field

# models.py
# Data contracts for the reasoning loop.
# No business logic lives here. Pure schema and validation.

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from reasoning_loop.errors import InvalidConfigurationError

ToolCategory = Literal[
    "memory",
    "calendar",
    "contacts",
    "communication",
    "media",
    "location",
    "system",
    "utility",
    "web",
]


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolParameter(BaseModel):
    """One entry of a tool's parameter schema."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="string, number, integer, boolean, object or array.")
    description: str = ""
    required: bool = False


class ToolSpec(BaseModel):
    """A named, schema-described capability the model may invoke."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique registry key.")
    description: str
    parameters: dict[str, ToolParameter] = Field(default_factory=dict)
    category: ToolCategory = "utility"
    permission: str | None = Field(
        default=None, description="Capability that must be granted before the handler runs."
    )

    @property
    def requires_permission(self) -> bool:
        return self.permission is not None


class ToolAction(BaseModel):
    """A structured request from the model to run one tool."""

    tool: str = Field(..., min_length=1)
    args: dict[str, Any] = Field(default_factory=dict)
    action: str | None = Field(default=None, description="Free-text intent, if the model gave one.")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class AgentConfig(BaseModel):
    """Executor settings. Built once, read-only afterwards."""

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=10, gt=0)
    timeout_ms: int = Field(default=60_000, gt=0)
    retry_attempts: int = Field(default=3, ge=0, description="Model-call retries only.")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    retry_backoff_ms: int = Field(default=500, ge=0)
    retry_backoff_cap_ms: int = Field(default=8_000, ge=0)
    iteration_pause_ms: int = Field(default=0, ge=0)
    unparsed_policy: Literal["strict", "permissive"] = "strict"

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
            raise InvalidConfigurationError(f"Invalid agent configuration: {fields}") from exc


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


class EntryKind(str, Enum):
    THOUGHT = "Thought"
    ACTION = "Action"
    OBSERVATION = "Observation"
    FINAL_ANSWER = "Final Answer"


class HistoryEntry(BaseModel):
    """Immutable transcript line. `index` is the append position."""

    model_config = ConfigDict(frozen=True)

    kind: EntryKind
    text: str
    index: int = Field(..., ge=0)

    def render(self) -> str:
        return f"{self.kind.value}: {self.text}"


# ---------------------------------------------------------------------------
# Status and results
# ---------------------------------------------------------------------------


class AgentStatus(BaseModel):
    """Live progress of a run, as seen by status subscribers."""

    is_thinking: bool = False
    current_action: str | None = None
    tools_in_use: list[str] = Field(default_factory=list)
    step: str | None = None
    progress: float = 0.0

    @field_validator("progress")
    @classmethod
    def _clamp_progress(cls, value: float) -> float:
        return min(1.0, max(0.0, value))


class ExecutionResult(BaseModel):
    """What run() hands back to the caller."""

    success: bool
    final_answer: str
    steps: list[str] = Field(default_factory=list)
    execution_time: float = Field(default=0.0, description="Wall-clock duration in milliseconds.")
    total_steps: int = 0
    iterations: int = 0

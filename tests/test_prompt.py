from helpers import calendar_spec

from reasoning_loop.models import ToolSpec
from reasoning_loop.prompt import NO_TOOLS, PromptBuilder
from reasoning_loop.tools import ToolRegistry


def _registry(*specs) -> ToolRegistry:
    registry = ToolRegistry()
    for spec in specs:
        registry.register(spec, lambda args: "")
    return registry


def test_tools_render_in_registration_order():
    registry = _registry(
        ToolSpec(name="zeta", description="last letter"),
        ToolSpec(name="alpha", description="first letter"),
    )
    prompt = PromptBuilder().build(registry)
    assert prompt.index("zeta: last letter") < prompt.index("alpha: first letter")


def test_parameters_are_annotated():
    prompt = PromptBuilder().build(_registry(calendar_spec()))
    assert "getCalendarEvents: Retrieve calendar events for a specific date range" in prompt
    assert "    startDate (string): Start date (required)" in prompt
    assert "    limit (integer): Maximum events (optional)" in prompt


def test_tool_without_parameters_says_none():
    description = PromptBuilder.describe_tool(ToolSpec(name="getCurrentTime", description="now"))
    assert description == "getCurrentTime: now\n  Parameters:\n    None"


def test_build_is_deterministic_and_has_instructions():
    registry = _registry(calendar_spec())
    builder = PromptBuilder()
    prompt = builder.build(registry)
    assert prompt == builder.build(registry)
    assert 'Action: {"tool": "toolName", "action": "actionDescription", "args": {...}}' in prompt
    assert "Final Answer:" in prompt


def test_empty_registry():
    assert NO_TOOLS in PromptBuilder().build(ToolRegistry())


def test_build_accepts_plain_spec_lists():
    spec = calendar_spec()
    assert PromptBuilder().build([spec]) == PromptBuilder().build(_registry(spec))


def test_compose_appends_transcript_in_order():
    prompt = PromptBuilder.compose("SYSTEM", "What now?", ["Thought: a", "Observation: b"])
    assert prompt == "SYSTEM\n\nUser Query: What now?\n\nThought: a\nObservation: b\n"


def test_compose_without_transcript():
    assert PromptBuilder.compose("SYSTEM", "Q", []) == "SYSTEM\n\nUser Query: Q\n\n"

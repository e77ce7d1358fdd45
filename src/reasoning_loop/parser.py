# parser.py
# Classifies raw model text into a typed outcome.
#
# Pure and total: classify() never raises and always returns the same
# outcome for the same input. Malformed output is the Invalid outcome,
# not an exception. The engine recovers from it inside the transcript.
#
# Precedence:
#   "Final Answer:" anywhere → FinalAnswer   (explicit termination wins)
#   "Action:"               → Action | Invalid
#   "Thought:"              → ThoughtOnly
#   anything else           → policy (strict → Invalid, permissive → FinalAnswer)

import json
import re
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from reasoning_loop.models import ToolAction

UnparsedPolicy = Literal["strict", "permissive"]

NO_FINAL_ANSWER = "No final answer provided"

_FINAL_RE = re.compile(r"Final Answer:\s*")
_ACTION_RE = re.compile(r"\bAction:[ \t]*")
_THOUGHT_RE = re.compile(r"\bThought:\s*")
_ARGS_RE = re.compile(r"\b(?:Args|Action Input):\s*")
_TOOL_NAME_RE = re.compile(r"([A-Za-z_][\w.\-]*)")
_FENCE_RE = re.compile(r"^```(?:json)?\s*")


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class FinalAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    thought: str | None = None


class Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: ToolAction
    thought: str | None = None


class ThoughtOnly(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str


class Invalid(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


ParseOutcome = Union[FinalAnswer, Action, ThoughtOnly, Invalid]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _extract_object(text: str, start: int) -> str | None:
    """Return the balanced {...} block opening at text[start], or None."""
    depth = 0
    quote = None
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _quote_bare_value(match: re.Match) -> str:
    word = match.group(1)
    if word in ("true", "false", "null"):
        return f": {word}"
    return f': "{word}"'


def _repair_json(raw: str) -> str:
    """Best-effort fix for the JSON mistakes models make most often."""
    fixed = raw.replace("'", '"')
    fixed = re.sub(r"([{,]\s*)([A-Za-z_][\w\-]*)\s*:", r'\1"\2":', fixed)
    fixed = re.sub(r":\s*([A-Za-z_][\w.\-]*)\s*(?=[,}\]])", _quote_bare_value, fixed)
    fixed = re.sub(r",\s*([}\]])", r"\1", fixed)
    return fixed


def _load_object(raw: str) -> dict | None:
    for candidate in (raw, _repair_json(raw)):
        try:
            data = json.loads(candidate, strict=False)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _thought_between(text: str, end: int) -> str | None:
    match = _THOUGHT_RE.search(text, 0, end)
    if not match:
        return None
    stop = _ACTION_RE.search(text, match.end(), end)
    thought = text[match.end() : stop.start() if stop else end].strip()
    return thought or None


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class ResponseParser:
    """
    Turns model text into FinalAnswer, Action, ThoughtOnly or Invalid.

    `policy` decides what happens to text carrying none of the markers:
    "strict" classifies it as Invalid so the model is asked to reformat,
    "permissive" accepts the whole text as the final answer.
    """

    def __init__(self, policy: UnparsedPolicy = "strict") -> None:
        if policy not in ("strict", "permissive"):
            raise ValueError(f"Unknown unparsed-text policy: {policy!r}")
        self.policy = policy

    def classify(self, text: str) -> ParseOutcome:
        if not isinstance(text, str) or not text.strip():
            return Invalid(reason="Empty response.")

        final = _FINAL_RE.search(text)
        if final:
            content = text[final.end() :].strip()
            return FinalAnswer(
                content=content or NO_FINAL_ANSWER,
                thought=_thought_between(text, final.start()),
            )

        action = _ACTION_RE.search(text)
        if action:
            return self._classify_action(text, action)

        thought = _THOUGHT_RE.search(text)
        if thought:
            content = text[thought.end() :].strip()
            if not content:
                return Invalid(reason="Thought is empty.")
            return ThoughtOnly(content=content)

        if self.policy == "permissive":
            return FinalAnswer(content=text.strip())
        return Invalid(reason="No Thought, Action or Final Answer marker found.")

    def _classify_action(self, text: str, marker: re.Match) -> ParseOutcome:
        thought = _thought_between(text, marker.start())
        rest = _FENCE_RE.sub("", text[marker.end() :].lstrip())

        if rest.startswith("{"):
            raw = _extract_object(rest, 0)
            if raw is None:
                return Invalid(reason="Action JSON is not closed.")
            data = _load_object(raw)
            if data is None:
                return Invalid(reason=f"Action JSON is malformed: {raw}")
            tool = data.get("tool")
            args = data.get("args", {})
            intent = data.get("action")
        else:
            name = _TOOL_NAME_RE.match(rest)
            if not name:
                return Invalid(reason="Action does not name a tool.")
            tool = name.group(1)
            intent = None
            args = {}
            args_marker = _ARGS_RE.search(rest, name.end())
            if args_marker:
                brace = rest.find("{", args_marker.end())
                raw = _extract_object(rest, brace) if brace != -1 else None
                args = _load_object(raw) if raw else None
                if args is None:
                    return Invalid(reason="Action arguments are not a valid JSON object.")

        if not isinstance(tool, str) or not tool.strip():
            return Invalid(reason='Action must name a tool in the "tool" field.')
        if args is None:
            args = {}
        if not isinstance(args, dict):
            return Invalid(reason='Action "args" must be a JSON object.')

        try:
            tool_action = ToolAction(
                tool=tool.strip(),
                args=args,
                action=intent if isinstance(intent, str) else None,
            )
        except ValidationError as exc:
            return Invalid(reason=f"Action is malformed: {exc.error_count()} error(s).")
        return Action(action=tool_action, thought=thought)


def classify(text: str, policy: UnparsedPolicy = "strict") -> ParseOutcome:
    """Module-level shortcut for one-off classification."""
    return ResponseParser(policy).classify(text)

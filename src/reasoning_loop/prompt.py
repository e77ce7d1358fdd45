# prompt.py
# System prompt rendering and per-iteration prompt composition.
# Deterministic: the same registry always renders the same prompt.

from typing import Iterable

from reasoning_loop.models import ToolSpec
from reasoning_loop.tools import ToolRegistry

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are an intelligent AI assistant with access to various tools. Your goal is \
to help users by thinking through problems step by step and using available \
tools when needed.

AVAILABLE TOOLS:
{tools}

INSTRUCTIONS:
1. Think step by step about the user's request
2. Use the following format for your responses:

Thought: [Your reasoning about what to do next]
Action: {{"tool": "toolName", "action": "actionDescription", "args": {{...}}}}
Observation: [This will be filled by the system after the action executes]

3. Continue the Thought-Action-Observation cycle until you can provide a final answer
4. When you have enough information to answer the user's question, respond with:

Final Answer: [Your complete response to the user]

IMPORTANT RULES:
- Always start with a Thought
- Actions must be valid JSON objects with "tool", "action", and "args" fields
- Only use tools that are listed in the AVAILABLE TOOLS section
- Emit at most one Action per response and never write the Observation yourself
- If a tool action fails, try alternative approaches
- Always end with "Final Answer:" when you can answer the user's question\
"""

NO_TOOLS = "(no tools are available, answer from your own knowledge)"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class PromptBuilder:
    def build(self, registry: ToolRegistry | Iterable[ToolSpec]) -> str:
        specs = registry.specs() if isinstance(registry, ToolRegistry) else list(registry)
        tools = "\n\n".join(self.describe_tool(spec) for spec in specs) or NO_TOOLS
        return SYSTEM_PROMPT.format(tools=tools)

    @staticmethod
    def describe_tool(spec: ToolSpec) -> str:
        params = "\n".join(
            f"    {name} ({param.type}): {param.description}"
            f"{' (required)' if param.required else ' (optional)'}"
            for name, param in spec.parameters.items()
        )
        return f"{spec.name}: {spec.description}\n  Parameters:\n{params or '    None'}"

    @staticmethod
    def compose(system_prompt: str, query: str, transcript: Iterable[str]) -> str:
        """Full model input for one iteration: system prompt, query, transcript so far."""
        prompt = f"{system_prompt}\n\nUser Query: {query}\n\n"
        lines = list(transcript)
        if lines:
            prompt += "\n".join(lines) + "\n"
        return prompt

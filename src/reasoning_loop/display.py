# display.py
# All terminal output for the reasoning loop.
#
# This module owns presentation entirely. engine.py never formats strings;
# it calls named functions here. Swap this file to change the entire UI.
#
# Colour language:
#   cyan: run lifecycle / routing events
#   blue: model calls and responses
#   yellow: retries, recoverable anomalies
#   green: success / confirmed
#   red: failures and halts
#   magenta: ReACT internals (Thought / Action / Observation)

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

console = Console()


def configure(quiet: bool = False) -> None:
    console.quiet = quiet


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return escape(value[:max_len]) + "…"
    return escape(value)


# ---------------------------------------------------------------------------
# Run entry
# ---------------------------------------------------------------------------


def banner(model: str, tools: list[str], max_iterations: int, timeout_ms: int) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Reasoning Loop[/bold cyan]\n"
            "[dim]Thought → Action → Observation until a Final Answer[/dim]\n\n"
            f"[dim]Model      :[/dim] [white]{escape(model)}[/white]\n"
            f"[dim]Tools      :[/dim] [white]{escape(', '.join(tools)) or 'none'}[/white]\n"
            f"[dim]Budget     :[/dim] [white]{max_iterations} iterations / {timeout_ms} ms[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def prompt_received(query: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW RUN[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(query)}[/white]",
            title=_label("USER QUERY", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Iterations and model calls
# ---------------------------------------------------------------------------


def iteration_start(iteration: int, total: int) -> None:
    console.print()
    console.print(f"[bold cyan]  ITERATION [{iteration}/{total}][/bold cyan]")


def model_retry(attempt: int, attempts: int, error: BaseException, delay_s: float) -> None:
    console.print(
        f"  [yellow]↻ Model call failed[/yellow] [dim]({attempt}/{attempts})[/dim]"
        f"  [dim]{type(error).__name__}: {_mono(str(error), 80)}[/dim]"
        f"  [yellow]retrying in {delay_s:.2f}s[/yellow]"
    )


def model_token(fragment: str) -> None:
    console.print(fragment, end="", style="blue", markup=False, highlight=False)


def model_stream_discarded() -> None:
    console.print()
    console.print("  [yellow]↺ Partial response discarded[/yellow]")


# ---------------------------------------------------------------------------
# ReACT internals
# ---------------------------------------------------------------------------


def react_thought(thought: str) -> None:
    console.print(f"  [magenta]Thought[/magenta]  [dim white]{_mono(thought, 200)}[/dim white]")


def react_action(tool: str, args: dict) -> None:
    console.print(
        f"  [magenta]Action[/magenta]   [bold white]{escape(tool)}[/bold white]"
        f"  [dim]{escape(json.dumps(args, ensure_ascii=False))}[/dim]"
    )


def react_observation(observation: str) -> None:
    console.print(f"  [magenta]Observe[/magenta]  [white]{_mono(observation, 140)}[/white]")


def invalid_response(reason: str) -> None:
    console.print(
        f"  [yellow]⚠ Unrecognised response format[/yellow]  [dim]{_mono(reason, 120)}[/dim]"
    )


def tool_failed(tool: str, kind: str, message: str) -> None:
    console.print(
        f"  [red]✗ Tool[/red] [bold white]{escape(tool)}[/bold white] [red]{kind}[/red]"
        f"  [dim]{_mono(message, 120)}[/dim]"
    )


def permission_prompt(permission: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]The agent wants to use a tool that needs "
            f"[yellow]{escape(permission)}[/yellow] access.[/bold white]",
            title=_label("PERMISSION", "yellow"),
            border_style="yellow",
            padding=(0, 2),
        )
    )


def status_observer(delta: dict[str, Any]) -> None:
    """Status subscriber that mirrors progress updates onto the console."""
    parts = []
    if "progress" in delta:
        parts.append(f"[cyan]{delta['progress'] * 100:5.1f}%[/cyan]")
    if delta.get("current_action"):
        parts.append(f"[white]{escape(str(delta['current_action']))}[/white]")
    if delta.get("step"):
        parts.append(f"[dim]{escape(str(delta['step']))}[/dim]")
    if parts:
        console.print("  [dim]status[/dim] " + "  ".join(parts))


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------


def execution_summary(steps: list[str], iterations: int, elapsed_ms: float) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("#", justify="center", width=4)
    table.add_column("Entry", style="dim white")

    for index, line in enumerate(steps):
        table.add_row(str(index), _mono(line, 100))

    console.print(
        Panel(
            table,
            title="[dim]TRANSCRIPT[/dim]",
            subtitle=f"[dim]{iterations} iteration(s) · {elapsed_ms:.0f} ms[/dim]",
            border_style="dim",
            padding=(0, 1),
        )
    )


def final_result(result: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(result)}[/white]",
            title=_label("FINAL ANSWER", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()

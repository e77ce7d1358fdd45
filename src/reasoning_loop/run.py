# run.py
# Entry point. Config and wiring only, no logic lives here.
#
# Swap the model string for any OpenRouter-supported model.
# https://openrouter.ai/models

import argparse
import asyncio
import sys

from reasoning_loop import display
from reasoning_loop.client import OpenAIModel
from reasoning_loop.config import load_config, model_name
from reasoning_loop.engine import ReasoningEngine
from reasoning_loop.errors import InvalidConfigurationError
from reasoning_loop.permissions import AllowAll, ConsolePermissions
from reasoning_loop.tools import default_registry

# Demo queries, used when none is given on the command line.
PROMPTS = [
    "What is the current date and time?",
    "How many days are there between 2024-02-01 and 2024-03-01?",
    "Search the web for the latest Python release and tell me its version number.",
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reasoning-loop",
        description="Run a Thought → Action → Observation agent against a query.",
    )
    parser.add_argument("query", nargs="*", help="Question for the agent. Runs the demo prompts if omitted.")
    parser.add_argument("--model", default=None, help="OpenRouter model string.")
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument("--timeout-ms", type=int, default=None)
    parser.add_argument("--retry-attempts", type=int, default=None)
    parser.add_argument(
        "--permissive",
        action="store_true",
        help="Accept unformatted model output as the final answer instead of asking to reformat.",
    )
    parser.add_argument("--yes", action="store_true", help="Grant every tool permission without asking.")
    parser.add_argument("--stream", action="store_true", help="Print model output as it streams.")
    parser.add_argument("--status", action="store_true", help="Print status updates.")
    parser.add_argument("--quiet", action="store_true", help="Only print the final answer.")
    return parser


async def _run_all(engine: ReasoningEngine, queries: list[str]) -> bool:
    ok = True
    for query in queries:
        result = await engine.execute(query)
        ok = ok and result.success
        print(f"\n[RESULT]\n{result.final_answer}\n")
    return ok


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    display.configure(quiet=args.quiet)

    try:
        config = load_config(
            max_iterations=args.max_iterations,
            timeout_ms=args.timeout_ms,
            retry_attempts=args.retry_attempts,
            unparsed_policy="permissive" if args.permissive else None,
        )
    except InvalidConfigurationError as exc:
        display.halt(str(exc))
        return 2

    registry = default_registry()
    model = OpenAIModel(args.model or model_name(), temperature=config.temperature)
    engine = ReasoningEngine(
        model,
        registry,
        config,
        permissions=AllowAll() if args.yes else ConsolePermissions(),
        request_permissions=True,
    )
    if args.stream:
        engine.set_token_callback(display.model_token, on_discard=display.model_stream_discarded)
    if args.status:
        engine.subscribe(display.status_observer)

    display.banner(model.model, registry.names(), config.max_iterations, config.timeout_ms)

    queries = [" ".join(args.query)] if args.query else PROMPTS
    ok = asyncio.run(_run_all(engine, queries))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())

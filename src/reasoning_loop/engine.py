# engine.py
# Reasoning loop executor.
#
# The engine is the kernel. The model is a passive responder: this class
# owns all control flow, the transcript, status and the iteration budget.
# Tools are reached only through the dispatcher.
#
# Control flow per run:
#   reset transcript + status → build system prompt (once)
#   → [ compose prompt → model call (with retries) → classify
#       → FinalAnswer: return | Action: dispatch, observe | Thought | Invalid ]
#   → MaxIterationsExceeded
# The whole loop races a wall-clock deadline.
#
# All terminal output is delegated to display.py. No formatting here.

import asyncio
import json
import time
from typing import Any, Callable, Mapping

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from reasoning_loop import display
from reasoning_loop.client import ModelClient
from reasoning_loop.dispatcher import ToolDispatcher
from reasoning_loop.errors import (
    AgentError,
    AgentTimeoutError,
    InvalidConfigurationError,
    MaxIterationsExceededError,
    ServiceFailureError,
)
from reasoning_loop.history import HistoryLog
from reasoning_loop.models import (
    AgentConfig,
    AgentStatus,
    EntryKind,
    ExecutionResult,
    HistoryEntry,
)
from reasoning_loop.parser import Action, FinalAnswer, ResponseParser, ThoughtOnly
from reasoning_loop.permissions import PermissionProvider
from reasoning_loop.prompt import PromptBuilder
from reasoning_loop.status import StatusEmitter, StatusSubscriber
from reasoning_loop.tools import ToolRegistry

INVALID_FORMAT_OBSERVATION = (
    "Invalid response format. Please follow the Thought-Action-Observation format."
)

ERROR_ANSWER_PREFIX = "I encountered an error while processing your request: "

# Progress bands: [0, 0.3) setup, [0.3, 0.9] iterations, [0.9, 1.0] finalisation.
_ITERATION_BAND_START = 0.3
_ITERATION_BAND_WIDTH = 0.6


class ReasoningEngine:
    """
    Drives Thought → Action → Observation until a final answer.

    One engine serves one run at a time: concurrent run() calls on the same
    instance queue up behind an internal lock. Create one engine per session
    to run sessions in parallel.

    Example:
        engine = ReasoningEngine(OpenAIModel("anthropic/claude-3.5-haiku"), default_registry())
        result = asyncio.run(engine.run("How many days until 2030-01-01?"))
    """

    def __init__(
        self,
        model: ModelClient,
        registry: ToolRegistry,
        config: AgentConfig | Mapping[str, Any] | None = None,
        *,
        permissions: PermissionProvider | None = None,
        request_permissions: bool = False,
        parser: ResponseParser | None = None,
        emitter: StatusEmitter | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        if config is None:
            config = AgentConfig()
        elif isinstance(config, Mapping):
            config = AgentConfig(**config)
        elif not isinstance(config, AgentConfig):
            raise InvalidConfigurationError(f"Unsupported config type: {type(config).__name__}")

        self._config = config
        self._model = model
        self._registry = registry
        self._dispatcher = ToolDispatcher(
            registry, permissions, request_permissions=request_permissions
        )
        self._parser = parser if parser is not None else ResponseParser(config.unparsed_policy)
        self._emitter = emitter if emitter is not None else StatusEmitter()
        self._prompts = prompt_builder if prompt_builder is not None else PromptBuilder()
        self._history = HistoryLog()
        self._token_callback: Callable[[str], None] | None = None
        self._discard_callback: Callable[[], None] | None = None
        self._iterations = 0
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def emitter(self) -> StatusEmitter:
        return self._emitter

    def history(self) -> tuple[str, ...]:
        """Rendered transcript of the current (or last) run."""
        return self._history.lines()

    def transcript(self) -> tuple[HistoryEntry, ...]:
        return self._history.snapshot()

    def status(self) -> AgentStatus:
        return self._emitter.current()

    def reset_status(self) -> None:
        self._emitter.reset()

    def set_status_callback(self, callback: StatusSubscriber | None) -> None:
        self._emitter.set_subscriber(callback)

    def subscribe(self, callback: StatusSubscriber) -> Callable[[], None]:
        return self._emitter.subscribe(callback)

    def set_token_callback(
        self,
        callback: Callable[[str], None] | None,
        on_discard: Callable[[], None] | None = None,
    ) -> None:
        """
        Receive streamed response fragments. Has no effect on control flow.

        If an attempt fails after some of its fragments were forwarded,
        `on_discard` is called before the error propagates (and before any
        retry streams again), so a display can drop the partial text.
        """
        self._token_callback = callback
        self._discard_callback = on_discard

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(self, query: str) -> ExecutionResult:
        """
        Run the loop for `query`.

        Raises AgentTimeoutError, MaxIterationsExceededError,
        ServiceFailureError, or InvalidConfigurationError for a blank query.
        Tool failures and malformed model output never raise; they land in
        the transcript.
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidConfigurationError("Query must be a non-empty string")

        async with self._lock:
            return await self._run(query)

    async def execute(self, query: str) -> ExecutionResult:
        """Like run(), but agent failures come back as an unsuccessful result."""
        started = time.monotonic()
        try:
            return await self.run(query)
        except AgentError as exc:
            steps = list(exc.steps)
            return ExecutionResult(
                success=False,
                final_answer=f"{ERROR_ANSWER_PREFIX}{exc}",
                steps=steps,
                execution_time=(time.monotonic() - started) * 1000,
                total_steps=len(steps),
                iterations=0 if isinstance(exc, InvalidConfigurationError) else self._iterations,
            )

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def _run(self, query: str) -> ExecutionResult:
        started = time.monotonic()
        self._history.clear()
        self._iterations = 0
        self._emitter.reset()
        self._emitter.emit(
            is_thinking=True,
            current_action="Initializing...",
            step="Starting reasoning process",
            progress=0.0,
            tools_in_use=[],
        )
        display.prompt_received(query)

        try:
            answer = await asyncio.wait_for(
                self._reason(query), timeout=self._config.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            error = AgentTimeoutError(self._config.timeout_ms, self._history.lines())
            self._fail(error)
            raise error from None
        except AgentError as exc:
            exc.steps = self._history.lines()
            self._fail(exc)
            raise

        elapsed_ms = (time.monotonic() - started) * 1000
        self._emitter.emit(
            is_thinking=False,
            current_action=None,
            step="Complete",
            progress=1.0,
            tools_in_use=[],
        )
        steps = list(self._history.lines())
        display.execution_summary(steps, self._iterations, elapsed_ms)
        display.final_result(answer)

        return ExecutionResult(
            success=True,
            final_answer=answer,
            steps=steps,
            execution_time=elapsed_ms,
            total_steps=len(steps),
            iterations=self._iterations,
        )

    def _fail(self, error: AgentError) -> None:
        self._emitter.emit(
            is_thinking=False,
            current_action="Error occurred",
            step=f"Error: {error}",
            tools_in_use=[],
        )
        display.halt(str(error))

    # ------------------------------------------------------------------
    # Iteration loop
    # ------------------------------------------------------------------

    async def _reason(self, query: str) -> str:
        self._emitter.emit(current_action="Building system prompt...", progress=0.2)
        system_prompt = self._prompts.build(self._registry)

        self._emitter.emit(
            current_action="Starting reasoning loop...",
            step="Analyzing user query",
            progress=_ITERATION_BAND_START,
        )

        limit = self._config.max_iterations
        for iteration in range(limit):
            self._iterations = iteration + 1
            self._emitter.emit(
                current_action="Thinking...",
                step=f"Reasoning iteration {iteration + 1}/{limit}",
                progress=_ITERATION_BAND_START + (iteration / limit) * _ITERATION_BAND_WIDTH,
            )
            display.iteration_start(iteration + 1, limit)

            prompt = self._prompts.compose(system_prompt, query, self._history.lines())

            self._emitter.emit(current_action="Generating response...", step="Processing with AI model")
            response = await self._complete(prompt)

            self._emitter.emit(current_action="Parsing response...", step="Analyzing AI response")
            outcome = self._parser.classify(response)

            if isinstance(outcome, FinalAnswer):
                if outcome.thought:
                    self._think(outcome.thought)
                self._history.append(EntryKind.FINAL_ANSWER, outcome.content)
                self._emitter.emit(
                    current_action="Finalizing...", step="Preparing final answer", progress=0.95
                )
                return outcome.content

            if isinstance(outcome, Action):
                await self._act(outcome)
            elif isinstance(outcome, ThoughtOnly):
                self._think(outcome.content)
            else:
                display.invalid_response(outcome.reason)
                self._history.append(
                    EntryKind.OBSERVATION, f"{INVALID_FORMAT_OBSERVATION} ({outcome.reason})"
                )

            if iteration < limit - 1:
                await asyncio.sleep(self._config.iteration_pause_ms / 1000)

        raise MaxIterationsExceededError(limit)

    def _think(self, thought: str) -> None:
        self._history.append(EntryKind.THOUGHT, thought)
        display.react_thought(thought)

    async def _act(self, outcome: Action) -> None:
        action = outcome.action
        if outcome.thought:
            self._think(outcome.thought)

        self._history.append(
            EntryKind.ACTION,
            json.dumps(action.model_dump(exclude_none=True), ensure_ascii=False),
        )
        display.react_action(action.tool, action.args)

        self._emitter.emit(
            current_action=f"Using {action.tool}",
            step=f"Executing {action.tool} tool",
            tools_in_use=[action.tool],
        )
        try:
            observation = await self._dispatcher.dispatch(action)
        finally:
            self._emitter.emit(tools_in_use=[])

        self._history.append(EntryKind.OBSERVATION, observation)
        display.react_observation(observation)

    # ------------------------------------------------------------------
    # Model calls
    # ------------------------------------------------------------------

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._config.retry_attempts + 1),
            wait=wait_exponential(
                multiplier=self._config.retry_backoff_ms / 1000,
                max=self._config.retry_backoff_cap_ms / 1000,
            ),
            before_sleep=self._before_retry,
        )

    def _before_retry(self, retry_state: RetryCallState) -> None:
        display.model_retry(
            retry_state.attempt_number,
            self._config.retry_attempts + 1,
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
        )

    async def _complete(self, prompt: str) -> str:
        attempts = self._config.retry_attempts + 1
        response = ""
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._call_model(prompt)
        except Exception as exc:
            raise ServiceFailureError(
                f"Model call failed after {attempts} attempt(s): {type(exc).__name__}: {exc}"
            ) from exc
        return response

    async def _call_model(self, prompt: str) -> str:
        stream = getattr(self._model, "stream", None)
        if self._token_callback is None or stream is None:
            return await self._model.complete(prompt, use_context=False)

        fragments: list[str] = []
        try:
            async for fragment in stream(prompt, use_context=False):
                fragments.append(fragment)
                self._token_callback(fragment)
        except Exception:
            if fragments and self._discard_callback is not None:
                self._discard_callback()
            raise
        return "".join(fragments)

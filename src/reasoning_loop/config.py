# config.py
# Environment-driven settings. `.env` is loaded once on import.
#
#   REASONING_MAX_ITERATIONS   iteration budget per run
#   REASONING_TIMEOUT_MS       wall-clock budget per run
#   REASONING_RETRY_ATTEMPTS   model-call retries
#   REASONING_TEMPERATURE      sampling temperature passed to the model
#   REASONING_UNPARSED_POLICY  strict | permissive
#   REASONING_MODEL            OpenRouter model string
#   OPENROUTER_API_KEY         read by client.OpenAIModel

import os
from typing import Any

from dotenv import load_dotenv

from reasoning_loop.errors import InvalidConfigurationError
from reasoning_loop.models import AgentConfig

load_dotenv()

DEFAULT_MODEL = "anthropic/claude-3.5-haiku"

_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "max_iterations": ("REASONING_MAX_ITERATIONS", int),
    "timeout_ms": ("REASONING_TIMEOUT_MS", int),
    "retry_attempts": ("REASONING_RETRY_ATTEMPTS", int),
    "temperature": ("REASONING_TEMPERATURE", float),
    "unparsed_policy": ("REASONING_UNPARSED_POLICY", str),
}


def load_config(**overrides: Any) -> AgentConfig:
    """AgentConfig from the environment; keyword overrides win over env values."""
    values: dict[str, Any] = {}
    for field, (env_name, cast) in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            values[field] = cast(raw.strip())
        except ValueError as exc:
            raise InvalidConfigurationError(f"{env_name}={raw!r} is not a valid {cast.__name__}") from exc

    values.update({k: v for k, v in overrides.items() if v is not None})
    return AgentConfig(**values)


def model_name() -> str:
    return os.getenv("REASONING_MODEL", DEFAULT_MODEL)

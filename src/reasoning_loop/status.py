# status.py
# Ordered, synchronous delivery of run status to subscribers.
#
# Subscribers run on the engine's own path: a slow callback stalls the loop.
# Keep them cheap, or hand the delta off to a queue inside the callback.

from typing import Any, Callable

from reasoning_loop.models import AgentStatus

StatusSubscriber = Callable[[dict[str, Any]], None]


class StatusEmitter:
    """
    Holds the current AgentStatus and forwards changes as partial dicts.

    emit() forwards only the delta it was given; reset() forwards the whole
    status. Progress is clamped to [0, 1] and never moves backwards until
    the next reset(). Subscribers registered late get no replay.
    """

    def __init__(self) -> None:
        self._status = AgentStatus()
        self._subscribers: list[StatusSubscriber] = []
        self._floor = 0.0

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def set_subscriber(self, callback: StatusSubscriber | None) -> None:
        """Replace every subscriber with `callback` (or with none)."""
        self._subscribers = [callback] if callback is not None else []

    def subscribe(self, callback: StatusSubscriber) -> Callable[[], None]:
        """Add an observer alongside the existing ones. Returns an unsubscribe callable."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscribers(self) -> tuple[StatusSubscriber, ...]:
        return tuple(self._subscribers)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def emit(self, **delta: Any) -> dict[str, Any]:
        unknown = set(delta) - set(AgentStatus.model_fields)
        if unknown:
            raise ValueError(f"Unknown status fields: {', '.join(sorted(unknown))}")

        if "progress" in delta:
            progress = min(1.0, max(0.0, self._floor, float(delta["progress"])))
            delta["progress"] = progress
            self._floor = progress
        if "tools_in_use" in delta:
            delta["tools_in_use"] = list(delta["tools_in_use"])

        self._status = self._status.model_copy(update=delta)
        for callback in list(self._subscribers):
            callback(dict(delta))
        return delta

    def reset(self) -> None:
        self._status = AgentStatus()
        self._floor = 0.0
        for callback in list(self._subscribers):
            callback(self._status.model_dump())

    def current(self) -> AgentStatus:
        return self._status.model_copy(deep=True)

# history.py
# Append-only transcript of one run.

from reasoning_loop.models import EntryKind, HistoryEntry


class HistoryLog:
    """
    Strictly ordered Thought/Action/Observation entries.

    Entries are never edited or reordered; the only way to remove them is
    clear(), which the engine calls at the start of every run.
    """

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []

    def append(self, kind: EntryKind, text: str) -> HistoryEntry:
        entry = HistoryEntry(kind=kind, text=text, index=len(self._entries))
        self._entries.append(entry)
        return entry

    def snapshot(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def lines(self) -> tuple[str, ...]:
        return tuple(entry.render() for entry in self._entries)

    def render(self) -> str:
        return "\n".join(self.lines())

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)

"""Linear undo/redo history.

Entries live in one list with a cursor pointing at the last applied
entry. Recording a new entry drops everything after the cursor.
"""

from dataclasses import dataclass

from cohort.editing.commands import Command


@dataclass(frozen=True)
class HistoryEntry:
    command: Command
    inverse: Command


class CommandHistory:
    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        """Index of the last applied entry, -1 when nothing is applied."""
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor >= 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def record(self, command: Command, inverse: Command) -> HistoryEntry:
        del self._entries[self._cursor + 1:]
        entry = HistoryEntry(command=command, inverse=inverse)
        self._entries.append(entry)
        self._cursor = len(self._entries) - 1
        return entry

    def step_back(self) -> HistoryEntry | None:
        """Entry to undo, moving the cursor back; None at the start."""
        if not self.can_undo:
            return None
        entry = self._entries[self._cursor]
        self._cursor -= 1
        return entry

    def step_forward(self) -> HistoryEntry | None:
        """Entry to redo, moving the cursor forward; None at the end."""
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._entries[self._cursor]

    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1

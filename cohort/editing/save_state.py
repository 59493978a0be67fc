"""Save status state machine for the editing engine.

IDLE -> SAVING -> SAVED -> IDLE, with ERROR while a retry is backing off
and FAILED once retries are exhausted. FAILED only leaves through an
explicit retry.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from cohort.models.common import utc_now

# Transition records kept for inspection.
_HISTORY_LIMIT = 100


class SaveStatus(StrEnum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"
    FAILED = "failed"


VALID_SAVE_TRANSITIONS: dict[SaveStatus, frozenset[SaveStatus]] = {
    SaveStatus.IDLE: frozenset({SaveStatus.SAVING}),
    SaveStatus.SAVING: frozenset({
        SaveStatus.SAVED,
        SaveStatus.ERROR,
        SaveStatus.FAILED,
    }),
    SaveStatus.SAVED: frozenset({SaveStatus.IDLE, SaveStatus.SAVING}),
    SaveStatus.ERROR: frozenset({SaveStatus.SAVING}),
    SaveStatus.FAILED: frozenset({SaveStatus.IDLE}),
}


@dataclass(frozen=True)
class SaveTransition:
    from_status: SaveStatus
    to_status: SaveStatus
    detail: str
    timestamp: datetime


class SaveStateMachine:
    """Tracks the save status and rejects transitions the table forbids."""

    def __init__(self, status: SaveStatus = SaveStatus.IDLE) -> None:
        self._status = status
        self._history: deque[SaveTransition] = deque(maxlen=_HISTORY_LIMIT)

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def history(self) -> list[SaveTransition]:
        return list(self._history)

    def transition(self, to_status: SaveStatus, *, detail: str = "") -> None:
        """Move to ``to_status``.

        Raises:
            ValueError: If the transition is not allowed from the current status.
        """
        allowed = VALID_SAVE_TRANSITIONS.get(self._status, frozenset())
        if to_status not in allowed:
            msg = (
                f"Cannot transition save status from {self._status} to {to_status}. "
                f"Allowed: {sorted(s.value for s in allowed)}."
            )
            raise ValueError(msg)

        self._history.append(SaveTransition(
            from_status=self._status,
            to_status=to_status,
            detail=detail,
            timestamp=utc_now(),
        ))
        self._status = to_status

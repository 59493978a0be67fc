"""Tests for the save status state machine."""

import pytest

from cohort.editing.save_state import VALID_SAVE_TRANSITIONS, SaveStateMachine, SaveStatus


class TestTransitions:
    def test_every_status_has_an_entry(self) -> None:
        assert set(VALID_SAVE_TRANSITIONS) == set(SaveStatus)

    def test_failed_only_leaves_to_idle(self) -> None:
        assert VALID_SAVE_TRANSITIONS[SaveStatus.FAILED] == frozenset({SaveStatus.IDLE})

    def test_happy_path(self) -> None:
        machine = SaveStateMachine()
        for status in (SaveStatus.SAVING, SaveStatus.SAVED, SaveStatus.IDLE):
            machine.transition(status)
        assert machine.status == SaveStatus.IDLE
        assert [t.to_status for t in machine.history] == [
            SaveStatus.SAVING, SaveStatus.SAVED, SaveStatus.IDLE,
        ]

    def test_retry_path(self) -> None:
        machine = SaveStateMachine()
        machine.transition(SaveStatus.SAVING)
        machine.transition(SaveStatus.ERROR, detail="timeout")
        machine.transition(SaveStatus.SAVING)
        machine.transition(SaveStatus.FAILED, detail="timeout")
        assert machine.status == SaveStatus.FAILED
        assert machine.history[1].detail == "timeout"

    @pytest.mark.parametrize(
        ("start", "target"),
        [
            (SaveStatus.IDLE, SaveStatus.SAVED),
            (SaveStatus.FAILED, SaveStatus.SAVING),
            (SaveStatus.ERROR, SaveStatus.SAVED),
        ],
    )
    def test_illegal_transition_raises(self, start: SaveStatus, target: SaveStatus) -> None:
        machine = SaveStateMachine(start)
        with pytest.raises(ValueError, match="Cannot transition"):
            machine.transition(target)
        assert machine.status == start

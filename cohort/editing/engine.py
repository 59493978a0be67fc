"""Scenario editing engine.

Owns the mutable partition of one scenario. Commands are validated and
applied synchronously; persistence and analytics recomputation run on
debounced timers through a ``Scheduler``.

Persistence:
    - Writes are debounced and serialized: at most one write is in flight.
      An edit landing mid-flight sets the pending flag and produces exactly
      one follow-up write of the latest state.
    - Every write sends the full scenario. ``update`` falls back to ``save``
      when the repository has never seen the id.
    - A failed write is retried with backoff; once retries run out the
      status is FAILED and every mutating call is rejected until
      ``retry_save()``.

Expected business conditions come back as ``EditResult`` failures. Only
calling the engine before ``initialize()`` raises.
"""

import asyncio
import json
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

import structlog
from pydantic import ValidationError

from cohort.config.settings import get_settings
from cohort.editing.commands import (
    Command,
    CreateGroup,
    DeleteGroup,
    GroupPatch,
    MoveParticipant,
    PartitionState,
    ReorderGroup,
    ReorderUnassigned,
    UpdateGroup,
    apply_command,
    invert_command,
)
from cohort.editing.config import EditingConfig
from cohort.editing.history import CommandHistory
from cohort.editing.save_state import SaveStateMachine, SaveStatus, SaveTransition
from cohort.editing.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from cohort.engine.analytics import compute_satisfaction
from cohort.engine.optimizer import GroupingConfig
from cohort.models.analytics import AnalyticsDelta, ScenarioSatisfaction
from cohort.models.common import UNASSIGNED, ScenarioStatus, new_id, utc_now
from cohort.models.group import MAX_GROUP_NAME_LENGTH, Group, ensure_unique_group_name
from cohort.models.preference import Preference, build_preference_map
from cohort.models.scenario import Scenario
from cohort.repositories.base import ScenarioNotFoundError, ScenarioRepository

# Timer slots
_SAVE_TIMER = "save"
_ANALYTICS_TIMER = "analytics"
_COALESCE_TIMER = "coalesce"
_SAVED_IDLE_TIMER = "saved_idle"

_BLOCKING_SAVE_STATUSES = frozenset({SaveStatus.SAVING, SaveStatus.ERROR, SaveStatus.FAILED})


class FailureReason(StrEnum):
    SAVE_FAILED = "save_failed"
    NOOP = "noop"
    UNKNOWN_PARTICIPANT = "unknown_participant"
    UNKNOWN_SOURCE = "unknown_source"
    UNKNOWN_TARGET = "unknown_target"
    NOT_UNASSIGNED = "not_unassigned"
    NOT_IN_SOURCE = "not_in_source"
    ALREADY_IN_TARGET = "already_in_target"
    GROUP_NOT_FOUND = "group_not_found"
    EMPTY_NAME = "empty_name"
    NAME_TOO_LONG = "name_too_long"
    DUPLICATE_NAME = "duplicate_name"
    INVALID_CAPACITY = "invalid_capacity"
    INVALID_ORDER = "invalid_order"
    INVALID_PATCH = "invalid_patch"
    PENDING_SAVE_ERROR = "pending_save_error"
    INVALID_STATUS = "invalid_status"


@dataclass(frozen=True)
class EditResult:
    """Outcome of an editing operation."""

    success: bool
    reason: FailureReason | None = None
    group_id: str | None = None

    @classmethod
    def ok(cls, group_id: str | None = None) -> "EditResult":
        return cls(success=True, group_id=group_id)

    @classmethod
    def fail(cls, reason: FailureReason) -> "EditResult":
        return cls(success=False, reason=reason)


@dataclass(frozen=True)
class EditingView:
    """Read-only snapshot of the engine for presentation layers."""

    scenario_id: str
    scenario_status: ScenarioStatus
    groups: list[Group]
    unassigned_ids: list[str]
    can_undo: bool
    can_redo: bool
    history_index: int
    history_length: int
    save_status: SaveStatus
    can_adopt: bool
    retry_count: int
    save_error: str | None
    last_saved_at: datetime | None
    last_modified_at: datetime
    baseline: ScenarioSatisfaction | None
    current: ScenarioSatisfaction | None
    analytics_delta: AnalyticsDelta | None


class ScenarioEditingEngine:
    """Single-writer editor for one scenario's groups."""

    def __init__(
        self,
        repository: ScenarioRepository,
        *,
        config: EditingConfig | None = None,
        scheduler: Scheduler | None = None,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._repository = repository
        self._config = config or EditingConfig.from_settings(get_settings())
        self._scheduler = scheduler or AsyncioScheduler()
        self._id_factory = id_factory
        self._log = structlog.get_logger(__name__)

        self._scenario: Scenario | None = None
        self._state: PartitionState | None = None
        self._snapshot: tuple[str, ...] = ()
        self._snapshot_ids: frozenset[str] = frozenset()
        self._preferences: dict[str, Preference] = {}
        self._history = CommandHistory()
        self._pending_update: UpdateGroup | None = None

        self._save_state = SaveStateMachine()
        self._pending_save = False
        self._save_task: asyncio.Task[None] | None = None
        self._retry_count = 0
        self._save_error: str | None = None
        self._last_saved_at: datetime | None = None
        self._last_modified_at: datetime = utc_now()

        self._baseline: ScenarioSatisfaction | None = None
        self._current: ScenarioSatisfaction | None = None
        self._timers: dict[str, TimerHandle] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(
        self,
        scenario: Scenario,
        preferences: Iterable[Preference] | Mapping[str, Any] = (),
    ) -> None:
        """Load a working copy of ``scenario`` and freeze the baseline analytics."""
        self.close()
        self._scenario = scenario.model_copy(update={"groups": []}, deep=True)
        self._state = PartitionState(groups=[g.model_copy(deep=True) for g in scenario.groups])
        self._snapshot = tuple(scenario.participant_snapshot)
        self._snapshot_ids = frozenset(self._snapshot)
        self._preferences = build_preference_map(preferences)
        self._history.clear()
        self._pending_update = None

        self._save_state = SaveStateMachine()
        self._pending_save = False
        self._retry_count = 0
        self._save_error = None
        self._last_saved_at = None
        self._last_modified_at = scenario.last_modified_at

        self._baseline = self._score()
        self._current = self._baseline
        self._log = structlog.get_logger(__name__).bind(scenario_id=scenario.id)
        self._log.debug(
            "editing_initialized",
            groups=len(scenario.groups),
            participants=len(self._snapshot),
        )

    def close(self) -> None:
        """Cancel every timer and any in-flight save."""
        self._cancel_all_timers()
        if self._save_task is not None:
            self._save_task.cancel()
            self._save_task = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    @property
    def groups(self) -> list[Group]:
        return [g.model_copy(deep=True) for g in self._require_state().groups]

    @property
    def unassigned_ids(self) -> list[str]:
        self._require_state()
        return self._unassigned()

    @property
    def save_status(self) -> SaveStatus:
        return self._save_state.status

    @property
    def save_history(self) -> list[SaveTransition]:
        return self._save_state.history

    @property
    def scenario_status(self) -> ScenarioStatus:
        return self._require_scenario().status

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo or self._pending_update is not None

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo and self._pending_update is None

    @property
    def can_adopt(self) -> bool:
        return self._save_state.status not in _BLOCKING_SAVE_STATUSES

    @property
    def baseline(self) -> ScenarioSatisfaction | None:
        return self._baseline

    @property
    def current_analytics(self) -> ScenarioSatisfaction | None:
        return self._current

    @property
    def analytics_delta(self) -> AnalyticsDelta | None:
        return AnalyticsDelta.between(self._baseline, self._current)

    def history_length(self) -> int:
        return len(self._history) + (1 if self._pending_update is not None else 0)

    def view(self) -> EditingView:
        scenario = self._require_scenario()
        return EditingView(
            scenario_id=scenario.id,
            scenario_status=scenario.status,
            groups=self.groups,
            unassigned_ids=self._unassigned(),
            can_undo=self.can_undo,
            can_redo=self.can_redo,
            history_index=self._history.cursor,
            history_length=self.history_length(),
            save_status=self._save_state.status,
            can_adopt=self.can_adopt,
            retry_count=self._retry_count,
            save_error=self._save_error,
            last_saved_at=self._last_saved_at,
            last_modified_at=self._last_modified_at,
            baseline=self._baseline,
            current=self._current,
            analytics_delta=self.analytics_delta,
        )

    def build_scenario(self) -> Scenario:
        """Full current scenario, as it would be written."""
        scenario = self._require_scenario()
        return Scenario(
            id=scenario.id,
            program_id=scenario.program_id,
            status=scenario.status,
            groups=[g.model_copy(deep=True) for g in self._require_state().groups],
            participant_snapshot=self._snapshot,
            created_at=scenario.created_at,
            last_modified_at=self._last_modified_at,
            created_by=scenario.created_by,
            algorithm_config=scenario.algorithm_config,
        )

    def export_state(self) -> str:
        return json.dumps(self.build_scenario().to_record(), indent=2)

    def refresh_analytics(self) -> ScenarioSatisfaction:
        """Recompute analytics now instead of waiting for the debounce."""
        self._cancel_timer(_ANALYTICS_TIMER)
        self._current = self._score()
        return self._current

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def dispatch(self, command: MoveParticipant) -> EditResult:
        """Move a participant between groups or to/from the unassigned list.

        Capacity is not enforced; an over-capacity move succeeds and is
        surfaced through ``capacity_status``.
        """
        state = self._require_state()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        reason = self._validate_move(state, command)
        if reason is not None:
            return EditResult.fail(reason)

        self._flush_pending_update()
        self._execute(self._resolve_move(state, command))
        return EditResult.ok()

    def create_group(self, name: str | None = None) -> EditResult:
        state = self._require_state()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        used = {g.name.lower() for g in state.groups}
        group_name = ensure_unique_group_name(name, used)
        if len(group_name) > MAX_GROUP_NAME_LENGTH:
            return EditResult.fail(FailureReason.NAME_TOO_LONG)

        self._flush_pending_update()
        group = Group(id=self._id_factory(), name=group_name)
        self._execute(CreateGroup(group=group, index=len(state.groups)))
        return EditResult.ok(group_id=group.id)

    def delete_group(self, group_id: str) -> EditResult:
        """Remove a group; its members become unassigned."""
        state = self._require_state()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        index = state.index_of(group_id)
        if index is None:
            return EditResult.fail(FailureReason.GROUP_NOT_FOUND)

        self._flush_pending_update()
        previous = state.groups[index].model_copy(deep=True)
        self._execute(DeleteGroup(group_id=group_id, previous_group=previous, index=index))
        return EditResult.ok(group_id=group_id)

    def update_group(self, group_id: str, changes: GroupPatch | Mapping[str, Any]) -> EditResult:
        """Change a group's name and/or capacity.

        Calls on the same group within the coalesce window merge into one
        history entry whose undo restores the values from before the burst.
        Each call is still applied to the live state immediately.
        """
        state = self._require_state()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        if isinstance(changes, GroupPatch):
            patch = changes
        else:
            try:
                patch = GroupPatch.model_validate(dict(changes))
            except ValidationError:
                return EditResult.fail(FailureReason.INVALID_PATCH)

        group = state.find(group_id)
        if group is None:
            return EditResult.fail(FailureReason.GROUP_NOT_FOUND)

        provided = patch.provided()
        if not provided:
            return EditResult.fail(FailureReason.NOOP)

        if "name" in provided:
            name = (provided["name"] or "").strip()
            if not name:
                return EditResult.fail(FailureReason.EMPTY_NAME)
            if len(name) > MAX_GROUP_NAME_LENGTH:
                return EditResult.fail(FailureReason.NAME_TOO_LONG)
            taken = {g.name.lower() for g in state.groups if g.id != group_id}
            if name.lower() in taken:
                return EditResult.fail(FailureReason.DUPLICATE_NAME)
            provided["name"] = name

        if "capacity" in provided:
            capacity = provided["capacity"]
            if capacity is not None and capacity < 1:
                return EditResult.fail(FailureReason.INVALID_CAPACITY)

        patch = GroupPatch(**provided)
        previous = GroupPatch.snapshot(group, set(provided))

        pending = self._pending_update
        if pending is not None and pending.group_id == group_id:
            self._pending_update = UpdateGroup(
                group_id=group_id,
                changes=pending.changes.merged(patch),
                previous=previous.merged(pending.previous),
            )
        else:
            self._flush_pending_update()
            self._pending_update = UpdateGroup(group_id=group_id, changes=patch, previous=previous)

        apply_command(state, UpdateGroup(group_id=group_id, changes=patch, previous=previous))
        self._set_timer(_COALESCE_TIMER, self._config.update_coalesce_s, self._flush_pending_update)
        self._mark_dirty()
        return EditResult.ok(group_id=group_id)

    def reorder_group(self, group_id: str, new_order: Sequence[str]) -> EditResult:
        state = self._require_state()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        group = state.find(group_id)
        if group is None:
            return EditResult.fail(FailureReason.GROUP_NOT_FOUND)

        new_order = tuple(new_order)
        current = tuple(group.member_ids)
        if Counter(new_order) != Counter(current):
            return EditResult.fail(FailureReason.INVALID_ORDER)
        if new_order == current:
            return EditResult.ok(group_id=group_id)

        self._flush_pending_update()
        self._execute(ReorderGroup(group_id=group_id, new_order=new_order, previous_order=current))
        return EditResult.ok(group_id=group_id)

    def reorder_unassigned(self, new_order: Sequence[str]) -> EditResult:
        self._require_state()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        new_order = tuple(new_order)
        current = tuple(self._unassigned())
        if Counter(new_order) != Counter(current):
            return EditResult.fail(FailureReason.INVALID_ORDER)
        if new_order == current:
            return EditResult.ok()

        self._flush_pending_update()
        self._execute(ReorderUnassigned(new_order=new_order, previous_order=current))
        return EditResult.ok()

    def undo(self) -> bool:
        state = self._require_state()
        self._flush_pending_update()
        if self._is_failed():
            return False

        entry = self._history.step_back()
        if entry is None:
            return False
        apply_command(state, entry.inverse)
        self._after_change()
        return True

    def redo(self) -> bool:
        state = self._require_state()
        self._flush_pending_update()
        if self._is_failed():
            return False

        entry = self._history.step_forward()
        if entry is None:
            return False
        apply_command(state, entry.command)
        self._after_change()
        return True

    def regenerate(self, new_groups: Sequence[Group]) -> EditResult:
        """Replace the whole partition and start a fresh history.

        Raises:
            ValueError: If ``new_groups`` does not fit the participant snapshot.
        """
        state = self._require_state()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        candidate = Scenario.model_validate({
            **self.build_scenario().model_dump(),
            "groups": [g.model_dump() for g in new_groups],
        })

        self._cancel_timer(_COALESCE_TIMER)
        self._pending_update = None
        state.groups = [g.model_copy(deep=True) for g in candidate.groups]
        state.unassigned_order = None
        self._history.clear()
        self._baseline = self._score()
        self._current = self._baseline
        self._cancel_timer(_ANALYTICS_TIMER)
        self._mark_dirty()
        self._log.info("scenario_regenerated", groups=len(state.groups))
        return EditResult.ok()

    def update_algorithm_config(self, config: GroupingConfig | Mapping[str, Any] | None) -> EditResult:
        """Store a new optimizer config on the scenario; not an undoable edit."""
        scenario = self._require_scenario()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        if isinstance(config, GroupingConfig):
            record = config.model_dump(mode="json", exclude_none=True)
        else:
            record = dict(config) if config is not None else None
        self._scenario = scenario.model_copy(update={"algorithm_config": record})
        self._mark_dirty()
        return EditResult.ok()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def adopt(self) -> EditResult:
        """Flush pending writes, then persist the scenario as ADOPTED."""
        scenario = self._require_scenario()
        if self._save_state.status in (SaveStatus.ERROR, SaveStatus.FAILED):
            return EditResult.fail(FailureReason.PENDING_SAVE_ERROR)
        if scenario.status != ScenarioStatus.DRAFT:
            return EditResult.fail(FailureReason.INVALID_STATUS)

        self._flush_pending_update()
        await self.flush_pending_saves()
        if self._is_failed():
            return EditResult.fail(FailureReason.SAVE_FAILED)

        self._scenario = scenario.with_status(ScenarioStatus.ADOPTED)
        self._pending_save = True
        await self.flush_pending_saves()
        if self._is_failed():
            self._scenario = self._scenario.model_copy(update={"status": ScenarioStatus.DRAFT})
            self._log.error("scenario_adopt_failed", error=self._save_error)
            return EditResult.fail(FailureReason.SAVE_FAILED)

        self._log.info("scenario_adopted")
        return EditResult.ok()

    async def retry_save(self) -> None:
        """Clear a terminal failure and write the current state again."""
        self._require_state()
        if self._is_failed():
            self._save_state.transition(SaveStatus.IDLE, detail="manual retry")
        self._retry_count = 0
        self._save_error = None
        self._pending_save = True
        await self.flush_pending_saves()

    async def flush_pending_saves(self) -> None:
        """Write pending edits now and wait until nothing is pending or in flight."""
        self._require_state()
        self._cancel_timer(_SAVE_TIMER)
        while not self._is_failed():
            if self._save_task is None:
                if not self._pending_save:
                    return
                self._start_save()
                if self._save_task is None:
                    return
            await self._save_task

    def _schedule_save(self) -> None:
        self._set_timer(_SAVE_TIMER, self._config.save_debounce_s, self._start_save)

    def _start_save(self) -> None:
        if self._is_failed() or self._save_task is not None or not self._pending_save:
            return

        self._pending_save = False
        self._cancel_timer(_SAVED_IDLE_TIMER)
        self._save_state.transition(SaveStatus.SAVING)
        self._save_task = self._scheduler.spawn(self._run_save(self.build_scenario()))

    async def _run_save(self, scenario: Scenario) -> None:
        try:
            await self._persist_with_retry(scenario)
        finally:
            if self._save_task is asyncio.current_task():
                self._save_task = None
        if self._pending_save and not self._is_failed():
            self._start_save()

    async def _persist_with_retry(self, scenario: Scenario) -> None:
        max_retries = self._config.max_retries
        for attempt in range(max_retries + 1):
            try:
                await self._persist(scenario)
            except Exception as exc:
                self._retry_count = attempt + 1
                self._save_error = str(exc) or type(exc).__name__
                if attempt >= max_retries:
                    self._save_state.transition(SaveStatus.FAILED, detail=self._save_error)
                    self._log.error(
                        "scenario_save_failed",
                        attempts=attempt + 1,
                        error=self._save_error,
                    )
                    return

                delay = self._config.retry_delay(attempt)
                self._save_state.transition(SaveStatus.ERROR, detail=self._save_error)
                self._log.warning(
                    "scenario_save_retry",
                    attempt=attempt + 1,
                    retry_in_s=delay,
                    error=self._save_error,
                )
                await self._scheduler.sleep(delay)
                self._save_state.transition(SaveStatus.SAVING, detail="retry")
                continue

            self._mark_saved()
            return

    async def _persist(self, scenario: Scenario) -> None:
        try:
            await self._repository.update(scenario)
        except ScenarioNotFoundError:
            await self._repository.save(scenario)

    def _mark_saved(self) -> None:
        self._save_state.transition(SaveStatus.SAVED)
        self._retry_count = 0
        self._save_error = None
        self._last_saved_at = utc_now()
        self._set_timer(_SAVED_IDLE_TIMER, self._config.saved_idle_s, self._revert_saved)
        self._log.debug("scenario_saved")

    def _revert_saved(self) -> None:
        if self._save_state.status == SaveStatus.SAVED:
            self._save_state.transition(SaveStatus.IDLE)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_state(self) -> PartitionState:
        if self._state is None:
            msg = "ScenarioEditingEngine.initialize() must be called first."
            raise RuntimeError(msg)
        return self._state

    def _require_scenario(self) -> Scenario:
        self._require_state()
        return self._scenario

    def _is_failed(self) -> bool:
        return self._save_state.status == SaveStatus.FAILED

    def _validate_move(self, state: PartitionState, command: MoveParticipant) -> FailureReason | None:
        if command.source == command.target:
            return FailureReason.NOOP
        if command.participant_id not in self._snapshot_ids:
            return FailureReason.UNKNOWN_PARTICIPANT

        source = state.find(command.source) if command.source != UNASSIGNED else None
        if command.source != UNASSIGNED and source is None:
            return FailureReason.UNKNOWN_SOURCE
        target = state.find(command.target) if command.target != UNASSIGNED else None
        if command.target != UNASSIGNED and target is None:
            return FailureReason.UNKNOWN_TARGET

        current = state.group_of(command.participant_id)
        if source is None and current is not None:
            return FailureReason.NOT_UNASSIGNED
        if source is not None and (current is None or current.id != source.id):
            return FailureReason.NOT_IN_SOURCE
        if target is not None and command.participant_id in target.member_ids:
            return FailureReason.ALREADY_IN_TARGET
        return None

    def _resolve_move(self, state: PartitionState, command: MoveParticipant) -> MoveParticipant:
        """Pin both positions so the inverse reinserts exactly."""
        source = state.find(command.source) if command.source != UNASSIGNED else None
        target = state.find(command.target) if command.target != UNASSIGNED else None

        previous_index = source.member_ids.index(command.participant_id) if source else None
        target_index = None
        if target is not None:
            size = len(target.member_ids)
            requested = command.target_index
            target_index = size if requested is None or requested > size else requested

        return command.model_copy(update={
            "target_index": target_index,
            "previous_index": previous_index,
        })

    def _execute(self, command: Command) -> None:
        apply_command(self._state, command)
        self._history.record(command, invert_command(command))
        self._after_change()

    def _after_change(self) -> None:
        self._mark_dirty()
        self._set_timer(_ANALYTICS_TIMER, self._config.analytics_debounce_s, self._recompute_analytics)

    def _mark_dirty(self) -> None:
        self._pending_save = True
        self._last_modified_at = utc_now()
        self._schedule_save()

    def _flush_pending_update(self) -> None:
        self._cancel_timer(_COALESCE_TIMER)
        pending, self._pending_update = self._pending_update, None
        if pending is not None:
            self._history.record(pending, invert_command(pending))

    def _unassigned(self) -> list[str]:
        state = self._state
        assigned = {m for g in state.groups for m in g.member_ids}
        free = [pid for pid in self._snapshot if pid not in assigned]
        if state.unassigned_order is None:
            return free

        free_ids = set(free)
        ordered = [pid for pid in dict.fromkeys(state.unassigned_order) if pid in free_ids]
        placed = set(ordered)
        return ordered + [pid for pid in free if pid not in placed]

    def _score(self) -> ScenarioSatisfaction:
        return compute_satisfaction(self._state.groups, self._preferences, self._snapshot)

    def _recompute_analytics(self) -> None:
        if self._state is not None:
            self._current = self._score()

    def _set_timer(self, slot: str, delay: float, callback: Callable[[], None]) -> None:
        self._cancel_timer(slot)

        def _fire() -> None:
            self._timers.pop(slot, None)
            callback()

        self._timers[slot] = self._scheduler.call_later(delay, _fire)

    def _cancel_timer(self, slot: str) -> None:
        handle = self._timers.pop(slot, None)
        if handle is not None:
            handle.cancel()

    def _cancel_all_timers(self) -> None:
        for slot in list(self._timers):
            self._cancel_timer(slot)

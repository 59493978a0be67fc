"""Tests for ScenarioEditingEngine commands, history and analytics."""

import json
import random

import pytest

from cohort.editing.commands import MoveParticipant
from cohort.editing.engine import FailureReason, ScenarioEditingEngine
from cohort.editing.scheduler import ManualScheduler
from cohort.models.common import UNASSIGNED
from cohort.models.group import MAX_GROUP_NAME_LENGTH, Group, capacity_status
from cohort.models.scenario import Scenario, create_scenario
from cohort.repositories.memory import InMemoryScenarioRepository


def _move(pid: str, source: str, target: str, index: int | None = None) -> MoveParticipant:
    return MoveParticipant(participant_id=pid, source=source, target=target, target_index=index)


def _members(engine: ScenarioEditingEngine) -> dict[str, list[str]]:
    return {g.id: g.member_ids for g in engine.groups}


def _state(engine: ScenarioEditingEngine) -> tuple[list[dict], list[str]]:
    return [g.model_dump() for g in engine.groups], engine.unassigned_ids


def _assert_partition_valid(engine: ScenarioEditingEngine, snapshot: set[str]) -> None:
    members = [pid for g in engine.groups for pid in g.member_ids]
    assert len(members) == len(set(members))
    assert set(members) <= snapshot
    assert set(members) | set(engine.unassigned_ids) == snapshot


class TestInitialize:
    def test_requires_initialize(self) -> None:
        engine = ScenarioEditingEngine(InMemoryScenarioRepository(), scheduler=ManualScheduler())
        with pytest.raises(RuntimeError, match="initialize"):
            engine.dispatch(_move("a", UNASSIGNED, "g1"))
        with pytest.raises(RuntimeError):
            engine.view()
        with pytest.raises(RuntimeError):
            engine.undo()

    def test_works_on_a_copy(self, engine: ScenarioEditingEngine, small_scenario: Scenario) -> None:
        small_scenario.groups[0].member_ids.append("d")
        assert _members(engine)["g1"] == ["a", "c"]

        engine.dispatch(_move("d", UNASSIGNED, "g2"))
        assert small_scenario.groups[1].member_ids == ["b"]

    def test_baseline_frozen(self, engine: ScenarioEditingEngine) -> None:
        baseline = engine.baseline
        assert baseline.students_with_preferences == 3
        assert baseline.students_unassigned_to_request == 1
        assert baseline.percent_assigned_top_choice == pytest.approx(100 / 3)
        assert engine.current_analytics == baseline

    def test_fresh_view(self, engine: ScenarioEditingEngine) -> None:
        view = engine.view()
        assert view.scenario_id == "scn-1"
        assert view.unassigned_ids == ["d"]
        assert view.can_undo is False
        assert view.can_redo is False
        assert view.history_length == 0
        assert view.save_status == "idle"
        assert view.can_adopt is True


class TestMove:
    def test_unassigned_to_group(self, engine: ScenarioEditingEngine) -> None:
        result = engine.dispatch(_move("d", UNASSIGNED, "g2"))
        assert result.success
        assert _members(engine)["g2"] == ["b", "d"]
        assert engine.unassigned_ids == []
        assert engine.can_undo

    def test_group_to_unassigned(self, engine: ScenarioEditingEngine) -> None:
        assert engine.dispatch(_move("c", "g1", UNASSIGNED)).success
        assert _members(engine)["g1"] == ["a"]
        assert engine.unassigned_ids == ["c", "d"]

    def test_over_capacity_move_allowed(self, make_engine) -> None:
        scenario = create_scenario(
            groups=[Group(id="g1", name="Solo", capacity=1, member_ids=["c"])],
            participant_ids=["a", "c"],
        )
        engine = make_engine(scenario, InMemoryScenarioRepository())

        result = engine.dispatch(_move("a", UNASSIGNED, "g1"))
        assert result.success
        g1 = engine.groups[0]
        assert len(g1.member_ids) > g1.capacity
        assert capacity_status(g1).is_over

    @pytest.mark.parametrize(
        ("command", "reason"),
        [
            (_move("a", "g1", "g1"), FailureReason.NOOP),
            (_move("zz", UNASSIGNED, "g1"), FailureReason.UNKNOWN_PARTICIPANT),
            (_move("a", "g9", "g2"), FailureReason.UNKNOWN_SOURCE),
            (_move("a", "g1", "g9"), FailureReason.UNKNOWN_TARGET),
            (_move("a", UNASSIGNED, "g2"), FailureReason.NOT_UNASSIGNED),
            (_move("a", "g2", "g1"), FailureReason.NOT_IN_SOURCE),
            (_move("d", "g1", "g2"), FailureReason.NOT_IN_SOURCE),
        ],
    )
    def test_invalid_moves_leave_state(self, engine: ScenarioEditingEngine, command, reason) -> None:
        before = _state(engine)
        result = engine.dispatch(command)
        assert result.success is False
        assert result.reason == reason
        assert _state(engine) == before
        assert engine.history_length() == 0

    def test_target_index(self, engine: ScenarioEditingEngine) -> None:
        engine.dispatch(_move("d", UNASSIGNED, "g1", index=1))
        assert _members(engine)["g1"] == ["a", "d", "c"]

    def test_target_index_past_end_appends(self, engine: ScenarioEditingEngine) -> None:
        engine.dispatch(_move("d", UNASSIGNED, "g2", index=9))
        assert _members(engine)["g2"] == ["b", "d"]

    def test_undo_puts_participant_back_in_place(self, engine: ScenarioEditingEngine) -> None:
        engine.dispatch(_move("a", "g1", "g2", index=0))
        assert _members(engine) == {"g1": ["c"], "g2": ["a", "b"]}

        assert engine.undo() is True
        assert _members(engine) == {"g1": ["a", "c"], "g2": ["b"]}

        assert engine.redo() is True
        assert _members(engine) == {"g1": ["c"], "g2": ["a", "b"]}


class TestHistory:
    def test_boundaries(self, engine: ScenarioEditingEngine) -> None:
        before = _state(engine)
        assert engine.undo() is False
        assert engine.redo() is False
        assert _state(engine) == before

        engine.dispatch(_move("d", UNASSIGNED, "g2"))
        assert engine.redo() is False
        assert engine.undo() is True
        assert engine.undo() is False
        assert _state(engine) == before

    def test_new_edit_truncates_redo_tail(self, engine: ScenarioEditingEngine) -> None:
        engine.dispatch(_move("d", UNASSIGNED, "g2"))
        engine.dispatch(_move("a", "g1", UNASSIGNED))
        engine.undo()
        assert engine.can_redo

        engine.dispatch(_move("c", "g1", UNASSIGNED))
        assert engine.can_redo is False
        assert engine.history_length() == 2
        assert engine.view().history_index == 1

    def test_many_undos_and_redos(self, engine: ScenarioEditingEngine) -> None:
        start = _state(engine)
        engine.dispatch(_move("d", UNASSIGNED, "g1"))
        engine.create_group("Extra")
        engine.dispatch(_move("b", "g2", "new1"))
        engine.reorder_group("g1", ["d", "c", "a"])
        end = _state(engine)

        while engine.undo():
            pass
        assert _state(engine) == start

        while engine.redo():
            pass
        assert _state(engine) == end


class TestCreateGroup:
    def test_default_group(self, engine: ScenarioEditingEngine) -> None:
        result = engine.create_group()
        assert result.success
        assert result.group_id == "new1"
        created = engine.groups[-1]
        assert created.name == "Group"
        assert created.capacity is None
        assert created.member_ids == []

    def test_colliding_name_gets_suffix(self, engine: ScenarioEditingEngine) -> None:
        engine.create_group("group 1")
        assert engine.groups[-1].name == "group 3"

        engine.create_group("Robotics")
        engine.create_group("ROBOTICS")
        assert engine.groups[-1].name == "ROBOTICS 2"

    def test_undo_removes_group(self, engine: ScenarioEditingEngine) -> None:
        engine.create_group("Temp")
        assert engine.undo()
        assert [g.id for g in engine.groups] == ["g1", "g2"]

    def test_overlong_name_rejected(self, engine: ScenarioEditingEngine) -> None:
        before = _state(engine)
        result = engine.create_group("x" * (MAX_GROUP_NAME_LENGTH + 1))
        assert result.success is False
        assert result.reason == FailureReason.NAME_TOO_LONG
        assert _state(engine) == before
        assert engine.history_length() == 0

    def test_longest_name_accepted(self, engine: ScenarioEditingEngine) -> None:
        assert engine.create_group("x" * MAX_GROUP_NAME_LENGTH).success
        assert len(engine.groups[-1].name) == MAX_GROUP_NAME_LENGTH


class TestDeleteGroup:
    def test_members_become_unassigned_and_undo_restores_order(
        self, engine: ScenarioEditingEngine,
    ) -> None:
        result = engine.delete_group("g1")
        assert result.success
        assert [g.id for g in engine.groups] == ["g2"]
        assert engine.unassigned_ids == ["a", "c", "d"]

        assert engine.undo()
        restored = engine.groups[0]
        assert restored.id == "g1"
        assert restored.member_ids == ["a", "c"]
        assert restored.capacity == 2
        assert restored.name == "Group 1"
        assert engine.unassigned_ids == ["d"]

    def test_unknown_group(self, engine: ScenarioEditingEngine) -> None:
        assert engine.delete_group("nope").reason == FailureReason.GROUP_NOT_FOUND


class TestUpdateGroup:
    def test_rename(self, engine: ScenarioEditingEngine) -> None:
        assert engine.update_group("g1", {"name": "  Robotics "}).success
        assert engine.groups[0].name == "Robotics"

    def test_change_case_of_own_name(self, engine: ScenarioEditingEngine) -> None:
        assert engine.update_group("g1", {"name": "GROUP 1"}).success

    @pytest.mark.parametrize(
        ("group_id", "changes", "reason"),
        [
            ("g1", {"name": "   "}, FailureReason.EMPTY_NAME),
            ("g1", {"name": None}, FailureReason.EMPTY_NAME),
            ("g1", {"name": "group 2"}, FailureReason.DUPLICATE_NAME),
            ("g1", {"capacity": 0}, FailureReason.INVALID_CAPACITY),
            ("g1", {"name": "y" * (MAX_GROUP_NAME_LENGTH + 50)}, FailureReason.NAME_TOO_LONG),
            ("g1", {"capacity": "lots"}, FailureReason.INVALID_PATCH),
            ("g1", {"name": 42}, FailureReason.INVALID_PATCH),
            ("g1", {}, FailureReason.NOOP),
            ("g9", {"name": "X"}, FailureReason.GROUP_NOT_FOUND),
        ],
    )
    def test_rejections(self, engine: ScenarioEditingEngine, group_id, changes, reason) -> None:
        before = _state(engine)
        result = engine.update_group(group_id, changes)
        assert result.success is False
        assert result.reason == reason
        assert _state(engine) == before
        assert engine.history_length() == 0

    def test_unlimited_capacity(self, engine: ScenarioEditingEngine) -> None:
        assert engine.update_group("g1", {"capacity": None}).success
        assert engine.groups[0].capacity is None
        engine.undo()
        assert engine.groups[0].capacity == 2

    @pytest.mark.anyio
    async def test_burst_coalesces_into_one_entry(
        self, engine: ScenarioEditingEngine, scheduler: ManualScheduler,
    ) -> None:
        for name in ("R", "Ro", "Rob", "Robo"):
            assert engine.update_group("g1", {"name": name}).success
            await scheduler.advance(0.1)
            assert engine.groups[0].name == name

        await scheduler.advance(1.0)
        assert engine.history_length() == 1

        assert engine.undo()
        assert engine.groups[0].name == "Group 1"
        assert engine.can_undo is False

        assert engine.redo()
        assert engine.groups[0].name == "Robo"

    def test_undo_inside_window_reverts_whole_burst(self, engine: ScenarioEditingEngine) -> None:
        engine.update_group("g1", {"name": "Alpha"})
        engine.update_group("g1", {"capacity": 5})
        engine.update_group("g1", {"name": "Beta"})
        assert engine.history_length() == 1

        assert engine.undo()
        restored = engine.groups[0]
        assert restored.name == "Group 1"
        assert restored.capacity == 2
        assert engine.history_length() == 1

    @pytest.mark.anyio
    async def test_edits_after_window_are_separate(
        self, engine: ScenarioEditingEngine, scheduler: ManualScheduler,
    ) -> None:
        engine.update_group("g1", {"name": "Alpha"})
        await scheduler.advance(0.6)
        engine.update_group("g1", {"name": "Beta"})
        assert engine.history_length() == 2

        engine.undo()
        assert engine.groups[0].name == "Alpha"

    def test_other_group_closes_burst(self, engine: ScenarioEditingEngine) -> None:
        engine.update_group("g1", {"name": "Alpha"})
        engine.update_group("g2", {"name": "Beta"})
        assert engine.history_length() == 2

    def test_move_closes_burst(self, engine: ScenarioEditingEngine) -> None:
        engine.update_group("g1", {"name": "Alpha"})
        engine.dispatch(_move("d", UNASSIGNED, "g1"))
        assert engine.history_length() == 2

        engine.undo()
        engine.undo()
        assert engine.groups[0].name == "Group 1"
        assert engine.groups[0].member_ids == ["a", "c"]


class TestReorder:
    def test_reorder_group(self, engine: ScenarioEditingEngine) -> None:
        assert engine.reorder_group("g1", ["c", "a"]).success
        assert _members(engine)["g1"] == ["c", "a"]
        engine.undo()
        assert _members(engine)["g1"] == ["a", "c"]

    @pytest.mark.parametrize("order", [["a"], ["a", "c", "d"], ["a", "a"], ["c", "d"]])
    def test_reorder_group_must_be_permutation(self, engine: ScenarioEditingEngine, order) -> None:
        assert engine.reorder_group("g1", order).reason == FailureReason.INVALID_ORDER
        assert _members(engine)["g1"] == ["a", "c"]

    def test_reorder_unknown_group(self, engine: ScenarioEditingEngine) -> None:
        assert engine.reorder_group("g9", []).reason == FailureReason.GROUP_NOT_FOUND

    def test_same_order_records_nothing(self, engine: ScenarioEditingEngine) -> None:
        assert engine.reorder_group("g1", ["a", "c"]).success
        assert engine.history_length() == 0

    def test_reorder_unassigned_keeps_custom_order(self, engine: ScenarioEditingEngine) -> None:
        engine.delete_group("g1")
        assert engine.unassigned_ids == ["a", "c", "d"]

        assert engine.reorder_unassigned(["d", "a", "c"]).success
        assert engine.unassigned_ids == ["d", "a", "c"]

        engine.dispatch(_move("a", UNASSIGNED, "g2"))
        assert engine.unassigned_ids == ["d", "c"]

        engine.dispatch(_move("b", "g2", UNASSIGNED))
        assert engine.unassigned_ids == ["d", "c", "b"]

    def test_reorder_unassigned_undo(self, engine: ScenarioEditingEngine) -> None:
        engine.delete_group("g1")
        engine.reorder_unassigned(["c", "d", "a"])
        engine.undo()
        assert engine.unassigned_ids == ["a", "c", "d"]

    def test_reorder_unassigned_invalid(self, engine: ScenarioEditingEngine) -> None:
        assert engine.reorder_unassigned(["d", "a"]).reason == FailureReason.INVALID_ORDER


class TestRoundTrip:
    @pytest.mark.parametrize(
        "edit",
        [
            lambda e: e.dispatch(_move("d", UNASSIGNED, "g1", index=0)),
            lambda e: e.dispatch(_move("a", "g1", UNASSIGNED)),
            lambda e: e.dispatch(_move("c", "g1", "g2", index=0)),
            lambda e: e.create_group("New"),
            lambda e: e.delete_group("g1"),
            lambda e: e.update_group("g2", {"name": "Renamed", "capacity": None}),
            lambda e: e.reorder_group("g1", ["c", "a"]),
        ],
        ids=["move-in", "move-out", "move-across", "create", "delete", "update", "reorder"],
    )
    def test_edit_then_undo_restores_state(self, engine: ScenarioEditingEngine, edit) -> None:
        before = _state(engine)
        assert edit(engine).success
        assert engine.undo() is True
        assert _state(engine) == before


class TestPartitionInvariant:
    def test_random_edit_sequence_keeps_partition_valid(
        self, engine: ScenarioEditingEngine, small_scenario: Scenario,
    ) -> None:
        snapshot = set(small_scenario.participant_snapshot)
        rng = random.Random(1234)

        for _ in range(300):
            groups = engine.groups
            containers = [g.id for g in groups] + [UNASSIGNED]
            op = rng.choice(["move", "move", "move", "create", "delete", "undo", "redo", "reorder"])

            if op == "move":
                pid = rng.choice(sorted(snapshot))
                current = next((g.id for g in groups if pid in g.member_ids), UNASSIGNED)
                engine.dispatch(_move(pid, current, rng.choice(containers)))
            elif op == "create":
                engine.create_group(rng.choice(["Group", "Team", None]))
            elif op == "delete" and groups:
                engine.delete_group(rng.choice(groups).id)
            elif op == "undo":
                engine.undo()
            elif op == "redo":
                engine.redo()
            elif op == "reorder" and groups:
                group = rng.choice(groups)
                order = list(group.member_ids)
                rng.shuffle(order)
                engine.reorder_group(group.id, order)

            _assert_partition_valid(engine, snapshot)
            names = [g.name.lower() for g in engine.groups]
            assert len(names) == len(set(names))


class TestRegenerate:
    def test_replaces_partition_and_resets_history(self, engine: ScenarioEditingEngine) -> None:
        engine.dispatch(_move("d", UNASSIGNED, "g2"))
        new_groups = [
            Group(id="g1", name="North", capacity=2, member_ids=["a", "b"]),
            Group(id="g2", name="South", capacity=2, member_ids=["c", "d"]),
        ]

        assert engine.regenerate(new_groups).success
        assert [g.name for g in engine.groups] == ["North", "South"]
        assert engine.can_undo is False
        assert engine.can_redo is False
        assert engine.baseline.percent_assigned_top_choice == 100.0
        assert engine.current_analytics == engine.baseline

    def test_rejects_groups_outside_snapshot(self, engine: ScenarioEditingEngine) -> None:
        with pytest.raises(ValueError):
            engine.regenerate([Group(id="n1", name="North", member_ids=["stranger"])])
        assert [g.id for g in engine.groups] == ["g1", "g2"]


class TestAnalytics:
    @pytest.mark.anyio
    async def test_recomputed_after_debounce(
        self, engine: ScenarioEditingEngine, scheduler: ManualScheduler,
    ) -> None:
        baseline = engine.baseline
        engine.dispatch(_move("c", "g1", "g2"))
        assert engine.current_analytics == baseline

        await scheduler.advance(0.5)
        current = engine.current_analytics
        assert current.percent_assigned_top_choice == pytest.approx(200 / 3)
        delta = engine.analytics_delta
        assert delta.top_choice == pytest.approx(100 / 3)
        assert engine.baseline == baseline

    def test_refresh_now(self, engine: ScenarioEditingEngine) -> None:
        engine.dispatch(_move("d", UNASSIGNED, "g2"))
        current = engine.refresh_analytics()
        assert current.students_unassigned_to_request == 0
        assert engine.view().current == current


class TestMetadata:
    def test_update_algorithm_config(self, engine: ScenarioEditingEngine) -> None:
        assert engine.update_algorithm_config({"target_group_size": 3}).success
        assert engine.build_scenario().algorithm_config == {"target_group_size": 3}
        assert engine.history_length() == 0

    def test_export_state(self, engine: ScenarioEditingEngine) -> None:
        engine.dispatch(_move("d", UNASSIGNED, "g2"))
        record = json.loads(engine.export_state())
        assert record["id"] == "scn-1"
        assert record["status"] == "DRAFT"
        assert record["participant_snapshot"] == ["a", "b", "c", "d"]
        assert record["groups"][1]["member_ids"] == ["b", "d"]

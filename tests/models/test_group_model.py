"""Tests for Group, capacity helpers and unique naming."""

import math

import pytest
from pydantic import ValidationError

from cohort.models.group import (
    Group,
    capacity_status,
    ensure_unique_group_name,
    ensure_unique_group_names,
    is_full,
    normalize_group_name,
    remaining_capacity,
)


class TestGroup:
    def test_defaults(self) -> None:
        group = Group(name="Robotics")
        assert group.capacity is None
        assert group.member_ids == []
        assert group.id

    def test_name_is_stripped(self) -> None:
        assert Group(name="  Drama  ").name == "Drama"

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Group(name="   ")

    def test_zero_capacity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Group(name="Drama", capacity=0)

    def test_members_deduplicated_in_order(self) -> None:
        group = Group(name="Drama", member_ids=["b", "a", "b", "c", "a"])
        assert group.member_ids == ["b", "a", "c"]


class TestCapacity:
    def test_unlimited_group(self) -> None:
        group = Group(name="Open", member_ids=["a", "b"])
        assert remaining_capacity(group) == math.inf
        assert is_full(group) is False
        status = capacity_status(group)
        assert status.is_warning is False
        assert status.is_full is False
        assert status.is_over is False

    def test_warning_at_eighty_percent(self) -> None:
        group = Group(name="G", capacity=5, member_ids=["a", "b", "c", "d"])
        status = capacity_status(group)
        assert status.is_warning is True
        assert status.is_full is False
        assert remaining_capacity(group) == 1

    def test_below_warning(self) -> None:
        group = Group(name="G", capacity=5, member_ids=["a", "b", "c"])
        assert capacity_status(group).is_warning is False

    def test_over_capacity_is_full_and_over(self) -> None:
        group = Group(name="G", capacity=1, member_ids=["a", "b"])
        status = capacity_status(group)
        assert status.is_full is True
        assert status.is_over is True
        assert remaining_capacity(group) == 0
        assert is_full(group) is True


class TestUniqueNames:
    def test_blank_becomes_default(self) -> None:
        assert normalize_group_name("  ") == "Group"
        assert normalize_group_name(None) == "Group"

    def test_free_name_kept(self) -> None:
        used: set[str] = set()
        assert ensure_unique_group_name("Drama", used) == "Drama"
        assert "drama" in used

    def test_collision_is_case_insensitive(self) -> None:
        used = {"group"}
        assert ensure_unique_group_name("GROUP", used) == "GROUP 2"

    def test_numbered_name_is_bumped(self) -> None:
        used = {"team 3"}
        assert ensure_unique_group_name("Team 3", used) == "Team 4"

    def test_sequence(self) -> None:
        assert ensure_unique_group_names(["Group", "Group", "group", ""]) == [
            "Group", "Group 2", "group 3", "Group 4",
        ]

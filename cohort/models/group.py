"""Group model, capacity helpers, and unique-name utilities.

A Group owns an ordered list of participant ids. Which group a participant
is in is always answered by lookup over groups, never stored on the
participant.
"""

import math
import re
from dataclasses import dataclass

from pydantic import Field, field_validator

from cohort.models.common import CohortBase, GroupId, ParticipantId, new_id

DEFAULT_GROUP_NAME = "Group"

# Fill ratio at which a group starts to warn.
CAPACITY_WARNING_RATIO = 0.8

MAX_GROUP_NAME_LENGTH = 200

_NUMBERED_NAME = re.compile(r"^(.*\S)\s+(\d+)$")


class Group(CohortBase):
    """Named, optionally capacity-bounded container of participants."""

    id: GroupId = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=MAX_GROUP_NAME_LENGTH)
    capacity: int | None = Field(
        default=None, ge=1, description="Maximum members; None means unlimited.",
    )
    member_ids: list[ParticipantId] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("member_ids")
    @classmethod
    def _dedupe_members(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class GroupTemplate(CohortBase):
    """Group layout supplied to the optimizer before any members exist."""

    id: GroupId | None = None
    name: str = Field(..., min_length=1, max_length=MAX_GROUP_NAME_LENGTH)
    capacity: int | None = Field(default=None, ge=1)


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapacityStatus:
    """How full a group is, for surfacing over-capacity warnings."""

    member_count: int
    capacity: int | None
    is_warning: bool
    is_full: bool

    @property
    def is_over(self) -> bool:
        return self.capacity is not None and self.member_count > self.capacity


def remaining_capacity(group: Group) -> float:
    """Free seats in the group; ``math.inf`` when unlimited, never negative."""
    if group.capacity is None:
        return math.inf
    return max(0, group.capacity - len(group.member_ids))


def is_full(group: Group) -> bool:
    if group.capacity is None:
        return False
    return len(group.member_ids) >= group.capacity


def capacity_status(group: Group) -> CapacityStatus:
    """Warn at 80 % fill, flag full at 100 % or more. Unlimited never warns."""
    count = len(group.member_ids)
    if group.capacity is None:
        return CapacityStatus(count, None, is_warning=False, is_full=False)

    ratio = count / group.capacity
    return CapacityStatus(
        count,
        group.capacity,
        is_warning=ratio >= CAPACITY_WARNING_RATIO,
        is_full=ratio >= 1.0,
    )


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


def normalize_group_name(raw_name: str | None) -> str:
    trimmed = (raw_name or "").strip()
    return trimmed or DEFAULT_GROUP_NAME


def ensure_unique_group_name(name: str | None, used_names: set[str]) -> str:
    """Return a name not in ``used_names`` (case-insensitive) and record it.

    A colliding name gets a numeric suffix ("Group" -> "Group 2"); a name
    that already ends in a number has that number bumped ("Team 3" ->
    "Team 4"). ``used_names`` must hold lower-cased names.
    """
    candidate = normalize_group_name(name)
    base_name = candidate
    suffix: int | None = None
    match = _NUMBERED_NAME.match(candidate)
    if match:
        base_name = match.group(1).strip()
        suffix = int(match.group(2))

    counter = suffix if suffix is not None else 1
    while candidate.lower() in used_names:
        counter += 1
        candidate = f"{base_name} {counter}"

    used_names.add(candidate.lower())
    return candidate


def ensure_unique_group_names(names: list[str]) -> list[str]:
    used: set[str] = set()
    return [ensure_unique_group_name(name, used) for name in names]

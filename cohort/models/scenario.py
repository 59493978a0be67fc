"""Scenario model: one reproducible grouping of a fixed participant set.

The participant snapshot is captured once at creation and never mutated;
every group member must belong to it.
"""

from typing import Any

from pydantic import Field, field_validator, model_validator

from cohort.models.common import (
    CohortBase,
    ParticipantId,
    ScenarioStatus,
    UTCTimestamp,
    new_id,
    utc_now,
)
from cohort.models.group import Group

# Valid lifecycle transitions.
VALID_STATUS_TRANSITIONS: dict[ScenarioStatus, frozenset[ScenarioStatus]] = {
    ScenarioStatus.DRAFT: frozenset({ScenarioStatus.ADOPTED}),
    ScenarioStatus.ADOPTED: frozenset({ScenarioStatus.ARCHIVED}),
    ScenarioStatus.ARCHIVED: frozenset(),
}


class Scenario(CohortBase):
    """Grouping result for an immutable participant snapshot."""

    id: str = Field(default_factory=new_id, min_length=1)
    program_id: str | None = None
    status: ScenarioStatus = Field(default=ScenarioStatus.DRAFT)
    groups: list[Group] = Field(default_factory=list)
    participant_snapshot: tuple[ParticipantId, ...] = Field(default_factory=tuple)
    created_at: UTCTimestamp = Field(default_factory=utc_now)
    last_modified_at: UTCTimestamp = Field(default_factory=utc_now)
    created_by: str | None = None
    algorithm_config: dict[str, Any] | None = None

    @field_validator("participant_snapshot", mode="before")
    @classmethod
    def _dedupe_snapshot(cls, value: object) -> object:
        if isinstance(value, list | tuple):
            return tuple(dict.fromkeys(value))
        return value

    @model_validator(mode="after")
    def _members_consistent(self) -> "Scenario":
        snapshot = set(self.participant_snapshot)
        seen: dict[str, str] = {}
        names: set[str] = set()
        for group in self.groups:
            lowered = group.name.lower()
            if lowered in names:
                msg = f"Duplicate group name {group.name!r} in scenario {self.id}"
                raise ValueError(msg)
            names.add(lowered)

            for member_id in group.member_ids:
                if member_id not in snapshot:
                    msg = (
                        f"Group member {member_id} is not in participant snapshot "
                        f"of scenario {self.id}"
                    )
                    raise ValueError(msg)
                if member_id in seen:
                    msg = (
                        f"Participant {member_id} is in both group {seen[member_id]} "
                        f"and group {group.id}"
                    )
                    raise ValueError(msg)
                seen[member_id] = group.id
        return self

    def group_of(self, participant_id: str) -> Group | None:
        for group in self.groups:
            if participant_id in group.member_ids:
                return group
        return None

    def unassigned_ids(self) -> list[str]:
        """Snapshot participants not in any group, in snapshot order."""
        assigned = {m for g in self.groups for m in g.member_ids}
        return [pid for pid in self.participant_snapshot if pid not in assigned]

    def with_status(self, status: ScenarioStatus) -> "Scenario":
        """Copy of the scenario moved to ``status``.

        Raises:
            ValueError: If the lifecycle does not allow the transition.
        """
        allowed = VALID_STATUS_TRANSITIONS.get(self.status, frozenset())
        if status not in allowed:
            msg = (
                f"Cannot transition scenario from {self.status} to {status}. "
                f"Allowed: {sorted(s.value for s in allowed)}."
            )
            raise ValueError(msg)
        return self.model_copy(update={"status": status}, deep=True)

    def to_record(self) -> dict[str, Any]:
        """Plain JSON-compatible record for storage and export."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Scenario":
        return cls.model_validate(record)


def create_scenario(
    *,
    groups: list[Group],
    participant_ids: list[str],
    program_id: str | None = None,
    created_by: str | None = None,
    algorithm_config: dict[str, Any] | None = None,
    scenario_id: str | None = None,
) -> Scenario:
    """Construct a DRAFT scenario with a fresh snapshot of ``participant_ids``.

    Raises:
        ValueError: If group membership is inconsistent with the snapshot.
    """
    now = utc_now()
    return Scenario(
        id=scenario_id or new_id(),
        program_id=program_id,
        status=ScenarioStatus.DRAFT,
        groups=[g.model_copy(deep=True) for g in groups],
        participant_snapshot=tuple(participant_ids),
        created_at=now,
        last_modified_at=now,
        created_by=created_by,
        algorithm_config=algorithm_config,
    )

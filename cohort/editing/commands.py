"""Reversible partition commands.

Each command carries enough data to apply itself and to build its exact
inverse, so undo never has to inspect the state it is undoing. Commands
are validated by the editing engine before they are applied; applying a
validated command cannot fail.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import Field

from cohort.models.common import UNASSIGNED, CohortBase
from cohort.models.group import Group

# ---------------------------------------------------------------------------
# Working state
# ---------------------------------------------------------------------------


@dataclass
class PartitionState:
    """Mutable working copy of a scenario's groups.

    ``unassigned_order`` is None until the unassigned pseudo-container is
    explicitly reordered; until then it follows snapshot order.
    """

    groups: list[Group] = field(default_factory=list)
    unassigned_order: list[str] | None = None

    def find(self, group_id: str) -> Group | None:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def index_of(self, group_id: str) -> int | None:
        for idx, group in enumerate(self.groups):
            if group.id == group_id:
                return idx
        return None

    def group_of(self, participant_id: str) -> Group | None:
        for group in self.groups:
            if participant_id in group.member_ids:
                return group
        return None


# ---------------------------------------------------------------------------
# Group field patch
# ---------------------------------------------------------------------------


class GroupPatch(CohortBase, frozen=True):
    """Subset of editable group fields.

    Only fields explicitly set (``model_fields_set``) take part, so
    ``capacity=None`` (unlimited) is distinct from "capacity unchanged".
    """

    name: str | None = None
    capacity: int | None = None

    def provided(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set}

    def merged(self, newer: "GroupPatch") -> "GroupPatch":
        """Fields of ``newer`` win over fields of ``self``."""
        return GroupPatch(**{**self.provided(), **newer.provided()})

    @classmethod
    def snapshot(cls, group: Group, fields: set[str]) -> "GroupPatch":
        """Current values of ``fields`` on ``group``."""
        return cls(**{name: getattr(group, name) for name in fields})


# ---------------------------------------------------------------------------
# Command variants
# ---------------------------------------------------------------------------


class MoveParticipant(CohortBase, frozen=True):
    """Move a participant between groups or the unassigned pseudo-container.

    ``source`` and ``target`` are group ids or ``UNASSIGNED``. Once recorded,
    ``target_index`` is the position the participant was inserted at and
    ``previous_index`` the position it left, so the inverse puts it back
    exactly where it was.
    """

    type: Literal["MOVE_PARTICIPANT"] = "MOVE_PARTICIPANT"
    participant_id: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    target_index: int | None = Field(default=None, ge=0)
    previous_index: int | None = Field(default=None, ge=0)


class CreateGroup(CohortBase, frozen=True):
    type: Literal["CREATE_GROUP"] = "CREATE_GROUP"
    group: Group
    index: int | None = Field(default=None, ge=0)


class DeleteGroup(CohortBase, frozen=True):
    """Remove a group; its members become unassigned."""

    type: Literal["DELETE_GROUP"] = "DELETE_GROUP"
    group_id: str
    previous_group: Group
    index: int | None = Field(default=None, ge=0)


class UpdateGroup(CohortBase, frozen=True):
    type: Literal["UPDATE_GROUP"] = "UPDATE_GROUP"
    group_id: str
    changes: GroupPatch
    previous: GroupPatch


class ReorderGroup(CohortBase, frozen=True):
    type: Literal["REORDER_GROUP"] = "REORDER_GROUP"
    group_id: str
    new_order: tuple[str, ...]
    previous_order: tuple[str, ...]


class ReorderUnassigned(CohortBase, frozen=True):
    type: Literal["REORDER_UNASSIGNED"] = "REORDER_UNASSIGNED"
    new_order: tuple[str, ...]
    previous_order: tuple[str, ...]


Command = Annotated[
    Union[MoveParticipant, CreateGroup, DeleteGroup, UpdateGroup, ReorderGroup, ReorderUnassigned],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Apply / invert
# ---------------------------------------------------------------------------


def _insert(items: list, index: int | None, value: Any) -> None:
    if index is None or index >= len(items):
        items.append(value)
    else:
        items.insert(index, value)


def apply_command(state: PartitionState, command: Command) -> None:
    """Apply ``command`` to ``state`` in place.

    Groups entering the state are copied so later edits never alias a
    group stored inside a recorded command.
    """
    if isinstance(command, MoveParticipant):
        if command.source != UNASSIGNED:
            source = state.find(command.source)
            if source is not None:
                source.member_ids.remove(command.participant_id)
        if command.target != UNASSIGNED:
            target = state.find(command.target)
            if target is not None:
                _insert(target.member_ids, command.target_index, command.participant_id)

    elif isinstance(command, CreateGroup):
        _insert(state.groups, command.index, command.group.model_copy(deep=True))

    elif isinstance(command, DeleteGroup):
        state.groups = [g for g in state.groups if g.id != command.group_id]

    elif isinstance(command, UpdateGroup):
        group = state.find(command.group_id)
        if group is not None:
            for name, value in command.changes.provided().items():
                setattr(group, name, value)

    elif isinstance(command, ReorderGroup):
        group = state.find(command.group_id)
        if group is not None:
            group.member_ids = list(command.new_order)

    elif isinstance(command, ReorderUnassigned):
        state.unassigned_order = list(command.new_order)

    else:
        msg = f"Unsupported command type: {type(command).__name__}"
        raise TypeError(msg)


def invert_command(command: Command) -> Command:
    """Command that exactly undoes ``command``."""
    if isinstance(command, MoveParticipant):
        return MoveParticipant(
            participant_id=command.participant_id,
            source=command.target,
            target=command.source,
            target_index=command.previous_index,
            previous_index=command.target_index,
        )
    if isinstance(command, CreateGroup):
        return DeleteGroup(
            group_id=command.group.id,
            previous_group=command.group,
            index=command.index,
        )
    if isinstance(command, DeleteGroup):
        return CreateGroup(group=command.previous_group, index=command.index)
    if isinstance(command, UpdateGroup):
        return UpdateGroup(
            group_id=command.group_id,
            changes=command.previous,
            previous=command.changes,
        )
    if isinstance(command, ReorderGroup):
        return ReorderGroup(
            group_id=command.group_id,
            new_order=command.previous_order,
            previous_order=command.new_order,
        )
    if isinstance(command, ReorderUnassigned):
        return ReorderUnassigned(
            new_order=command.previous_order,
            previous_order=command.new_order,
        )
    msg = f"Unsupported command type: {type(command).__name__}"
    raise TypeError(msg)

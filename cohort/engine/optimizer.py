"""Partition optimizer: greedy seeding plus hill-climbing swap search.

1. Layout: fixed group count (capacity = ceil(n / count)), fixed group size
   (count = ceil(n / size)), or explicit group templates.
2. Greedy seed: participants in descending connection degree each join the
   group with free capacity where they score highest; ties go to the
   earliest group.
3. Local search: a fixed budget of random pairwise swaps between groups,
   each accepted only on a strictly positive score delta.

Capacity is never exceeded and every participant lands in exactly one
group. Runtime is bounded by the swap budget, not by convergence.
Deterministic for a given seed. NumPy Generator is the only randomness.
"""

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from pydantic import Field, model_validator

from cohort.config.settings import Settings, get_settings
from cohort.models.common import CohortBase, GroupCreationMode, new_id
from cohort.models.group import Group, GroupTemplate, ensure_unique_group_name
from cohort.models.preference import Preference, build_preference_map

logger = logging.getLogger(__name__)

OPTIMIZER_VERSION = "1.0.0"

DEFAULT_TARGET_GROUP_SIZE = 5


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class GroupingConfig(CohortBase):
    """How to lay out groups and how hard to search.

    At most one of ``groups``, ``target_group_count`` and
    ``target_group_size`` may be set; with none set the target size is 5.
    """

    groups: list[GroupTemplate] | None = None
    target_group_count: int | None = Field(default=None, ge=1)
    target_group_size: int | None = Field(default=None, ge=1)
    swap_budget: int | None = Field(default=None, ge=0)
    seed: int | None = None

    @model_validator(mode="after")
    def _single_layout(self) -> "GroupingConfig":
        if self.groups is not None and not self.groups:
            msg = "groups must not be empty when given"
            raise ValueError(msg)
        chosen = [
            self.groups is not None,
            self.target_group_count is not None,
            self.target_group_size is not None,
        ]
        if sum(chosen) > 1:
            msg = "Set only one of groups, target_group_count, target_group_size"
            raise ValueError(msg)
        return self

    @property
    def mode(self) -> GroupCreationMode:
        if self.groups is not None:
            return GroupCreationMode.TEMPLATES
        if self.target_group_count is not None:
            return GroupCreationMode.COUNT
        return GroupCreationMode.SIZE


@dataclass(frozen=True)
class PartitionResult:
    """Optimizer output with search diagnostics."""

    groups: list[Group]
    score: float
    accepted_swaps: int
    evaluated_swaps: int


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


def derive_layout(
    participant_count: int,
    config: GroupingConfig,
    id_factory: Callable[[], str] = new_id,
) -> list[Group]:
    """Empty groups with capacities for ``participant_count`` participants.

    Raises:
        ValueError: If explicit templates cannot seat every participant.
    """
    if participant_count <= 0:
        return []

    if config.mode == GroupCreationMode.TEMPLATES:
        used: set[str] = set()
        groups = [
            Group(
                id=template.id or id_factory(),
                name=ensure_unique_group_name(template.name, used),
                capacity=template.capacity,
            )
            for template in config.groups or []
        ]
        if all(g.capacity is not None for g in groups):
            total = sum(g.capacity for g in groups)
            if total < participant_count:
                msg = (
                    f"Group templates seat {total} participants, "
                    f"{participant_count} need a group."
                )
                raise ValueError(msg)
        return groups

    if config.mode == GroupCreationMode.COUNT:
        count = config.target_group_count
        capacity = math.ceil(participant_count / count)
    else:
        capacity = config.target_group_size or DEFAULT_TARGET_GROUP_SIZE
        count = math.ceil(participant_count / capacity)

    return [
        Group(id=id_factory(), name=f"Group {i}", capacity=capacity)
        for i in range(1, count + 1)
    ]


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class _Affinity:
    """Precomputed preference lookups over the participant set."""

    def __init__(
        self,
        participants: Sequence[str],
        preferences: Mapping[str, Preference],
        group_ids: Iterable[str],
    ) -> None:
        known = set(participants)
        valid_groups = set(group_ids)

        self._wish: dict[str, dict[str, int]] = {}
        self._friends: dict[str, frozenset[str]] = {}
        self._liked_by: dict[str, set[str]] = {pid: set() for pid in participants}

        for pid in participants:
            pref = preferences.get(pid) or Preference.empty(pid)
            wishlist = [g for g in pref.group_ids if g in valid_groups]
            # rank 1 weighs len(wishlist), the last rank weighs 1
            self._wish[pid] = {
                gid: len(wishlist) - idx for idx, gid in enumerate(wishlist)
            }
            friends = frozenset(f for f in pref.friend_ids if f in known and f != pid)
            self._friends[pid] = friends
            for friend in friends:
                self._liked_by[friend].add(pid)

    def degree(self, pid: str) -> int:
        """Declared links touching ``pid``: friend edges plus wishlist entries."""
        return len(self._friends[pid] | self._liked_by[pid]) + len(self._wish[pid])

    def satisfaction(self, pid: str, group_id: str, members: Sequence[str]) -> int:
        friends = self._friends[pid]
        together = sum(1 for m in members if m != pid and m in friends)
        return self._wish[pid].get(group_id, 0) + together

    def admirers(self, pid: str, members: Sequence[str]) -> int:
        """Co-members in ``members`` who list ``pid`` as a friend."""
        liked_by = self._liked_by[pid]
        return sum(1 for m in members if m != pid and m in liked_by)


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------


class PartitionOptimizer:
    """Assigns participants to capacity-bounded groups by preference."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._default_swap_budget = (settings or get_settings()).OPTIMIZER_SWAP_BUDGET

    def partition(
        self,
        participants: Sequence[str],
        preferences: Iterable[Preference] | Mapping[str, Any],
        config: GroupingConfig | None = None,
        *,
        id_factory: Callable[[], str] = new_id,
    ) -> PartitionResult:
        """Partition ``participants`` into groups.

        Args:
            participants: Participant ids; repeats are ignored.
            preferences: Preference values, or raw payloads keyed by id.
            config: Layout and search settings.
            id_factory: Id source for generated groups.

        Returns:
            PartitionResult whose groups hold every participant exactly once.

        Raises:
            ValueError: If explicit templates cannot seat every participant.
        """
        config = config or GroupingConfig()
        roster = list(dict.fromkeys(participants))
        if not roster:
            return PartitionResult(groups=[], score=0.0, accepted_swaps=0, evaluated_swaps=0)

        layout = derive_layout(len(roster), config, id_factory)
        affinity = _Affinity(roster, build_preference_map(preferences), (g.id for g in layout))

        members = self._greedy_seed(roster, layout, affinity)

        budget = config.swap_budget if config.swap_budget is not None else self._default_swap_budget
        rng = np.random.default_rng(config.seed)
        accepted, evaluated = self._local_search(layout, members, affinity, budget, rng)

        groups = [
            group.model_copy(update={"member_ids": list(group_members)})
            for group, group_members in zip(layout, members)
        ]
        score = float(sum(
            affinity.satisfaction(pid, group.id, group.member_ids)
            for group in groups
            for pid in group.member_ids
        ))

        logger.info(
            "Partitioned %d participants into %d groups "
            "(score=%.1f, accepted %d of %d evaluated swaps)",
            len(roster), len(groups), score, accepted, evaluated,
        )
        return PartitionResult(
            groups=groups, score=score, accepted_swaps=accepted, evaluated_swaps=evaluated,
        )

    # ---------------------------------------------------------------
    # Phase 1: greedy seed
    # ---------------------------------------------------------------

    def _greedy_seed(
        self,
        roster: list[str],
        layout: list[Group],
        affinity: _Affinity,
    ) -> list[list[str]]:
        # sorted() is stable, so equal degrees keep roster order
        order = sorted(roster, key=affinity.degree, reverse=True)
        members: list[list[str]] = [[] for _ in layout]

        for pid in order:
            best_idx: int | None = None
            best_score = -1
            for idx, group in enumerate(layout):
                if group.capacity is not None and len(members[idx]) >= group.capacity:
                    continue
                score = affinity.satisfaction(pid, group.id, members[idx])
                if score > best_score:
                    best_idx, best_score = idx, score

            if best_idx is None:
                msg = f"No group has capacity left for participant {pid}"
                raise ValueError(msg)
            members[best_idx].append(pid)

        return members

    # ---------------------------------------------------------------
    # Phase 2: hill-climbing swaps
    # ---------------------------------------------------------------

    def _local_search(
        self,
        layout: list[Group],
        members: list[list[str]],
        affinity: _Affinity,
        budget: int,
        rng: np.random.Generator,
    ) -> tuple[int, int]:
        placed = [pid for group_members in members for pid in group_members]
        if len(placed) < 2 or len(layout) < 2:
            return 0, 0

        where = {pid: idx for idx, group_members in enumerate(members) for pid in group_members}
        accepted = 0
        evaluated = 0

        for _ in range(budget):
            i, j = rng.integers(0, len(placed), size=2)
            a, b = placed[i], placed[j]
            ga, gb = where[a], where[b]
            if ga == gb:
                continue

            evaluated += 1
            delta = self._swap_delta(a, b, layout[ga].id, layout[gb].id, members[ga], members[gb], affinity)
            if delta > 0:
                ma, mb = members[ga], members[gb]
                ma[ma.index(a)] = b
                mb[mb.index(b)] = a
                where[a], where[b] = gb, ga
                accepted += 1

        return accepted, evaluated

    @staticmethod
    def _swap_delta(
        a: str,
        b: str,
        group_a: str,
        group_b: str,
        members_a: list[str],
        members_b: list[str],
        affinity: _Affinity,
    ) -> int:
        """Score change from swapping ``a`` and ``b``; lists are left unchanged."""
        before = (
            affinity.satisfaction(a, group_a, members_a)
            + affinity.satisfaction(b, group_b, members_b)
            + affinity.admirers(a, members_a)
            + affinity.admirers(b, members_b)
        )

        ia, ib = members_a.index(a), members_b.index(b)
        members_a[ia], members_b[ib] = b, a
        after = (
            affinity.satisfaction(a, group_b, members_b)
            + affinity.satisfaction(b, group_a, members_a)
            + affinity.admirers(b, members_a)
            + affinity.admirers(a, members_b)
        )
        members_a[ia], members_b[ib] = a, b

        return after - before

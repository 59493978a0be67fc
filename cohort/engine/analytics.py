"""Satisfaction analytics: scores a partition against ranked wishlists.

Pure function of its inputs: identical inputs always produce an identical
result, so a frozen baseline can be diffed against the live partition.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from cohort.models.analytics import ScenarioSatisfaction
from cohort.models.group import Group
from cohort.models.preference import Preference, build_preference_map


def assignment_map(groups: Iterable[Group]) -> dict[str, str]:
    """participant id -> id of the group holding it."""
    return {member_id: group.id for group in groups for member_id in group.member_ids}


def preference_rank(preference: Preference, group_id: str) -> int:
    """1-based wishlist rank of ``group_id``.

    A group missing from the wishlist scores one past the last explicit
    rank, a finite sentinel so averages stay comparable.
    """
    rank = preference.rank_of(group_id)
    return rank if rank is not None else len(preference.group_ids) + 1


def compute_satisfaction(
    groups: Sequence[Group],
    preferences: Iterable[Preference] | Mapping[str, Any],
    participant_snapshot: Sequence[str],
) -> ScenarioSatisfaction:
    """Score ``groups`` against each snapshot participant's wishlist.

    Participants without a wishlist, or with one but no group, are left out
    of the rank aggregates and counted separately.
    """
    by_participant = build_preference_map(preferences)
    placed = assignment_map(groups)

    with_prefs = 0
    no_prefs = 0
    unassigned = 0
    top_choice = 0
    top2 = 0
    rank_total = 0

    for participant_id in dict.fromkeys(participant_snapshot):
        pref = by_participant.get(participant_id)
        if pref is None or not pref.group_ids:
            no_prefs += 1
            continue

        group_id = placed.get(participant_id)
        if group_id is None:
            unassigned += 1
            continue

        rank = preference_rank(pref, group_id)
        with_prefs += 1
        rank_total += rank
        if rank == 1:
            top_choice += 1
        if rank <= 2:
            top2 += 1

    if with_prefs == 0:
        return ScenarioSatisfaction(
            percent_assigned_top_choice=0.0,
            percent_assigned_top2=0.0,
            average_preference_rank_assigned=float("nan"),
            students_with_preferences=0,
            students_with_no_preferences=no_prefs,
            students_unassigned_to_request=unassigned,
        )

    return ScenarioSatisfaction(
        percent_assigned_top_choice=100.0 * top_choice / with_prefs,
        percent_assigned_top2=100.0 * top2 / with_prefs,
        average_preference_rank_assigned=rank_total / with_prefs,
        students_with_preferences=with_prefs,
        students_with_no_preferences=no_prefs,
        students_unassigned_to_request=unassigned,
    )

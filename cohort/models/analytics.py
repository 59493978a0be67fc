"""Satisfaction analytics value types."""

from pydantic import Field

from cohort.models.common import CohortBase


class ScenarioSatisfaction(CohortBase, frozen=True):
    """How well a partition matches participants' ranked group wishlists.

    Percentages are 0-100 over participants that are both assigned and have
    a non-empty wishlist. ``average_preference_rank_assigned`` is NaN when
    no such participant exists.
    """

    percent_assigned_top_choice: float = Field(..., ge=0.0, le=100.0)
    percent_assigned_top2: float = Field(..., ge=0.0, le=100.0)
    average_preference_rank_assigned: float
    students_with_preferences: int = Field(default=0, ge=0)
    students_with_no_preferences: int = Field(default=0, ge=0)
    students_unassigned_to_request: int = Field(default=0, ge=0)


class AnalyticsDelta(CohortBase, frozen=True):
    """Current minus baseline satisfaction. Negative rank delta is better."""

    top_choice: float
    top2: float
    average_rank: float

    @classmethod
    def between(
        cls,
        baseline: ScenarioSatisfaction | None,
        current: ScenarioSatisfaction | None,
    ) -> "AnalyticsDelta | None":
        if baseline is None or current is None:
            return None
        return cls(
            top_choice=current.percent_assigned_top_choice - baseline.percent_assigned_top_choice,
            top2=current.percent_assigned_top2 - baseline.percent_assigned_top2,
            average_rank=(
                current.average_preference_rank_assigned
                - baseline.average_preference_rank_assigned
            ),
        )

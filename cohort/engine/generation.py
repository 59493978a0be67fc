"""Scenario generation: run the optimizer and wrap the result in a DRAFT scenario.

``generate_candidates`` runs the optimizer several times with different
seeds and scores each result without persisting anything, so an operator
can compare candidates and pass the chosen groups to
``ScenarioEditingEngine.regenerate``.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import numpy as np

from cohort.engine.analytics import compute_satisfaction
from cohort.engine.optimizer import (
    OPTIMIZER_VERSION,
    GroupingConfig,
    PartitionOptimizer,
    PartitionResult,
)
from cohort.models.analytics import ScenarioSatisfaction
from cohort.models.common import new_id, utc_now
from cohort.models.group import Group
from cohort.models.preference import Preference, build_preference_map
from cohort.models.scenario import Scenario, create_scenario

logger = logging.getLogger(__name__)

# Seeds stay within uint32 so numpy accepts them on every platform.
_SEED_MODULUS = 2**32
# Spacing between candidate seeds.
_CANDIDATE_SEED_STRIDE = 9973

DEFAULT_CANDIDATE_COUNT = 5


@dataclass(frozen=True)
class CandidateGrouping:
    """One unpersisted optimizer run with its satisfaction analytics."""

    id: str
    groups: list[Group]
    analytics: ScenarioSatisfaction
    result: PartitionResult
    algorithm_config: dict[str, Any]
    generated_at: datetime


def _with_seed(config: GroupingConfig) -> GroupingConfig:
    """Pin a seed so the run can be repeated from ``algorithm_config``."""
    if config.seed is not None:
        return config
    seed = int(np.random.default_rng().integers(0, _SEED_MODULUS))
    return config.model_copy(update={"seed": seed})


def _algorithm_record(config: GroupingConfig) -> dict[str, Any]:
    record = config.model_dump(mode="json", exclude_none=True)
    record["optimizer_version"] = OPTIMIZER_VERSION
    return record


def generate_scenario(
    participant_ids: Sequence[str],
    preferences: Iterable[Preference] | Mapping[str, Any],
    config: GroupingConfig | None = None,
    *,
    optimizer: PartitionOptimizer | None = None,
    program_id: str | None = None,
    created_by: str | None = None,
    scenario_id: str | None = None,
) -> Scenario:
    """Partition ``participant_ids`` and snapshot them into a new scenario.

    The config that produced the groups, including the seed actually used,
    is recorded on the scenario so the run can be reproduced.
    """
    config = _with_seed(config or GroupingConfig())
    optimizer = optimizer or PartitionOptimizer()
    result = optimizer.partition(participant_ids, preferences, config)

    scenario = create_scenario(
        groups=result.groups,
        participant_ids=list(participant_ids),
        program_id=program_id,
        created_by=created_by,
        algorithm_config=_algorithm_record(config),
        scenario_id=scenario_id,
    )
    logger.info(
        "Generated scenario %s with %d groups (seed=%d)",
        scenario.id, len(scenario.groups), config.seed,
    )
    return scenario


def generate_candidates(
    participant_ids: Sequence[str],
    preferences: Iterable[Preference] | Mapping[str, Any],
    config: GroupingConfig | None = None,
    count: int = DEFAULT_CANDIDATE_COUNT,
    *,
    optimizer: PartitionOptimizer | None = None,
    id_factory: Callable[[], str] = new_id,
) -> list[CandidateGrouping]:
    """Run the optimizer ``count`` times with spaced seeds and score each run.

    The first candidate uses the config's seed (or a drawn one); each next
    candidate offsets it. ``count`` below 1 still yields one candidate.
    Nothing is persisted.
    """
    base = _with_seed(config or GroupingConfig())
    optimizer = optimizer or PartitionOptimizer()
    by_participant = build_preference_map(preferences)
    snapshot = list(dict.fromkeys(participant_ids))

    candidates: list[CandidateGrouping] = []
    for index in range(max(1, count)):
        seed = (base.seed + index * _CANDIDATE_SEED_STRIDE) % _SEED_MODULUS
        run_config = base.model_copy(update={"seed": seed})
        result = optimizer.partition(snapshot, by_participant, run_config)
        candidates.append(CandidateGrouping(
            id=id_factory(),
            groups=result.groups,
            analytics=compute_satisfaction(result.groups, by_participant, snapshot),
            result=result,
            algorithm_config=_algorithm_record(run_config),
            generated_at=utc_now(),
        ))

    logger.info(
        "Generated %d candidate groupings for %d participants (base seed=%d)",
        len(candidates), len(snapshot), base.seed,
    )
    return candidates

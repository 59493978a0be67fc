"""Seed script: load a demo grouping scenario into the cohort database.

Creates:
1. A 12-participant demo roster with group wishlists and friend picks
2. Three activity groups (capacity 4 each)
3. A DRAFT scenario partitioned by the optimizer with a fixed seed

Idempotent: safe to run multiple times, skips if the demo scenario already exists.

Usage:
    python -m scripts.seed          # against DATABASE_URL from .env
    pytest tests/scripts/test_seed_idempotency.py  # against aiosqlite in-memory
"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from cohort.engine.generation import generate_scenario
from cohort.engine.optimizer import GroupingConfig, PartitionOptimizer
from cohort.models.group import GroupTemplate
from cohort.models.preference import Preference
from cohort.repositories.scenarios import ScenarioRowRepository

DEMO_SCENARIO_ID = "demo-scenario-0001"
DEMO_PROGRAM_ID = "demo-summer-camp"
DEMO_SEED = 20240601

DEMO_GROUPS = [
    GroupTemplate(id="grp-robotics", name="Robotics", capacity=4),
    GroupTemplate(id="grp-drama", name="Drama", capacity=4),
    GroupTemplate(id="grp-garden", name="Garden", capacity=4),
]

DEMO_PARTICIPANTS = [
    "ada", "ben", "cai", "dev",
    "eli", "fay", "gus", "hal",
    "ivy", "jon", "kim", "lea",
]

# participant -> (ranked group wishlist, friend picks)
_DEMO_WISHES: dict[str, tuple[list[str], list[str]]] = {
    "ada": (["grp-robotics", "grp-garden"], ["ben"]),
    "ben": (["grp-robotics", "grp-drama"], ["ada"]),
    "cai": (["grp-robotics"], []),
    "dev": (["grp-drama", "grp-robotics"], ["eli"]),
    "eli": (["grp-drama"], ["dev", "fay"]),
    "fay": (["grp-drama", "grp-garden"], []),
    "gus": (["grp-garden"], ["hal"]),
    "hal": (["grp-garden", "grp-robotics"], ["gus"]),
    "ivy": (["grp-garden"], []),
    "jon": (["grp-robotics", "grp-drama"], []),
    "kim": ([], ["lea"]),
}
# lea deliberately has no preferences


def demo_preferences() -> list[Preference]:
    return [
        Preference(participant_id=pid, group_ids=tuple(groups), friend_ids=tuple(friends))
        for pid, (groups, friends) in _DEMO_WISHES.items()
    ]


async def seed_demo(session: AsyncSession) -> dict:
    """Idempotent demo seed: one optimized DRAFT scenario.

    Returns dict with keys: created (bool), scenario_id, group_count.
    If the scenario already exists, returns created=False and skips.
    """
    repo = ScenarioRowRepository(session)
    existing = await repo.get(DEMO_SCENARIO_ID)
    if existing is not None:
        return {
            "created": False,
            "scenario_id": existing.id,
            "group_count": len(existing.groups),
        }

    scenario = generate_scenario(
        DEMO_PARTICIPANTS,
        demo_preferences(),
        GroupingConfig(groups=DEMO_GROUPS, seed=DEMO_SEED),
        optimizer=PartitionOptimizer(),
        program_id=DEMO_PROGRAM_ID,
        created_by="seed",
        scenario_id=DEMO_SCENARIO_ID,
    )
    await repo.save(scenario)

    return {
        "created": True,
        "scenario_id": scenario.id,
        "group_count": len(scenario.groups),
        "assigned_count": sum(len(g.member_ids) for g in scenario.groups),
    }


# ---------------------------------------------------------------------------
# CLI entry point: python -m scripts.seed
# ---------------------------------------------------------------------------


async def _run_seed() -> None:
    """Run the seed against the real database (idempotent)."""
    from cohort.db.session import async_session_factory, init_models
    from cohort.observability.logconfig import configure_logging

    configure_logging()
    await init_models()
    async with async_session_factory() as session:
        result = await seed_demo(session)

        if not result["created"]:
            print(f"Demo scenario already seeded ({result['scenario_id']}). Skipping.")
            return

        await session.commit()

        print("Seed complete.")
        print(f"  Scenario:     {result['scenario_id']}")
        print(f"  Groups:       {result['group_count']}")
        print(f"  Assigned:     {result['assigned_count']}")


if __name__ == "__main__":
    asyncio.run(_run_seed())

"""SQLAlchemy scenario repositories.

ScenarioRowRepository works inside a caller-owned session and calls
add()/flush() only, never commit(). SessionScopedScenarioRepository wraps
it for callers that need each write to be durable on its own, opening one
committed unit of work per call.
"""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cohort.db.tables import ScenarioRow
from cohort.models.scenario import Scenario
from cohort.repositories.base import ScenarioNotFoundError, ScenarioRepository


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _row_to_scenario(row: ScenarioRow) -> Scenario:
    return Scenario.from_record({
        "id": row.scenario_id,
        "program_id": row.program_id,
        "status": row.status,
        "groups": row.groups,
        "participant_snapshot": row.participant_snapshot,
        "algorithm_config": row.algorithm_config,
        "created_by": row.created_by,
        "created_at": _as_utc(row.created_at),
        "last_modified_at": _as_utc(row.last_modified_at),
    })


def _copy_into(row: ScenarioRow, scenario: Scenario) -> None:
    record = scenario.to_record()
    row.program_id = scenario.program_id
    row.status = scenario.status.value
    row.groups = record["groups"]
    row.participant_snapshot = record["participant_snapshot"]
    row.algorithm_config = record["algorithm_config"]
    row.created_by = scenario.created_by
    row.created_at = scenario.created_at
    row.last_modified_at = scenario.last_modified_at


class ScenarioRowRepository(ScenarioRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get_row(self, scenario_id: str) -> ScenarioRow | None:
        result = await self._session.execute(
            select(ScenarioRow).where(ScenarioRow.scenario_id == scenario_id)
        )
        return result.scalar_one_or_none()

    async def get(self, scenario_id: str) -> Scenario | None:
        row = await self._get_row(scenario_id)
        return _row_to_scenario(row) if row is not None else None

    async def save(self, scenario: Scenario) -> None:
        row = await self._get_row(scenario.id)
        if row is None:
            row = ScenarioRow(scenario_id=scenario.id)
            self._session.add(row)
        _copy_into(row, scenario)
        await self._session.flush()

    async def update(self, scenario: Scenario) -> None:
        row = await self._get_row(scenario.id)
        if row is None:
            raise ScenarioNotFoundError(scenario.id)
        _copy_into(row, scenario)
        await self._session.flush()

    async def list_by_program(self, program_id: str) -> list[Scenario]:
        result = await self._session.execute(
            select(ScenarioRow)
            .where(ScenarioRow.program_id == program_id)
            .order_by(ScenarioRow.created_at.asc())
        )
        return [_row_to_scenario(row) for row in result.scalars().all()]


class SessionScopedScenarioRepository(ScenarioRepository):
    """One committed session per call, rolled back on any exception."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, scenario_id: str) -> Scenario | None:
        async with self._session_factory() as session:
            return await ScenarioRowRepository(session).get(scenario_id)

    async def save(self, scenario: Scenario) -> None:
        async with self._session_factory() as session, session.begin():
            await ScenarioRowRepository(session).save(scenario)

    async def update(self, scenario: Scenario) -> None:
        async with self._session_factory() as session, session.begin():
            await ScenarioRowRepository(session).update(scenario)

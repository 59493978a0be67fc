"""Shared pytest fixtures for the cohort test suite.

Provides:
- anyio_backend: run async tests on asyncio only
- db_engine: in-memory SQLite async engine with all tables
- db_session: SAVEPOINT-isolated async session (app commits don't leak)
- session_factory: sessionmaker on db_engine for one-session-per-call repositories
- roster / preferences / small_scenario: a four-participant, two-group scenario
"""

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cohort.db.session import Base
import cohort.db.tables  # noqa: F401  register ORM models on Base.metadata
from cohort.models.group import Group
from cohort.models.preference import Preference
from cohort.models.scenario import Scenario, create_scenario


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Provide a SAVEPOINT-isolated session.

    The outer transaction is never committed; it rolls back at teardown.
    Application code calling session.commit() triggers a SAVEPOINT release,
    which is then restarted so subsequent operations stay in the same
    outer transaction.
    """
    async with db_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        nested = await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(sync_session, transaction):  # noqa: ARG001
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = conn.sync_connection.begin_nested()

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def roster() -> list[str]:
    return ["a", "b", "c", "d"]


@pytest.fixture
def preferences() -> list[Preference]:
    return [
        Preference(participant_id="a", group_ids=("g1",)),
        Preference(participant_id="b", group_ids=("g1",)),
        Preference(participant_id="c", group_ids=("g2",)),
        Preference(participant_id="d", group_ids=("g2",)),
    ]


@pytest.fixture
def small_scenario(roster: list[str]) -> Scenario:
    """g1 = [a, c], g2 = [b], d unassigned."""
    return create_scenario(
        groups=[
            Group(id="g1", name="Group 1", capacity=2, member_ids=["a", "c"]),
            Group(id="g2", name="Group 2", capacity=2, member_ids=["b"]),
        ],
        participant_ids=roster,
        scenario_id="scn-1",
    )

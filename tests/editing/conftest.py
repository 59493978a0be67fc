"""Fixtures for editing engine tests.

Timers run on a ManualScheduler, so tests step the clock explicitly with
``await scheduler.advance(seconds)``.
"""

import asyncio
import itertools

import pytest

from cohort.editing.config import EditingConfig
from cohort.editing.engine import ScenarioEditingEngine
from cohort.editing.scheduler import ManualScheduler
from cohort.models.preference import Preference
from cohort.models.scenario import Scenario
from cohort.repositories.memory import InMemoryScenarioRepository


class RecordingRepository(InMemoryScenarioRepository):
    """In-memory repository that records writes and can fail or block them."""

    def __init__(
        self,
        initial: list[Scenario] | None = None,
        *,
        failures: int = 0,
        always_fail: bool = False,
    ) -> None:
        super().__init__(initial)
        self.calls: list[str] = []
        self.writes: list[Scenario] = []
        self.failures = failures
        self.always_fail = always_fail
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def _write(self, kind: str, scenario: Scenario, store) -> None:
        self.calls.append(kind)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.always_fail:
                raise ConnectionError("storage unavailable")
            if self.failures > 0:
                self.failures -= 1
                raise ConnectionError("storage unavailable")
            await store(scenario)
            self.writes.append(scenario)
        finally:
            self.in_flight -= 1

    async def save(self, scenario: Scenario) -> None:
        await self._write("save", scenario, super().save)

    async def update(self, scenario: Scenario) -> None:
        await self._write("update", scenario, super().update)


def id_sequence(prefix: str):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def repository(small_scenario: Scenario) -> RecordingRepository:
    return RecordingRepository([small_scenario])


@pytest.fixture
def make_engine(scheduler: ManualScheduler, preferences: list[Preference]):
    def _make(scenario: Scenario, repository: InMemoryScenarioRepository) -> ScenarioEditingEngine:
        engine = ScenarioEditingEngine(
            repository,
            config=EditingConfig(),
            scheduler=scheduler,
            id_factory=id_sequence("new"),
        )
        engine.initialize(scenario, preferences)
        return engine

    return _make


@pytest.fixture
def engine(make_engine, small_scenario: Scenario, repository: RecordingRepository) -> ScenarioEditingEngine:
    """g1 = [a, c] (capacity 2), g2 = [b] (capacity 2), d unassigned."""
    return make_engine(small_scenario, repository)


@pytest.fixture
def make_repository():
    """Factory for RecordingRepository instances."""
    return RecordingRepository

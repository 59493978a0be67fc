"""In-memory scenario repository. Copies on every read and write."""

from cohort.models.scenario import Scenario
from cohort.repositories.base import ScenarioNotFoundError, ScenarioRepository


class InMemoryScenarioRepository(ScenarioRepository):
    def __init__(self, initial: list[Scenario] | None = None) -> None:
        self._scenarios: dict[str, Scenario] = {}
        for scenario in initial or []:
            self._scenarios[scenario.id] = scenario.model_copy(deep=True)

    async def get(self, scenario_id: str) -> Scenario | None:
        scenario = self._scenarios.get(scenario_id)
        return scenario.model_copy(deep=True) if scenario else None

    async def save(self, scenario: Scenario) -> None:
        self._scenarios[scenario.id] = scenario.model_copy(deep=True)

    async def update(self, scenario: Scenario) -> None:
        if scenario.id not in self._scenarios:
            raise ScenarioNotFoundError(scenario.id)
        self._scenarios[scenario.id] = scenario.model_copy(deep=True)

    async def list_all(self) -> list[Scenario]:
        return [s.model_copy(deep=True) for s in self._scenarios.values()]

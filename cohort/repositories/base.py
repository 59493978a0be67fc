"""Scenario persistence port.

Implementations must make each successful call durable and make later
reads reflect the latest successful write. ``update`` must signal an
unknown scenario with ``ScenarioNotFoundError`` so callers can fall back
to ``save``.
"""

from abc import ABC, abstractmethod

from cohort.models.scenario import Scenario


class ScenarioNotFoundError(KeyError):
    """Raised by ``update`` when no scenario with the given id is stored."""

    def __init__(self, scenario_id: str) -> None:
        super().__init__(scenario_id)
        self.scenario_id = scenario_id

    def __str__(self) -> str:
        return f"Scenario {self.scenario_id} not found."


class ScenarioRepository(ABC):
    """Base scenario repository interface."""

    @abstractmethod
    async def get(self, scenario_id: str) -> Scenario | None:
        ...

    @abstractmethod
    async def save(self, scenario: Scenario) -> None:
        """Insert or overwrite the full scenario keyed by its id."""

    @abstractmethod
    async def update(self, scenario: Scenario) -> None:
        """Overwrite an existing scenario.

        Raises:
            ScenarioNotFoundError: If the scenario was never saved.
        """

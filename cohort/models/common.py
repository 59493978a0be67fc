"""Shared types, enums, and base models used across cohort domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


def new_id() -> str:
    """String form of a fresh UUID v7, used for scenario and group ids."""
    return str(new_uuid7())


# --- Reusable annotated types ---

ParticipantId = Annotated[str, Field(min_length=1, description="Participant identity.")]
GroupId = Annotated[str, Field(min_length=1, description="Group identity.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]

# Pseudo-container id for participants that belong to no group.
UNASSIGNED = "unassigned"


# --- Shared enums ---


class ScenarioStatus(StrEnum):
    """Scenario lifecycle status."""

    DRAFT = "DRAFT"
    ADOPTED = "ADOPTED"
    ARCHIVED = "ARCHIVED"


class GroupCreationMode(StrEnum):
    """How the optimizer derives the group layout."""

    COUNT = "COUNT"
    SIZE = "SIZE"
    TEMPLATES = "TEMPLATES"


# --- Base model ---


class CohortBase(BaseModel):
    """Base model with common configuration for all cohort Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "protected_namespaces": (),
    }

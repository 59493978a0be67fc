"""SQLAlchemy ORM table models for cohort.

Uses FlexJSON (JSONB on Postgres, JSON on SQLite) for groups and the
participant snapshot. A scenario row always holds the full latest state;
writes overwrite it in place.
"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from cohort.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")


class ScenarioRow(Base):
    """Latest saved state of one scenario."""

    __tablename__ = "scenarios"

    scenario_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    program_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    groups = mapped_column(FlexJSON, nullable=False)
    participant_snapshot = mapped_column(FlexJSON, nullable=False)
    algorithm_config = mapped_column(FlexJSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

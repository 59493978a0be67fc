"""Scenarios table.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_json = JSONB().with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "scenarios",
        sa.Column("scenario_id", sa.String(64), primary_key=True),
        sa.Column("program_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("groups", _json, nullable=False),
        sa.Column("participant_snapshot", _json, nullable=False),
        sa.Column("algorithm_config", _json, nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_scenarios_program_id", "scenarios", ["program_id"])


def downgrade() -> None:
    op.drop_index("ix_scenarios_program_id", table_name="scenarios")
    op.drop_table("scenarios")

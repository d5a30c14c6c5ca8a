"""Initial schema: users, candidates, elections, ballots and vote participation.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("faculty", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('admin', 'student')", name="ck_users_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "candidates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("student_id", sa.String(50), nullable=True),
        sa.Column("position", sa.String(20), nullable=False),
        sa.Column("faculty", sa.String(100), nullable=False),
        sa.Column("ledger_handle", sa.BigInteger, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "position IN ('president', 'vice_president', 'senator')",
            name="ck_candidate_position",
        ),
    )
    op.create_index("ix_candidates_student_id", "candidates", ["student_id"], unique=True)

    op.create_table(
        "elections",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("position", sa.String(20), nullable=False),
        sa.Column("eligible_faculties", JSONB, nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ledger_handle", sa.BigInteger, nullable=True),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("position IN ('president_vp', 'senator')", name="ck_election_position"),
        sa.CheckConstraint("start_time < end_time", name="ck_election_window"),
    )
    op.create_index("idx_elections_ledger_handle", "elections", ["ledger_handle"], unique=True)
    op.create_index("idx_elections_start_time", "elections", ["start_time"])

    op.create_table(
        "election_candidates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "election_id",
            sa.Integer,
            sa.ForeignKey("elections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "candidate_id",
            sa.Integer,
            sa.ForeignKey("candidates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "running_mate_id",
            sa.Integer,
            sa.ForeignKey("candidates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("ledger_ticket_handle", sa.BigInteger, nullable=True),
        sa.UniqueConstraint("election_id", "candidate_id", name="uq_election_candidate"),
    )
    op.create_index("idx_election_candidates_election_id", "election_candidates", ["election_id"])

    op.create_table(
        "vote_participations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "election_id",
            sa.Integer,
            sa.ForeignKey("elections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tx_hash", sa.String(80), nullable=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "election_id", name="uq_vote_participation"),
        sa.CheckConstraint("source IN ('ledger', 'ledger_existing')", name="ck_vote_participation_source"),
    )


def downgrade() -> None:
    op.drop_table("vote_participations")
    op.drop_table("election_candidates")
    op.drop_table("elections")
    op.drop_table("candidates")
    op.drop_table("users")

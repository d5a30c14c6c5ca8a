"""Election and ballot-composition ORM models.

Provides Election and ElectionCandidate.  An election's status is derived
from its start/end instants and is never stored; ``ledger_handle`` links the
row to its on-chain counterpart once deployed.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_vote.models.base import Base, JSONType, TimestampMixin
from campus_vote.models.candidate import Candidate


class Election(Base, TimestampMixin):
    """A university election defined locally and optionally mirrored on the ledger."""

    __tablename__ = "elections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    position: Mapped[str] = mapped_column(String(20), nullable=False)
    eligible_faculties: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ledger_handle: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    roster: Mapped[list["ElectionCandidate"]] = relationship(
        back_populates="election",
        cascade="all, delete-orphan",
        order_by="ElectionCandidate.id",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("position IN ('president_vp', 'senator')", name="ck_election_position"),
        CheckConstraint("start_time < end_time", name="ck_election_window"),
        Index("idx_elections_ledger_handle", "ledger_handle", unique=True),
        Index("idx_elections_start_time", "start_time"),
    )


class ElectionCandidate(Base):
    """One ballot entry: a candidate, plus a running mate for paired positions."""

    __tablename__ = "election_candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    election_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("elections.id", ondelete="CASCADE"),
        nullable=False,
    )
    candidate_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
    )
    running_mate_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("candidates.id", ondelete="SET NULL"),
        nullable=True,
    )
    ledger_ticket_handle: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Relationships
    election: Mapped["Election"] = relationship(back_populates="roster")
    candidate: Mapped["Candidate"] = relationship(foreign_keys=[candidate_id], lazy="selectin")
    running_mate: Mapped["Candidate | None"] = relationship(foreign_keys=[running_mate_id], lazy="selectin")

    __table_args__ = (
        UniqueConstraint("election_id", "candidate_id", name="uq_election_candidate"),
        Index("idx_election_candidates_election_id", "election_id"),
    )

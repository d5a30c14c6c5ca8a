"""Local record of which users have voted in which elections.

The ledger holds the votes themselves; this table only answers "has this
user voted here" cheaply, before any ledger call is made.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from campus_vote.models.base import Base


class VoteParticipation(Base):
    """One user's participation in one election."""

    __tablename__ = "vote_participations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    election_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("elections.id", ondelete="CASCADE"),
        nullable=False,
    )
    tx_hash: Mapped[str | None] = mapped_column(String(80), nullable=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "election_id", name="uq_vote_participation"),
        CheckConstraint("source IN ('ledger', 'ledger_existing')", name="ck_vote_participation_source"),
    )

"""Candidate ORM model."""

from sqlalchemy import BigInteger, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from campus_vote.models.base import Base, TimestampMixin


class Candidate(Base, TimestampMixin):
    """A student standing for office.

    ``student_id`` is the cross-system key: the ledger knows candidates only
    by it, so ``ledger_handle`` is meaningful only while ``student_id`` is
    unchanged.
    """

    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_id: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True, index=True)
    position: Mapped[str] = mapped_column(String(20), nullable=False)
    faculty: Mapped[str] = mapped_column(String(100), nullable=False)
    ledger_handle: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "position IN ('president', 'vice_president', 'senator')",
            name="ck_candidate_position",
        ),
    )

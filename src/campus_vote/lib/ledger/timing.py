"""Time helpers shared by deployment, status sync and voting.

The ledger stores whole unix seconds.  Local instants are truncated, never
rounded, so a boundary check on the ledger can never fire earlier than the
local definition says it should.
"""

import calendar
from datetime import UTC, datetime
from enum import StrEnum

from campus_vote.lib.ledger.gateway import LedgerStatus


class LocalElectionStatus(StrEnum):
    """Election status derived from the local start/end instants."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_unix_seconds(value: datetime) -> int:
    """Convert an instant to integer unix seconds, dropping sub-second precision."""
    return calendar.timegm(ensure_aware(value).utctimetuple())


def expected_ledger_status(start: int, end: int, now: int) -> LedgerStatus:
    """Status the ledger should report at ``now`` for a window of ``[start, end]``."""
    if now < start:
        return LedgerStatus.PENDING
    if now <= end:
        return LedgerStatus.ACTIVE
    return LedgerStatus.COMPLETED


def is_within_window(start: int, end: int, now: int) -> bool:
    return start <= now <= end


def local_status(start_time: datetime, end_time: datetime, now: datetime) -> LocalElectionStatus:
    """Derive the displayed status of a local election."""
    now = ensure_aware(now)
    if now < ensure_aware(start_time):
        return LocalElectionStatus.UPCOMING
    if now <= ensure_aware(end_time):
        return LocalElectionStatus.ACTIVE
    return LocalElectionStatus.COMPLETED

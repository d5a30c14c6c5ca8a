"""Ledger failure taxonomy and message classification.

The ledger contract reports failures only as human-readable revert strings,
so every pattern that distinguishes a benign conflict from a genuine failure
lives here and nowhere else.  Callers branch on ``LedgerError.kind``.
"""

from enum import StrEnum


class LedgerErrorKind(StrEnum):
    """Classified kind of a ledger failure."""

    USER_REJECTED = "user_rejected"
    NETWORK_CONGESTION = "network_congestion"
    ALREADY_VOTED = "already_voted"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    REGISTRATION_CONFLICT = "registration_conflict"
    ATTACHMENT_CONFLICT = "attachment_conflict"
    CREATION_CONFLICT = "creation_conflict"
    STATUS_UNCHANGED = "status_unchanged"
    ELECTION_NOT_ACTIVE = "election_not_active"
    NOT_FOUND = "not_found"
    UNCLASSIFIED = "unclassified"


# Kinds that mean "the operation already happened"; callers recover them into success.
CONFLICT_KINDS: frozenset[LedgerErrorKind] = frozenset(
    {
        LedgerErrorKind.REGISTRATION_CONFLICT,
        LedgerErrorKind.ATTACHMENT_CONFLICT,
        LedgerErrorKind.CREATION_CONFLICT,
        LedgerErrorKind.STATUS_UNCHANGED,
    }
)

# Structured codes some providers attach alongside the message.
_CODE_KINDS: dict[str, LedgerErrorKind] = {
    "ACTION_REJECTED": LedgerErrorKind.USER_REJECTED,
    "4001": LedgerErrorKind.USER_REJECTED,
    "INSUFFICIENT_FUNDS": LedgerErrorKind.INSUFFICIENT_FUNDS,
    "REPLACEMENT_UNDERPRICED": LedgerErrorKind.NETWORK_CONGESTION,
}

# Checked in order; the first kind with a matching fragment wins.
_MESSAGE_PATTERNS: tuple[tuple[LedgerErrorKind, tuple[str, ...]], ...] = (
    (
        LedgerErrorKind.USER_REJECTED,
        ("user rejected", "user denied", "action_rejected", "rejected by user"),
    ),
    (LedgerErrorKind.ALREADY_VOTED, ("already voted", "alreadyvoted")),
    (LedgerErrorKind.INSUFFICIENT_FUNDS, ("insufficient funds",)),
    (
        LedgerErrorKind.ELECTION_NOT_ACTIVE,
        ("election not active", "electionnotactive", "not active", "election has ended"),
    ),
    (LedgerErrorKind.REGISTRATION_CONFLICT, ("already registered",)),
    (LedgerErrorKind.ATTACHMENT_CONFLICT, ("already added", "already attached", "already in election")),
    (LedgerErrorKind.CREATION_CONFLICT, ("already exists",)),
    (
        LedgerErrorKind.STATUS_UNCHANGED,
        ("status unchanged", "no status change", "status already", "already in this status"),
    ),
    (
        LedgerErrorKind.NETWORK_CONGESTION,
        (
            "transaction underpriced",
            "could not be mined",
            "network congestion",
            "max fee per gas less than block base fee",
            "fee too low",
        ),
    ),
    (
        LedgerErrorKind.NOT_FOUND,
        ("not found", "does not exist", "invalidticket", "invalid candidate", "invalid election"),
    ),
)


def classify_ledger_error(raw: object, code: str | int | None = None) -> LedgerErrorKind:
    """Map a raw ledger failure onto a ``LedgerErrorKind``.

    Args:
        raw: The failure message, or the exception carrying it.
        code: Optional structured code reported by the provider.

    Returns:
        The classified kind; ``UNCLASSIFIED`` when nothing matches.
    """
    if code is not None:
        kind = _CODE_KINDS.get(str(code).upper())
        if kind is not None:
            return kind
    if raw is None:
        return LedgerErrorKind.UNCLASSIFIED
    message = str(raw).lower()
    for kind, fragments in _MESSAGE_PATTERNS:
        if any(fragment in message for fragment in fragments):
            return kind
    return LedgerErrorKind.UNCLASSIFIED


class LedgerError(Exception):
    """Raised by a ledger gateway for any failed read or write.

    Args:
        message: Human-readable error description, usually the revert reason.
        code: Optional structured code reported by the provider.
    """

    def __init__(self, message: str, code: str | int | None = None) -> None:
        self.message = message
        self.code = code
        self.kind = classify_ledger_error(message, code)
        super().__init__(message)

    @property
    def is_conflict(self) -> bool:
        """Whether the failure means the operation had already been applied."""
        return self.kind in CONFLICT_KINDS


class LedgerUnavailableError(LedgerError):
    """Raised when the ledger node cannot be reached at all."""

"""Explicit ledger connection context.

Services receive a ``LedgerContext`` instead of reaching for ambient wallet
or connection state, so tests can hand them a fake gateway and a fixed clock.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from campus_vote.lib.ledger.gateway import LedgerGateway
from campus_vote.lib.ledger.timing import to_unix_seconds, utc_now


@dataclass
class LedgerContext:
    """Capability bundle: a gateway to read and submit through, the submitting
    account, and the wall clock used for status decisions."""

    gateway: LedgerGateway
    account: str
    clock: Callable[[], datetime] = field(default=utc_now)

    def now(self) -> datetime:
        return self.clock()

    def now_unix(self) -> int:
        return to_unix_seconds(self.clock())

    def ballot_account(self, voter: int) -> str:
        """Address the ledger will attribute ``voter``'s ballot to."""
        return self.gateway.voter_account(voter) or self.account

    def relays_ballots(self, voter: int) -> bool:
        """Whether ``voter``'s ballot would be submitted from the shared account."""
        return self.ballot_account(voter) == self.account

    @classmethod
    def for_gateway(cls, gateway: LedgerGateway, clock: Callable[[], datetime] | None = None) -> "LedgerContext":
        """Build a context that submits as the gateway's own account."""
        return cls(gateway=gateway, account=gateway.account, clock=clock or utc_now)

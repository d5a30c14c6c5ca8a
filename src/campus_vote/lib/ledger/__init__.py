"""Ledger library: typed access to the external election contract.

Public API:
    - LedgerGateway: Abstract read/write contract for the ledger
    - Web3LedgerGateway: web3.py implementation
    - LedgerContext: Gateway + account + clock passed explicitly to services
    - LedgerElection / LedgerReceipt: Value types returned by the gateway
    - ElectionCategory / LedgerStatus: Contract enums
    - LedgerError / LedgerErrorKind / classify_ledger_error: Failure taxonomy
    - InFlightTracker / EntityInFlightError: Per-entity concurrency guard
    - build_ledger_context: Context factory from application settings
"""

from campus_vote.core.config import Settings
from campus_vote.lib.ledger.context import LedgerContext
from campus_vote.lib.ledger.errors import (
    CONFLICT_KINDS,
    LedgerError,
    LedgerErrorKind,
    LedgerUnavailableError,
    classify_ledger_error,
)
from campus_vote.lib.ledger.gateway import (
    ElectionCategory,
    LedgerElection,
    LedgerGateway,
    LedgerReceipt,
    LedgerStatus,
)
from campus_vote.lib.ledger.inflight import EntityInFlightError, InFlightTracker
from campus_vote.lib.ledger.web3_gateway import Web3LedgerGateway


def build_ledger_context(settings: Settings) -> LedgerContext:
    """Build a ledger context backed by the configured web3 gateway.

    Raises:
        ValueError: If the ledger settings are incomplete.
    """
    return LedgerContext.for_gateway(Web3LedgerGateway.from_settings(settings))


__all__ = [
    "CONFLICT_KINDS",
    "ElectionCategory",
    "EntityInFlightError",
    "InFlightTracker",
    "LedgerContext",
    "LedgerElection",
    "LedgerError",
    "LedgerErrorKind",
    "LedgerGateway",
    "LedgerReceipt",
    "LedgerStatus",
    "LedgerUnavailableError",
    "Web3LedgerGateway",
    "build_ledger_context",
    "classify_ledger_error",
]

"""In-process guard against concurrent ledger work on the same entity.

Only the entity being worked on is blocked; unrelated elections, candidates
and voters proceed independently.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger


class EntityInFlightError(ValueError):
    """Raised when ledger work for an entity is already in progress."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Ledger operation already in progress for {key}")


BATCH_SYNC_KEY = "sync:all"


def deploy_key(election_id: int) -> str:
    return f"election:{election_id}"


def sync_key(election_id: int) -> str:
    return f"sync:{election_id}"


def vote_key(election_id: int, user_id: int) -> str:
    return f"vote:{election_id}:{user_id}"


class InFlightTracker:
    """Set of entity keys with ledger work currently awaiting completion."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def is_in_flight(self, key: str) -> bool:
        return key in self._keys

    @property
    def active_keys(self) -> frozenset[str]:
        return frozenset(self._keys)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Mark ``key`` in flight for the duration of the block.

        Raises:
            EntityInFlightError: If ``key`` is already held.
        """
        if key in self._keys:
            logger.warning("Rejected concurrent ledger operation for {}", key)
            raise EntityInFlightError(key)
        self._keys.add(key)
        try:
            yield
        finally:
            self._keys.discard(key)

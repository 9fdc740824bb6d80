"""Port interface for round-robin cursor persistence."""

from abc import ABC, abstractmethod


class RoundRobinRepository(ABC):
    @abstractmethod
    async def get_counter(self, rr_key: str) -> int:
        """Read the counter for *rr_key* and lock it until the transaction ends.

        Creates the entry at 0 if missing. Must use row-level locking
        (SELECT ... FOR UPDATE) so concurrent readers of the same key queue up.
        """
        ...

    @abstractmethod
    async def advance_counter(self, rr_key: str, steps: int = 1) -> int:
        """Add *steps* to the counter and return the OLD value."""
        ...

"""Abstract poll data source interfaces.

Defines the contract for the two read sides the reconciler merges.
Reconciliation and funding code depends only on these interfaces,
keeping GraphQL and JSON-RPC details isolated in the concrete adapters.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from pulse.models import SourceRecord


class IndexerClient(ABC):
    """Eventually consistent, cheap, paginated poll index."""

    @abstractmethod
    async def polls_by_creator(
        self, creator: str, chain_id: int, limit: int = 100
    ) -> list[SourceRecord]:
        """Return up to limit polls created by creator (lowercased address).

        Pagination is handled inside the adapter.

        Raises:
            IndexerUnavailable: On transport or query errors.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources."""
        ...


class LedgerClient(ABC):
    """Authoritative but expensive direct contract reads."""

    @abstractmethod
    async def next_poll_id(self, chain_id: int) -> int:
        """Return the id the next created poll will get (= number of polls)."""
        ...

    @abstractmethod
    async def get_polls(
        self, chain_id: int, poll_ids: Sequence[int]
    ) -> list[SourceRecord]:
        """Batch-read polls by id.

        Callers must cap the id range; every id costs one contract call.
        Individual failed reads are dropped, like a multicall with
        allowFailure.

        Raises:
            LedgerUnavailable: If the batch as a whole cannot be read.
        """
        ...

    @abstractmethod
    async def get_balance(self, chain_id: int, address: str, token_address: str) -> int:
        """Point-in-time balance in the token's smallest unit (native for the zero address)."""
        ...

    @abstractmethod
    async def get_allowance(
        self, chain_id: int, owner: str, spender: str, token_address: str
    ) -> int:
        """Point-in-time ERC20 allowance in the token's smallest unit."""
        ...

    @abstractmethod
    async def get_votes_owned(self, chain_id: int, poll_id: int, voter: str) -> int:
        """Votes voter has already bought on a quadratic poll."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release RPC resources."""
        ...

"""Poll data sources -- subgraph indexer via httpx, ledger via web3."""

from pulse.sources.client import IndexerClient, LedgerClient
from pulse.sources.subgraph_client import SubgraphIndexerClient
from pulse.sources.web3_client import Web3LedgerClient

__all__ = ["IndexerClient", "LedgerClient", "SubgraphIndexerClient", "Web3LedgerClient"]

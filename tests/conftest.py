"""Shared test fixtures for the poll reconciliation and economics core."""

from unittest.mock import AsyncMock

import pytest
from factories import POLLS_CONTRACT

from pulse.config import (
    BASE_SEPOLIA,
    AppSettings,
    ConvergenceSettings,
    LedgerSettings,
)
from pulse.sources.client import IndexerClient, LedgerClient
from pulse.tokens.registry import TokenRegistry


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (Sepolia, instant convergence schedule)."""
    return AppSettings(
        log_level="DEBUG",
        default_chain_id=BASE_SEPOLIA,
        convergence=ConvergenceSettings(initial_delay_seconds=0.0, interval_seconds=0.0),
        ledger=LedgerSettings(polls_contracts={BASE_SEPOLIA: POLLS_CONTRACT}),
    )


@pytest.fixture
def registry() -> TokenRegistry:
    return TokenRegistry()


@pytest.fixture
def indexer() -> AsyncMock:
    """IndexerClient fake returning no polls by default."""
    client = AsyncMock(spec=IndexerClient)
    client.polls_by_creator.return_value = []
    return client


@pytest.fixture
def ledger() -> AsyncMock:
    """LedgerClient fake with an empty poll range by default."""
    client = AsyncMock(spec=LedgerClient)
    client.next_poll_id.return_value = 0
    client.get_polls.return_value = []
    return client

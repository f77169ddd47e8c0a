"""Tests for PollStateReconciler -- merge priority, dedup, degraded flag and failure semantics."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from factories import CREATOR, indexed, make_poll, on_ledger

from pulse.config import BASE_SEPOLIA, ReconcilerSettings
from pulse.exceptions import IndexerUnavailable, LedgerUnavailable
from pulse.models import PollStatus
from pulse.reconcile.reconciler import PollStateReconciler, is_degraded, merge_sources

OTHER_CREATOR = "0xdef0000000000000000000000000000000000002"


@pytest.fixture()
def reconciler(indexer: AsyncMock, ledger: AsyncMock) -> PollStateReconciler:
    return PollStateReconciler(indexer, ledger, ReconcilerSettings())


class TestMergeSources:
    def test_indexer_wins_on_shared_id(self):
        ledger_copy = make_poll(5, status=PollStatus.CLOSED, is_active=False)
        indexer_copy = make_poll(5, status=PollStatus.ACTIVE, is_active=True, voter_count=3)

        records, coverage = merge_sources([indexed(indexer_copy)], [on_ledger(ledger_copy)])

        assert records == [indexer_copy]
        assert coverage.indexer_count == 1
        assert coverage.ledger_only_count == 0

    def test_ledger_only_polls_fill_gaps(self):
        records, coverage = merge_sources(
            [indexed(make_poll(1, end_time=100))],
            [on_ledger(make_poll(2, end_time=200)), on_ledger(make_poll(1, end_time=100))],
        )
        assert [r.poll_id for r in records] == [2, 1]
        assert coverage.ledger_only_count == 1

    def test_sorted_by_end_time_descending(self):
        records, _ = merge_sources(
            [indexed(make_poll(1, end_time=300)), indexed(make_poll(2, end_time=100))],
            [on_ledger(make_poll(3, end_time=200))],
        )
        assert [r.end_time for r in records] == [300, 200, 100]

    def test_no_duplicate_ids(self):
        records, _ = merge_sources(
            [indexed(make_poll(i)) for i in range(5)],
            [on_ledger(make_poll(i)) for i in range(3, 8)],
        )
        ids = [r.poll_id for r in records]
        assert len(ids) == len(set(ids)) == 8

    def test_both_empty(self):
        records, coverage = merge_sources([], [])
        assert records == []
        assert coverage.indexer_count == 0
        assert coverage.ledger_only_count == 0


class TestIsDegraded:
    def test_indexer_error(self):
        assert is_degraded(True, 0, 0) is True

    def test_empty_indexer_nonempty_ledger(self):
        assert is_degraded(False, 0, 3) is True

    def test_both_empty(self):
        assert is_degraded(False, 0, 0) is False

    def test_indexer_has_records(self):
        assert is_degraded(False, 2, 5) is False


class TestReconcile:
    @pytest.mark.asyncio
    async def test_queries_with_lowercased_creator(self, reconciler, indexer, ledger):
        await reconciler.reconcile(CREATOR.upper().replace("0X", "0x"), BASE_SEPOLIA)
        indexer.polls_by_creator.assert_awaited_once_with(CREATOR, BASE_SEPOLIA, limit=100)

    @pytest.mark.asyncio
    async def test_ledger_window_is_last_hundred_ids(self, reconciler, ledger):
        ledger.next_poll_id.return_value = 250
        await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        chain_id, poll_ids = ledger.get_polls.await_args.args
        assert chain_id == BASE_SEPOLIA
        assert poll_ids == list(range(150, 250))

    @pytest.mark.asyncio
    async def test_ledger_window_short_history(self, reconciler, ledger):
        ledger.next_poll_id.return_value = 3
        await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        assert ledger.get_polls.await_args.args[1] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_ledger_records_filtered_to_creator(self, reconciler, ledger):
        ledger.next_poll_id.return_value = 2
        ledger.get_polls.return_value = [
            on_ledger(make_poll(0, creator=CREATOR)),
            on_ledger(make_poll(1, creator=OTHER_CREATOR)),
        ]
        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        assert [r.poll_id for r in result.records] == [0]

    @pytest.mark.asyncio
    async def test_healthy_merge(self, reconciler, indexer, ledger):
        indexer.polls_by_creator.return_value = [indexed(make_poll(1, end_time=10))]
        ledger.next_poll_id.return_value = 3
        ledger.get_polls.return_value = [
            on_ledger(make_poll(1, end_time=10)),
            on_ledger(make_poll(2, end_time=20)),
        ]

        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)

        assert [r.poll_id for r in result.records] == [2, 1]
        assert result.coverage.indexer_count == 1
        assert result.coverage.ledger_only_count == 1
        assert result.is_indexer_degraded is False
        assert reconciler.is_degraded(result) is False

    @pytest.mark.asyncio
    async def test_indexer_failure_degrades_to_ledger(self, reconciler, indexer, ledger):
        indexer.polls_by_creator.side_effect = IndexerUnavailable("subgraph down")
        ledger.next_poll_id.return_value = 1
        ledger.get_polls.return_value = [on_ledger(make_poll(0))]

        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)

        assert [r.poll_id for r in result.records] == [0]
        assert result.is_indexer_degraded is True
        assert result.coverage.ledger_only_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_indexer_error_also_degrades(self, reconciler, indexer):
        indexer.polls_by_creator.side_effect = RuntimeError("boom")
        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        assert result.records == ()
        assert result.is_indexer_degraded is True

    @pytest.mark.asyncio
    async def test_indexer_transport_error_degrades(self, reconciler, indexer, ledger):
        """Adapter errors carry an error detail in their context; reconcile still degrades."""
        indexer.polls_by_creator.side_effect = IndexerUnavailable(
            "subgraph request failed", chain_id=BASE_SEPOLIA, error="503 Service Unavailable"
        )
        ledger.next_poll_id.return_value = 1
        ledger.get_polls.return_value = [on_ledger(make_poll(0))]

        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)

        assert [r.poll_id for r in result.records] == [0]
        assert result.is_indexer_degraded is True

    @pytest.mark.asyncio
    async def test_empty_indexer_with_ledger_polls_is_degraded(self, reconciler, ledger):
        ledger.next_poll_id.return_value = 1
        ledger.get_polls.return_value = [on_ledger(make_poll(0))]
        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        assert result.is_indexer_degraded is True

    @pytest.mark.asyncio
    async def test_ledger_failure_raises(self, reconciler, indexer, ledger):
        indexer.polls_by_creator.return_value = [indexed(make_poll(1))]
        ledger.next_poll_id.side_effect = LedgerUnavailable("rpc down", chain_id=BASE_SEPOLIA)
        with pytest.raises(LedgerUnavailable):
            await reconciler.reconcile(CREATOR, BASE_SEPOLIA)

    @pytest.mark.asyncio
    async def test_unexpected_ledger_error_wrapped(self, reconciler, ledger):
        ledger.get_polls.side_effect = ConnectionError("reset")
        ledger.next_poll_id.return_value = 5
        with pytest.raises(LedgerUnavailable) as exc_info:
            await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_sources_fetched_concurrently(self, reconciler, indexer, ledger):
        """The ledger read starts while the indexer query is still pending."""
        started = asyncio.Event()

        async def slow_indexer(*args, **kwargs):
            await asyncio.wait_for(started.wait(), timeout=1)
            return []

        async def next_id(chain_id):
            started.set()
            return 0

        indexer.polls_by_creator.side_effect = slow_indexer
        ledger.next_poll_id.side_effect = next_id

        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        assert result.records == ()
        assert result.is_indexer_degraded is False

    @pytest.mark.asyncio
    async def test_indexer_state_overrides_ledger_state(self, reconciler, indexer, ledger):
        """Poll 42 reported as ACTIVE by the ledger and CLOSED by the indexer is CLOSED."""
        indexer.polls_by_creator.return_value = [
            indexed(make_poll(42, status=PollStatus.CLOSED, is_active=False))
        ]
        ledger.next_poll_id.return_value = 43
        ledger.get_polls.return_value = [
            on_ledger(make_poll(42, status=PollStatus.ACTIVE, is_active=True))
        ]
        result = await reconciler.reconcile(CREATOR, BASE_SEPOLIA)
        poll = result.by_id(42)
        assert poll is not None
        assert poll.status is PollStatus.CLOSED
        assert result.by_id(41) is None

"""Dual-source poll reconciler.

Merges the indexer feed (cheap, eventually consistent, normalizes derived
fields such as voter counts) with a bounded window of direct ledger reads
(authoritative, one contract call per poll) into one deduplicated list.

Merge rule: last writer wins by source priority, not by timestamp. Ledger
records go into the map first, indexer records overwrite them. Once the
indexer has a poll it is trusted for every field of that poll.

Failure semantics:
  - Indexer error: logged, result built from ledger data and flagged degraded.
  - Ledger error: LedgerUnavailable propagates; there is no further fallback.
"""

import asyncio

import structlog

from pulse.config import ReconcilerSettings
from pulse.exceptions import IndexerUnavailable, LedgerUnavailable
from pulse.logging import get_logger
from pulse.models import (
    PollRecord,
    ReconciliationResult,
    SourceCoverage,
    SourceKind,
    SourceRecord,
)
from pulse.sources.client import IndexerClient, LedgerClient

logger = get_logger(__name__)

# Fields the ledger also exposes; a disagreement is worth a debug line
_COMPARED_FIELDS = ("is_active", "status", "distribution_mode", "total_funding")


def merge_sources(
    indexer_records: list[SourceRecord], ledger_records: list[SourceRecord]
) -> tuple[list[PollRecord], SourceCoverage]:
    """Merge two source lists keyed by poll_id, indexer taking priority.

    Returns:
        Records sorted by end_time descending, and per-source coverage.
    """
    merged: dict[int, SourceRecord] = {}
    for item in ledger_records:
        merged[item.poll_id] = item

    for item in indexer_records:
        previous = merged.get(item.poll_id)
        if previous is not None and previous.source is SourceKind.LEDGER:
            _log_field_mismatch(previous.record, item.record)
        merged[item.poll_id] = item

    ledger_only = sum(1 for item in merged.values() if item.source is SourceKind.LEDGER)
    indexer_ids = {item.poll_id for item in indexer_records}

    records = sorted(
        (item.record for item in merged.values()),
        key=lambda r: (r.end_time, r.poll_id),
        reverse=True,
    )
    return records, SourceCoverage(indexer_count=len(indexer_ids), ledger_only_count=ledger_only)


def _log_field_mismatch(ledger: PollRecord, indexer: PollRecord) -> None:
    diffs = {
        name: (str(getattr(indexer, name)), str(getattr(ledger, name)))
        for name in _COMPARED_FIELDS
        if getattr(indexer, name) != getattr(ledger, name)
    }
    if diffs:
        logger.debug("indexer_ledger_field_mismatch", poll_id=ledger.poll_id, fields=diffs)


def is_degraded(indexer_failed: bool, indexer_count: int, ledger_count: int) -> bool:
    """True when the indexer errored, or came back empty while the ledger did not."""
    if indexer_failed:
        return True
    return indexer_count == 0 and ledger_count > 0


class PollStateReconciler:
    """Produces one consistent poll list per creator and chain.

    Args:
        indexer: Indexer query capability.
        ledger: Ledger batch-read capability.
        settings: Ledger window and indexer limit.
    """

    def __init__(
        self,
        indexer: IndexerClient,
        ledger: LedgerClient,
        settings: ReconcilerSettings,
    ) -> None:
        self._indexer = indexer
        self._ledger = ledger
        self._settings = settings

    async def reconcile(self, creator: str, chain_id: int) -> ReconciliationResult:
        """Fetch both sources concurrently and merge them.

        Args:
            creator: Creator address (any case).
            chain_id: Chain scope for both sources.

        Returns:
            A fresh ReconciliationResult.

        Raises:
            LedgerUnavailable: If the ledger read fails.
        """
        creator_id = creator.lower()
        with structlog.contextvars.bound_contextvars(creator=creator_id, chain_id=chain_id):
            indexer_result, ledger_result = await asyncio.gather(
                self._indexer.polls_by_creator(
                    creator_id, chain_id, limit=self._settings.indexer_limit
                ),
                self._fetch_ledger(creator_id, chain_id),
                return_exceptions=True,
            )

            if isinstance(ledger_result, BaseException):
                if isinstance(ledger_result, asyncio.CancelledError):
                    raise ledger_result
                logger.error("ledger_fetch_failed", error=str(ledger_result))
                if isinstance(ledger_result, LedgerUnavailable):
                    raise ledger_result
                raise LedgerUnavailable(
                    "ledger fetch failed", chain_id=chain_id, error=str(ledger_result)
                ) from ledger_result

            indexer_failed = isinstance(indexer_result, BaseException)
            if indexer_failed:
                if isinstance(indexer_result, asyncio.CancelledError):
                    raise indexer_result
                error = (
                    indexer_result
                    if isinstance(indexer_result, IndexerUnavailable)
                    else IndexerUnavailable("indexer fetch failed", error=str(indexer_result))
                )
                logger.warning(
                    "indexer_fetch_failed", **{"reason": error.message, **error.context}
                )
                indexer_records: list[SourceRecord] = []
            else:
                indexer_records = indexer_result

            records, coverage = merge_sources(indexer_records, ledger_result)
            degraded = is_degraded(indexer_failed, len(indexer_records), len(ledger_result))

            logger.info(
                "reconcile_complete",
                records=len(records),
                indexer_count=coverage.indexer_count,
                ledger_only_count=coverage.ledger_only_count,
                degraded=degraded,
            )
            return ReconciliationResult(
                records=tuple(records),
                coverage=coverage,
                is_indexer_degraded=degraded,
            )

    def is_degraded(self, result: ReconciliationResult) -> bool:
        return result.is_indexer_degraded

    async def _fetch_ledger(self, creator_id: str, chain_id: int) -> list[SourceRecord]:
        """Read the most recent ledger_window polls and keep the creator's."""
        next_id = await self._ledger.next_poll_id(chain_id)
        start = max(0, next_id - self._settings.ledger_window)
        poll_ids = list(range(start, next_id))
        records = await self._ledger.get_polls(chain_id, poll_ids)
        return [r for r in records if r.record.creator == creator_id]

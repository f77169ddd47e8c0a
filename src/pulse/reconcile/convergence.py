"""Post-transaction convergence watcher.

After a state-changing transaction confirms (closing a poll, funding it),
the ledger shows the change immediately but the indexer lags. A watch polls
the indexer on a fixed schedule until the poll shows up or the attempt
budget runs out:

    initial delay -> check -> interval -> check -> ... (max_attempts checks)

Each watch is a PendingConvergence entry advanced by one tick() per check,
driven by its own asyncio task. At most one watch exists per poll_id;
starting another cancels the first without firing its callbacks.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from pulse.config import ConvergenceSettings
from pulse.exceptions import ConvergenceTimeout
from pulse.logging import get_logger
from pulse.models import PendingConvergence
from pulse.sources.client import IndexerClient

logger = get_logger(__name__)

OnConverged = Callable[[int], Awaitable[None] | None]
OnTimeout = Callable[[ConvergenceTimeout], Awaitable[None] | None]


async def _invoke(callback: Callable[[Any], Any], arg: Any, poll_id: int) -> None:
    """Run a sync or async callback; failures are logged, never raised into the loop."""
    try:
        result = callback(arg)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.error("convergence_callback_failed", poll_id=poll_id, exc_info=True)


class CancelHandle:
    """Caller-side handle for one watch."""

    def __init__(self, watcher: "ConvergenceWatcher", entry: PendingConvergence, task: asyncio.Task) -> None:  # type: ignore[type-arg]
        self._watcher = watcher
        self._entry = entry
        self._task = task

    @property
    def poll_id(self) -> int:
        return self._entry.poll_id

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Stop future checks. No callback fires for a cancelled watch."""
        self._watcher._cancel(self._entry, self._task)

    async def wait(self) -> None:
        """Wait until the watch converges, times out, or is cancelled."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


class ConvergenceWatcher:
    """Registry of pending convergence watches, one per poll_id.

    Args:
        indexer: Indexer query capability, re-run on every check.
        settings: Initial delay, interval and attempt budget.
        indexer_limit: Page limit for each presence check.
    """

    def __init__(
        self,
        indexer: IndexerClient,
        settings: ConvergenceSettings,
        indexer_limit: int = 100,
    ) -> None:
        self._indexer = indexer
        self._settings = settings
        self._indexer_limit = indexer_limit
        self._entries: dict[int, PendingConvergence] = {}
        self._tasks: dict[int, asyncio.Task] = {}  # type: ignore[type-arg]

    def await_convergence(
        self,
        poll_id: int,
        creator: str,
        chain_id: int,
        on_converged: OnConverged,
        on_timeout: OnTimeout,
    ) -> CancelHandle:
        """Start watching for poll_id to appear in the indexer feed.

        Must be called from a running event loop. Replaces any existing
        watch on the same poll_id.

        Returns:
            A handle that can cancel or await the watch.
        """
        previous = self._tasks.get(poll_id)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.info("convergence_watch_replaced", poll_id=poll_id)

        entry = PendingConvergence(
            poll_id=poll_id,
            creator=creator.lower(),
            chain_id=chain_id,
            max_attempts=self._settings.max_attempts,
            interval_seconds=self._settings.interval_seconds,
        )
        task = asyncio.create_task(
            self._run(entry, on_converged, on_timeout),
            name=f"convergence-{chain_id}-{poll_id}",
        )
        self._entries[poll_id] = entry
        self._tasks[poll_id] = task
        logger.info(
            "convergence_watch_started",
            poll_id=poll_id,
            chain_id=chain_id,
            max_attempts=entry.max_attempts,
        )
        return CancelHandle(self, entry, task)

    def pending(self) -> list[PendingConvergence]:
        """Live watch entries."""
        return list(self._entries.values())

    def get(self, poll_id: int) -> PendingConvergence | None:
        return self._entries.get(poll_id)

    def cancel(self, poll_id: int) -> bool:
        """Cancel the watch on poll_id. Returns False if none was pending."""
        entry = self._entries.get(poll_id)
        task = self._tasks.get(poll_id)
        if entry is None or task is None:
            return False
        self._cancel(entry, task)
        return True

    async def close(self) -> None:
        """Cancel every watch (process or view teardown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._entries.clear()
        self._tasks.clear()
        logger.info("convergence_watcher_closed", cancelled=len(tasks))

    async def tick(self, entry: PendingConvergence) -> bool:
        """Run one presence check and advance the attempt counter.

        An indexer error counts as a failed attempt.

        Returns:
            True if the poll is now in the indexer feed.
        """
        entry.attempts_made += 1
        try:
            records = await self._indexer.polls_by_creator(
                entry.creator, entry.chain_id, limit=self._indexer_limit
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "convergence_check_failed",
                poll_id=entry.poll_id,
                attempt=entry.attempts_made,
                error=str(exc),
            )
            return False

        found = any(r.poll_id == entry.poll_id for r in records)
        logger.debug(
            "convergence_attempt",
            poll_id=entry.poll_id,
            attempt=entry.attempts_made,
            max_attempts=entry.max_attempts,
            found=found,
        )
        return found

    async def _run(
        self,
        entry: PendingConvergence,
        on_converged: OnConverged,
        on_timeout: OnTimeout,
    ) -> None:
        try:
            await asyncio.sleep(self._settings.initial_delay_seconds)
            while True:
                if await self.tick(entry):
                    self._discard(entry)
                    logger.info(
                        "convergence_confirmed",
                        poll_id=entry.poll_id,
                        attempts=entry.attempts_made,
                    )
                    await _invoke(on_converged, entry.poll_id, entry.poll_id)
                    return
                if entry.exhausted:
                    self._discard(entry)
                    logger.warning(
                        "convergence_timeout",
                        poll_id=entry.poll_id,
                        attempts=entry.attempts_made,
                    )
                    timeout = ConvergenceTimeout(
                        "indexer did not show the poll in time",
                        poll_id=entry.poll_id,
                        chain_id=entry.chain_id,
                        attempts=entry.attempts_made,
                    )
                    await _invoke(on_timeout, timeout, entry.poll_id)
                    return
                await asyncio.sleep(entry.interval_seconds)
        finally:
            self._discard(entry)

    def _cancel(self, entry: PendingConvergence, task: asyncio.Task) -> None:  # type: ignore[type-arg]
        if not task.done():
            task.cancel()
            logger.info("convergence_watch_cancelled", poll_id=entry.poll_id)
        self._discard(entry)

    def _discard(self, entry: PendingConvergence) -> None:
        """Drop entry from the registry unless a newer watch replaced it."""
        if self._entries.get(entry.poll_id) is entry:
            del self._entries[entry.poll_id]
            self._tasks.pop(entry.poll_id, None)

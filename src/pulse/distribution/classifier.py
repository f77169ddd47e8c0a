"""Pending-distribution classification for creator dashboard badges.

A poll needs creator action when:
  - its status is FOR_CLAIMING, or
  - it has ended (status != ACTIVE), holds funds, and pays out manually
    (MANUAL_PULL or MANUAL_PUSH). AUTOMATED polls never need action.

Pure functions over PollRecord -- no clock, no network.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from pulse.models import DistributionMode, PollRecord, PollStatus


class PendingReason(str, Enum):
    """Why a poll is (or is not) waiting on its creator."""

    FOR_CLAIMING = "for_claiming"
    FUNDS_AVAILABLE = "funds_available"  # MANUAL_PULL: creator withdraws
    PENDING_DISTRIBUTION = "pending_distribution"  # MANUAL_PUSH: creator distributes
    STILL_ACTIVE = "still_active"
    NO_FUNDS = "no_funds"
    AUTOMATED_MODE = "automated_mode"


PENDING_REASONS = frozenset(
    {
        PendingReason.FOR_CLAIMING,
        PendingReason.FUNDS_AVAILABLE,
        PendingReason.PENDING_DISTRIBUTION,
    }
)


@dataclass(frozen=True)
class DistributionSummary:
    """Pending-distribution count and ids, in input order."""

    pending_count: int
    pending_ids: tuple[int, ...]


def pending_reason(record: PollRecord) -> PendingReason:
    """Classify one poll. Every enum combination maps to exactly one reason."""
    if record.status is PollStatus.FOR_CLAIMING:
        return PendingReason.FOR_CLAIMING
    if record.status is PollStatus.ACTIVE:
        return PendingReason.STILL_ACTIVE
    if record.total_funding <= 0:
        return PendingReason.NO_FUNDS

    mode = record.distribution_mode
    if mode is DistributionMode.MANUAL_PULL:
        return PendingReason.FUNDS_AVAILABLE
    if mode is DistributionMode.MANUAL_PUSH:
        return PendingReason.PENDING_DISTRIBUTION
    if mode is DistributionMode.AUTOMATED:
        return PendingReason.AUTOMATED_MODE
    raise ValueError(f"unhandled distribution mode: {mode!r}")


def requires_distribution_action(record: PollRecord) -> bool:
    return pending_reason(record) in PENDING_REASONS


def classify(records: Iterable[PollRecord]) -> DistributionSummary:
    """Partition records into pending and not pending."""
    pending_ids = tuple(r.poll_id for r in records if requires_distribution_action(r))
    return DistributionSummary(pending_count=len(pending_ids), pending_ids=pending_ids)

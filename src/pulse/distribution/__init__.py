"""Distribution state classification."""

from pulse.distribution.classifier import (
    DistributionSummary,
    PendingReason,
    classify,
    pending_reason,
    requires_distribution_action,
)

__all__ = [
    "DistributionSummary",
    "PendingReason",
    "classify",
    "pending_reason",
    "requires_distribution_action",
]

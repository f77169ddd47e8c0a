"""Reconciliation layer -- dual-source merge and post-write convergence watches."""

from pulse.reconcile.convergence import CancelHandle, ConvergenceWatcher
from pulse.reconcile.reconciler import PollStateReconciler, merge_sources

__all__ = ["CancelHandle", "ConvergenceWatcher", "PollStateReconciler", "merge_sources"]

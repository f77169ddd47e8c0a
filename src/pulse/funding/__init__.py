"""Funding flow -- planning, wallet-state preflight and step execution."""

from pulse.funding.executor import FundingExecutor, TransactionSubmitter
from pulse.funding.orchestrator import FundingOrchestrator
from pulse.funding.preflight import FundingPreflight

__all__ = [
    "FundingExecutor",
    "FundingOrchestrator",
    "FundingPreflight",
    "TransactionSubmitter",
]

"""Funding plan execution.

Signing and broadcasting live behind TransactionSubmitter; this module only
sequences the calls. The transfer step is never submitted unless the
authorization before it succeeded.
"""

from abc import ABC, abstractmethod

from pulse.logging import get_logger
from pulse.models import FundingAction, FundingPlan, FundingPurpose, FundingStep

logger = get_logger(__name__)


class TransactionSubmitter(ABC):
    """Wallet-side capability that signs, sends and waits for a receipt."""

    @abstractmethod
    async def authorize(
        self, chain_id: int, token_address: str, spender: str, amount: int
    ) -> str:
        """Grant spender an allowance of amount. Returns the transaction hash."""
        ...

    @abstractmethod
    async def transfer(
        self, chain_id: int, poll_id: int, step: FundingStep, purpose: FundingPurpose
    ) -> str:
        """Fund the poll or buy votes. Returns the transaction hash."""
        ...


class FundingExecutor:
    """Submits the steps of a FundingPlan in order.

    Args:
        submitter: Wallet-side transaction capability.
    """

    def __init__(self, submitter: TransactionSubmitter) -> None:
        self._submitter = submitter

    async def execute(
        self,
        plan: FundingPlan,
        poll_id: int,
        purpose: FundingPurpose,
        chain_id: int,
    ) -> list[str]:
        """Run every step; a failure propagates and stops the sequence.

        Returns:
            Transaction hashes in step order.
        """
        hashes: list[str] = []
        for step in plan.steps:
            if step.action is FundingAction.AUTHORIZE:
                tx_hash = await self._submitter.authorize(
                    chain_id, step.token_address, step.spender, step.amount
                )
                logger.info(
                    "funding_authorized",
                    poll_id=poll_id,
                    token=step.token.symbol,
                    amount=step.amount,
                    tx_hash=tx_hash,
                )
            else:
                tx_hash = await self._submitter.transfer(chain_id, poll_id, step, purpose)
                logger.info(
                    "funding_transferred",
                    poll_id=poll_id,
                    token=step.token.symbol,
                    amount=step.amount,
                    purpose=purpose.value,
                    tx_hash=tx_hash,
                )
            hashes.append(tx_hash)
        return hashes

"""Funding preflight: read wallet state, then plan.

Validation runs before any I/O, so a malformed amount or an unsupported
token never costs an RPC round trip.
"""

import asyncio

from web3 import Web3

from pulse.exceptions import InvalidAddress, InvalidAmount
from pulse.funding.orchestrator import FundingOrchestrator
from pulse.logging import get_logger
from pulse.models import FundingIntent, FundingPlan, FundingPurpose
from pulse.sources.client import LedgerClient
from pulse.tokens.amounts import TokenAmount, normalize_amount

logger = get_logger(__name__)


class FundingPreflight:
    """Reads balance and allowance through the ledger and returns a plan.

    Args:
        orchestrator: Pure planning logic.
        ledger: Ledger read capability for balance and allowance.
    """

    def __init__(self, orchestrator: FundingOrchestrator, ledger: LedgerClient) -> None:
        self._orchestrator = orchestrator
        self._ledger = ledger

    async def prepare(
        self,
        poll_id: int,
        symbol: str,
        amount: str,
        chain_id: int,
        owner: str,
        spender: str,
        purpose: FundingPurpose = FundingPurpose.FUND_POLL,
    ) -> tuple[FundingIntent, FundingPlan]:
        """Build the intent and plan for owner funding poll_id.

        Raises:
            TokenNotSupportedOnChain: Before any read, for an unknown token.
            InvalidAmount: Before any read, for a malformed or zero amount.
            InvalidAddress: Before any read, for a malformed owner address.
            InsufficientBalance: If the wallet balance is short.
            LedgerUnavailable: If the balance or allowance read fails.
        """
        token, token_address = self._orchestrator.registry.resolve(chain_id, symbol)
        if normalize_amount(amount, token.decimal_places) <= 0:
            raise InvalidAmount("amount must be greater than zero", amount=amount)
        if not Web3.is_address(owner):
            raise InvalidAddress("owner is not a valid address", owner=owner)

        if token.is_native:
            balance = await self._ledger.get_balance(chain_id, owner, token_address)
            allowance: int | None = None
        else:
            balance, allowance = await asyncio.gather(
                self._ledger.get_balance(chain_id, owner, token_address),
                self._ledger.get_allowance(chain_id, owner, spender, token_address),
            )

        intent = self._orchestrator.build_intent(
            poll_id=poll_id,
            symbol=symbol,
            amount=amount,
            chain_id=chain_id,
            current_allowance=allowance,
            purpose=purpose,
        )
        plan = self._orchestrator.plan_funding_flow(
            intent,
            spender=spender,
            chain_id=chain_id,
            current_balance=TokenAmount(balance, token),
        )
        logger.info(
            "funding_preflight_complete",
            poll_id=poll_id,
            token=token.symbol,
            purpose=purpose.value,
            kind=plan.kind.value,
        )
        return intent, plan

"""Funding flow planning.

Pure decision logic for the two-phase ERC20 flow (authorize the polls
contract, then transfer) and the single-step native flow. No I/O: balances
and allowances are passed in by the caller (see FundingPreflight).

All amounts are int in the token's smallest unit. A token with 6 decimal
places and one with 18 never meet in the same comparison without an
explicit rebase.
"""

from decimal import Decimal

from pulse.config import FundingSettings
from pulse.exceptions import InsufficientBalance, InvalidAmount
from pulse.logging import get_logger
from pulse.models import (
    FundingAction,
    FundingIntent,
    FundingPlan,
    FundingPlanKind,
    FundingPurpose,
    FundingStep,
    TokenDescriptor,
    VoteCostQuote,
)
from pulse.tokens.amounts import TokenAmount, format_amount, normalize_amount
from pulse.tokens.registry import TokenRegistry

logger = get_logger(__name__)


class FundingOrchestrator:
    """Derives funding intents and the transaction steps that satisfy them.

    Args:
        settings: Funding settings (native gas reserve).
        registry: Token registry used to resolve symbols per chain.
    """

    def __init__(self, settings: FundingSettings, registry: TokenRegistry) -> None:
        self._settings = settings
        self._registry = registry

    @property
    def registry(self) -> TokenRegistry:
        return self._registry

    def normalize_amount(self, value: str, decimal_places: int) -> int:
        return normalize_amount(value, decimal_places)

    def needs_authorization(
        self,
        token: TokenDescriptor,
        requested_amount: int,
        current_allowance: int | None,
    ) -> bool:
        """Whether an authorization must precede the transfer.

        Native assets never need one. An unknown allowance (None, the read
        has not come back yet) is treated as insufficient.
        """
        if token.is_native:
            return False
        if current_allowance is None:
            return True
        return current_allowance < requested_amount

    def has_sufficient_balance(
        self,
        token: TokenDescriptor,
        requested_amount: int,
        current_balance: TokenAmount,
    ) -> bool:
        """Compare a balance with a request in the token's smallest unit.

        Raises:
            ValueError: If current_balance is denominated in another token.
        """
        if current_balance.token.symbol != token.symbol:
            raise ValueError(
                f"balance is in {current_balance.token.symbol}, request is in {token.symbol}"
            )
        balance = current_balance.rebase(token.decimal_places)
        return balance.value >= requested_amount

    def build_intent(
        self,
        poll_id: int,
        symbol: str,
        amount: str,
        chain_id: int,
        current_allowance: int | None,
        purpose: FundingPurpose = FundingPurpose.FUND_POLL,
    ) -> FundingIntent:
        """Resolve the token on chain_id, parse amount, and derive the intent.

        Raises:
            TokenNotSupportedOnChain: If symbol has no deployment on chain_id.
            InvalidAmount: If amount does not parse for the token's precision.
        """
        token, _ = self._registry.resolve(chain_id, symbol)
        requested = normalize_amount(amount, token.decimal_places)
        return FundingIntent(
            poll_id=poll_id,
            token=token,
            amount=amount,
            requires_authorization=self.needs_authorization(token, requested, current_allowance),
            current_allowance=current_allowance,
            requested_amount_smallest_unit=requested,
            purpose=purpose,
        )

    def intent_from_quote(
        self,
        quote: VoteCostQuote,
        symbol: str,
        chain_id: int,
        current_allowance: int | None,
    ) -> FundingIntent:
        """Intent paying for a vote purchase; the quote is already in smallest units."""
        token, _ = self._registry.resolve(chain_id, symbol)
        return self.build_intent(
            poll_id=quote.poll_id,
            symbol=symbol,
            amount=format_amount(quote.total_cost, token.decimal_places),
            chain_id=chain_id,
            current_allowance=current_allowance,
            purpose=FundingPurpose.BUY_VOTES,
        )

    def plan_funding_flow(
        self,
        intent: FundingIntent,
        spender: str,
        chain_id: int,
        current_balance: TokenAmount | None = None,
    ) -> FundingPlan:
        """Return the ordered steps for intent.

        Args:
            intent: The derived funding intent.
            spender: Address the authorization is granted to (the polls contract).
            chain_id: Chain the token address is resolved on.
            current_balance: Wallet balance; skipped from validation when None.

        Raises:
            InvalidAmount: If the requested amount is not positive.
            InsufficientBalance: If current_balance cannot cover the request.
            TokenNotSupportedOnChain: If the token has no address on chain_id.
        """
        token = intent.token
        requested = intent.requested_amount_smallest_unit
        if requested <= 0:
            raise InvalidAmount("amount must be greater than zero", amount=intent.amount)

        if current_balance is not None and not self.has_sufficient_balance(
            token, requested, current_balance
        ):
            raise InsufficientBalance(
                f"insufficient {token.symbol} balance",
                token=token.symbol,
                requested=format_amount(requested, token.decimal_places),
                available=format_amount(
                    current_balance.rebase(token.decimal_places).value, token.decimal_places
                ),
            )

        token_address = self._registry.address_of(chain_id, token)
        transfer = FundingStep(
            action=FundingAction.TRANSFER,
            token=token,
            token_address=token_address,
            spender=spender,
            amount=requested,
        )

        if intent.requires_authorization and not token.is_native:
            authorize = FundingStep(
                action=FundingAction.AUTHORIZE,
                token=token,
                token_address=token_address,
                spender=spender,
                amount=requested,
            )
            plan = FundingPlan(kind=FundingPlanKind.AUTHORIZE_THEN_TRANSFER, steps=(authorize, transfer))
        else:
            plan = FundingPlan(kind=FundingPlanKind.TRANSFER_ONLY, steps=(transfer,))

        logger.debug(
            "funding_plan_built",
            poll_id=intent.poll_id,
            token=token.symbol,
            kind=plan.kind.value,
            amount=requested,
        )
        return plan

    def max_fundable_amount(self, token: TokenDescriptor, balance: int) -> int:
        """Largest amount the user can commit from balance.

        The native asset keeps native_gas_reserve back for fees. Never negative.
        """
        if not token.is_native:
            return max(0, balance)
        reserve = self._reserve_smallest_unit(token)
        return max(0, balance - reserve)

    def _reserve_smallest_unit(self, token: TokenDescriptor) -> int:
        reserve: Decimal = self._settings.native_gas_reserve
        return normalize_amount(format(reserve, "f"), token.decimal_places)

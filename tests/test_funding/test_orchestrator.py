"""Tests for FundingOrchestrator -- authorization decisions, balance checks and plans."""

from decimal import Decimal

import pytest
from factories import POLLS_CONTRACT

from pulse.config import BASE_MAINNET, BASE_SEPOLIA, FundingSettings
from pulse.exceptions import InsufficientBalance, InvalidAmount, TokenNotSupportedOnChain
from pulse.funding.orchestrator import FundingOrchestrator
from pulse.models import (
    FundingAction,
    FundingPlanKind,
    FundingPurpose,
    TokenDescriptor,
    VoteCostQuote,
)
from pulse.tokens.amounts import TokenAmount
from pulse.tokens.registry import ETH, PULSE, USDC, TokenRegistry


@pytest.fixture()
def orchestrator() -> FundingOrchestrator:
    return FundingOrchestrator(FundingSettings(), TokenRegistry())


class TestNeedsAuthorization:
    def test_native_never_needs_authorization(self, orchestrator):
        assert orchestrator.needs_authorization(ETH, 10**18, None) is False
        assert orchestrator.needs_authorization(ETH, 10**18, 0) is False

    def test_unknown_allowance_needs_authorization(self, orchestrator):
        assert orchestrator.needs_authorization(USDC, 1, None) is True

    def test_insufficient_allowance(self, orchestrator):
        assert orchestrator.needs_authorization(USDC, 100_000, 99_999) is True

    def test_exact_allowance_suffices(self, orchestrator):
        assert orchestrator.needs_authorization(USDC, 100_000, 100_000) is False


class TestHasSufficientBalance:
    def test_same_precision(self, orchestrator):
        assert orchestrator.has_sufficient_balance(USDC, 100_000, TokenAmount(100_000, USDC))
        assert not orchestrator.has_sufficient_balance(USDC, 100_001, TokenAmount(100_000, USDC))

    def test_balance_rebased_to_token_precision(self, orchestrator):
        """A balance reported at 18 decimals is compared at the token's 6."""
        usdc18 = TokenDescriptor(symbol="USDC", decimal_places=18)
        balance = TokenAmount(10**17, usdc18)  # 0.1 USDC
        assert orchestrator.has_sufficient_balance(USDC, 100_000, balance)
        assert not orchestrator.has_sufficient_balance(USDC, 100_001, balance)

    def test_cross_token_refused(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.has_sufficient_balance(USDC, 1, TokenAmount(10**18, PULSE))


class TestBuildIntent:
    def test_usdc_intent(self, orchestrator):
        intent = orchestrator.build_intent(
            poll_id=7, symbol="USDC", amount="0.1", chain_id=BASE_SEPOLIA, current_allowance=0
        )
        assert intent.requested_amount_smallest_unit == 100_000
        assert intent.requires_authorization is True
        assert intent.token is USDC
        assert intent.purpose is FundingPurpose.FUND_POLL

    def test_token_checked_before_amount(self, orchestrator):
        """An unsupported token is reported even if the amount is also bad."""
        with pytest.raises(TokenNotSupportedOnChain):
            orchestrator.build_intent(1, "USDC", "not-a-number", 1, None)

    def test_bad_amount(self, orchestrator):
        with pytest.raises(InvalidAmount):
            orchestrator.build_intent(1, "USDC", "0.0000001", BASE_MAINNET, None)

    def test_intent_from_quote(self, orchestrator):
        quote = VoteCostQuote(
            poll_id=3, option_index=0, votes_already_owned=0, votes_requested=3, total_cost=14 * 10**18
        )
        intent = orchestrator.intent_from_quote(quote, "PULSE", BASE_SEPOLIA, current_allowance=None)
        assert intent.amount == "14"
        assert intent.requested_amount_smallest_unit == 14 * 10**18
        assert intent.purpose is FundingPurpose.BUY_VOTES
        assert intent.requires_authorization is True


class TestPlanFundingFlow:
    def test_erc20_without_allowance_authorizes_first(self, orchestrator):
        intent = orchestrator.build_intent(1, "USDC", "0.1", BASE_SEPOLIA, current_allowance=None)
        plan = orchestrator.plan_funding_flow(intent, POLLS_CONTRACT, BASE_SEPOLIA)

        assert plan.kind is FundingPlanKind.AUTHORIZE_THEN_TRANSFER
        assert [s.action for s in plan.steps] == [FundingAction.AUTHORIZE, FundingAction.TRANSFER]
        assert all(s.amount == 100_000 for s in plan.steps)
        assert all(s.spender == POLLS_CONTRACT for s in plan.steps)
        assert plan.transfer.action is FundingAction.TRANSFER

    def test_erc20_with_allowance_transfers_only(self, orchestrator):
        intent = orchestrator.build_intent(1, "USDC", "0.1", BASE_SEPOLIA, current_allowance=10**6)
        plan = orchestrator.plan_funding_flow(intent, POLLS_CONTRACT, BASE_SEPOLIA)
        assert plan.kind is FundingPlanKind.TRANSFER_ONLY
        assert len(plan.steps) == 1

    def test_native_transfers_only(self, orchestrator):
        intent = orchestrator.build_intent(1, "ETH", "0.5", BASE_MAINNET, current_allowance=None)
        plan = orchestrator.plan_funding_flow(intent, POLLS_CONTRACT, BASE_MAINNET)
        assert plan.kind is FundingPlanKind.TRANSFER_ONLY
        assert plan.transfer.amount == 5 * 10**17

    def test_zero_amount_rejected(self, orchestrator):
        intent = orchestrator.build_intent(1, "USDC", "0", BASE_SEPOLIA, current_allowance=None)
        with pytest.raises(InvalidAmount):
            orchestrator.plan_funding_flow(intent, POLLS_CONTRACT, BASE_SEPOLIA)

    def test_insufficient_balance(self, orchestrator):
        intent = orchestrator.build_intent(1, "USDC", "2", BASE_SEPOLIA, current_allowance=None)
        with pytest.raises(InsufficientBalance) as exc_info:
            orchestrator.plan_funding_flow(
                intent, POLLS_CONTRACT, BASE_SEPOLIA, current_balance=TokenAmount(1_500_000, USDC)
            )
        assert exc_info.value.context["token"] == "USDC"
        assert exc_info.value.context["available"] == "1.5"

    def test_sufficient_balance(self, orchestrator):
        intent = orchestrator.build_intent(1, "USDC", "1.5", BASE_SEPOLIA, current_allowance=None)
        plan = orchestrator.plan_funding_flow(
            intent, POLLS_CONTRACT, BASE_SEPOLIA, current_balance=TokenAmount(1_500_000, USDC)
        )
        assert plan.transfer.amount == 1_500_000


class TestMaxFundableAmount:
    def test_native_keeps_gas_reserve(self, orchestrator):
        assert orchestrator.max_fundable_amount(ETH, 10**18) == 10**18 - 10**16

    def test_native_never_negative(self, orchestrator):
        assert orchestrator.max_fundable_amount(ETH, 10**15) == 0

    def test_erc20_full_balance(self, orchestrator):
        assert orchestrator.max_fundable_amount(USDC, 1_234_567) == 1_234_567

    def test_reserve_configurable(self):
        orchestrator = FundingOrchestrator(
            FundingSettings(native_gas_reserve=Decimal("0.5")), TokenRegistry()
        )
        assert orchestrator.max_fundable_amount(ETH, 10**18) == 5 * 10**17

"""Creator dashboard statistics over a reconciled poll list.

Funding totals are grouped per token symbol. Summing a 6-decimal USDC
amount with an 18-decimal PULSE amount has no meaning, so each token gets
its own Decimal total.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from pulse.distribution.classifier import classify
from pulse.models import PollRecord, PollStatus
from pulse.tokens.amounts import to_decimal


@dataclass(frozen=True)
class CreatorDashboardStats:
    """Headline numbers for one creator's polls."""

    total_polls: int
    active_polls: int
    ended_polls: int
    total_responses: int
    pending_distributions: int
    total_funded: dict[str, Decimal] = field(default_factory=dict)


def summarize(records: Iterable[PollRecord]) -> CreatorDashboardStats:
    """Aggregate counts, responses and per-token funding.

    A poll is active while flagged active with ACTIVE status, and ended once
    unflagged or CLOSED; a PAUSED poll that is still flagged is neither.
    Responses are total votes cast across all polls.
    """
    polls = list(records)
    active = sum(1 for r in polls if r.is_active and r.status is PollStatus.ACTIVE)
    ended = sum(1 for r in polls if not r.is_active or r.status is PollStatus.CLOSED)

    totals: dict[str, int] = {}
    decimals: dict[str, int] = {}
    for record in polls:
        if record.total_funding <= 0:
            continue
        symbol = record.funding_token.symbol
        totals[symbol] = totals.get(symbol, 0) + record.total_funding
        decimals[symbol] = record.funding_token.decimal_places

    responses = sum(r.total_votes for r in polls)

    return CreatorDashboardStats(
        total_polls=len(polls),
        active_polls=active,
        ended_polls=ended,
        total_responses=responses,
        pending_distributions=classify(polls).pending_count,
        total_funded={
            symbol: to_decimal(amount, decimals[symbol]) for symbol, amount in sorted(totals.items())
        },
    )

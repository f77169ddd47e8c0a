"""Quadratic vote pricing.

The Nth vote a voter ever buys on a poll costs N^2 whole voting tokens, so
buying k more votes on top of m already owned costs

    S(m + k) - S(m),   where S(n) = n(n + 1)(2n + 1) / 6

All arithmetic is on Python ints. The ledger stores costs in a uint256, so
any quote that would not fit is rejected instead of wrapped.
"""

from pulse.exceptions import InvalidVoteCount, VoteCostOverflow
from pulse.models import TokenDescriptor, VoteCostQuote

MAX_UINT256 = 2**256 - 1


def sum_of_squares(n: int) -> int:
    """Return 1^2 + 2^2 + ... + n^2 (0 for n == 0)."""
    if n < 0:
        raise InvalidVoteCount("vote count cannot be negative", votes=n)
    return n * (n + 1) * (2 * n + 1) // 6


def _validate(votes_already_owned: int, votes_requested: int) -> None:
    if votes_requested <= 0:
        raise InvalidVoteCount(
            "must request at least one vote",
            votes_requested=votes_requested,
        )
    if votes_already_owned < 0:
        raise InvalidVoteCount(
            "owned vote count cannot be negative",
            votes_already_owned=votes_already_owned,
        )


def quote_cost(votes_already_owned: int, votes_requested: int) -> int:
    """Cost, in whole voting-token units, of buying votes_requested more votes.

    Examples:
        quote_cost(0, 3) == 1 + 4 + 9 == 14
        quote_cost(2, 2) == 9 + 16 == 25

    Raises:
        InvalidVoteCount: If votes_requested <= 0 or votes_already_owned < 0.
    """
    _validate(votes_already_owned, votes_requested)
    return sum_of_squares(votes_already_owned + votes_requested) - sum_of_squares(
        votes_already_owned
    )


def quote_incremental_costs(votes_already_owned: int, votes_requested: int) -> list[int]:
    """Per-vote costs for a batch: [(m+1)^2, (m+2)^2, ..., (m+k)^2].

    The list always sums to quote_cost(votes_already_owned, votes_requested).
    """
    _validate(votes_already_owned, votes_requested)
    start = votes_already_owned + 1
    return [n * n for n in range(start, start + votes_requested)]


class QuadraticCostEngine:
    """Prices vote purchases in the voting token's smallest unit.

    Args:
        max_votes_per_voter: Ceiling on votes_already_owned + votes_requested.
            Quotes past it are rejected rather than computed.
    """

    def __init__(self, max_votes_per_voter: int = 1_000_000) -> None:
        self._max_votes = max_votes_per_voter

    def quote_cost(self, votes_already_owned: int, votes_requested: int) -> int:
        self._check_ceiling(votes_already_owned, votes_requested)
        return quote_cost(votes_already_owned, votes_requested)

    def quote_incremental_costs(self, votes_already_owned: int, votes_requested: int) -> list[int]:
        self._check_ceiling(votes_already_owned, votes_requested)
        return quote_incremental_costs(votes_already_owned, votes_requested)

    def quote_vote_purchase(
        self,
        poll_id: int,
        option_index: int,
        votes_already_owned: int,
        votes_requested: int,
        token: TokenDescriptor,
    ) -> VoteCostQuote:
        """Build a VoteCostQuote priced in token's smallest unit.

        Raises:
            InvalidVoteCount: On a non-positive request or negative option index.
            VoteCostOverflow: If the cost exceeds the ceiling or a uint256.
        """
        if option_index < 0:
            raise InvalidVoteCount("option index cannot be negative", option_index=option_index)
        units = self.quote_cost(votes_already_owned, votes_requested)
        total_cost = units * 10**token.decimal_places
        if total_cost > MAX_UINT256:
            raise VoteCostOverflow(
                "vote cost exceeds the ledger's integer range",
                poll_id=poll_id,
                votes_already_owned=votes_already_owned,
                votes_requested=votes_requested,
            )
        return VoteCostQuote(
            poll_id=poll_id,
            option_index=option_index,
            votes_already_owned=votes_already_owned,
            votes_requested=votes_requested,
            total_cost=total_cost,
        )

    def _check_ceiling(self, votes_already_owned: int, votes_requested: int) -> None:
        if votes_already_owned + votes_requested > self._max_votes:
            raise VoteCostOverflow(
                "vote purchase exceeds the per-voter ceiling",
                votes_already_owned=votes_already_owned,
                votes_requested=votes_requested,
                max_votes=self._max_votes,
            )


def average_cost_per_vote(total_cost: int, votes_requested: int) -> int:
    """Floor-divided mean cost, as shown next to a quote."""
    if votes_requested <= 0:
        raise InvalidVoteCount("must request at least one vote", votes_requested=votes_requested)
    return total_cost // votes_requested

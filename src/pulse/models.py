"""Shared data models for the poll reconciliation and economics core.

CRITICAL: All token amounts are int in the token's smallest unit. Display
values use Decimal. Never use float for funding, balances, or vote costs.
"""

import time
from dataclasses import dataclass, field
from enum import Enum

QUESTION_TOKEN_SEPARATOR = "|TOKEN:"


class DistributionMode(str, Enum):
    """How a funded poll pays out rewards once it ends."""

    MANUAL_PULL = "MANUAL_PULL"
    MANUAL_PUSH = "MANUAL_PUSH"
    AUTOMATED = "AUTOMATED"


class FundingType(str, Enum):
    """Who funded the poll's reward pool."""

    NONE = "NONE"
    SELF = "SELF"
    COMMUNITY = "COMMUNITY"


class PollStatus(str, Enum):
    """Lifecycle status as recorded by the ledger."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    FOR_CLAIMING = "FOR_CLAIMING"
    PAUSED = "PAUSED"


class VotingType(str, Enum):
    """One-vote-per-voter or purchased quadratic votes."""

    LINEAR = "LINEAR"
    QUADRATIC = "QUADRATIC"


class SourceKind(str, Enum):
    """Provenance of a poll record before reconciliation."""

    INDEXER = "indexer"
    LEDGER = "ledger"


@dataclass(frozen=True)
class TokenDescriptor:
    """Chain-independent token metadata.

    decimal_places is 6 or 18 for the whitelisted tokens, but nothing
    downstream assumes either value.
    """

    symbol: str
    decimal_places: int
    is_native: bool = False
    name: str = ""

    def __post_init__(self) -> None:
        if self.decimal_places < 0:
            raise ValueError(f"decimal_places must be >= 0, got {self.decimal_places}")


@dataclass(frozen=True)
class PollRecord:
    """Unified poll view produced by reconciliation.

    poll_id is the merge key across sources. created_at and voter_count are
    None when the source does not expose them (the ledger exposes neither).
    """

    poll_id: int
    question: str
    options: tuple[str, ...]
    votes: tuple[int, ...]
    end_time: int  # Unix seconds
    is_active: bool
    creator: str
    total_funding: int
    funding_token: TokenDescriptor
    distribution_mode: DistributionMode
    funding_type: FundingType
    status: PollStatus
    voting_type: VotingType = VotingType.LINEAR
    total_votes_bought: int = 0
    created_at: int | None = None
    voter_count: int | None = None

    def __post_init__(self) -> None:
        if len(self.votes) != len(self.options):
            raise ValueError(
                f"poll {self.poll_id}: {len(self.votes)} vote counts for "
                f"{len(self.options)} options"
            )
        if any(v < 0 for v in self.votes):
            raise ValueError(f"poll {self.poll_id}: negative vote count")
        if self.total_funding < 0:
            raise ValueError(f"poll {self.poll_id}: negative total_funding")
        if self.funding_type is FundingType.NONE and self.total_funding != 0:
            raise ValueError(f"poll {self.poll_id}: unfunded poll with total_funding")

    @property
    def total_votes(self) -> int:
        return sum(self.votes)

    @property
    def title(self) -> str:
        """Question text without the trailing ``|TOKEN:SYMBOL`` metadata."""
        return self.question.split(QUESTION_TOKEN_SEPARATOR, 1)[0]

    @property
    def token_hint(self) -> str | None:
        """Token symbol embedded in the question metadata, if any."""
        parts = self.question.split(QUESTION_TOKEN_SEPARATOR, 1)
        return parts[1] if len(parts) == 2 else None


@dataclass(frozen=True)
class SourceRecord:
    """A PollRecord annotated with where it came from. Reconciler-internal."""

    record: PollRecord
    source: SourceKind

    @property
    def poll_id(self) -> int:
        return self.record.poll_id


@dataclass(frozen=True)
class SourceCoverage:
    """How many merged records each source contributed."""

    indexer_count: int
    ledger_only_count: int


@dataclass(frozen=True)
class ReconciliationResult:
    """One reconcile cycle's output. Rebuilt every cycle, never mutated."""

    records: tuple[PollRecord, ...]
    coverage: SourceCoverage
    is_indexer_degraded: bool

    def by_id(self, poll_id: int) -> PollRecord | None:
        for record in self.records:
            if record.poll_id == poll_id:
                return record
        return None


@dataclass
class PendingConvergence:
    """Transient watch waiting for the indexer to show a freshly written poll."""

    poll_id: int
    creator: str
    chain_id: int
    max_attempts: int
    interval_seconds: float
    attempts_made: int = 0
    started_at: float = field(default_factory=time.time)

    @property
    def exhausted(self) -> bool:
        return self.attempts_made >= self.max_attempts


@dataclass(frozen=True)
class VoteCostQuote:
    """Exact price of buying votes_requested more votes on one option."""

    poll_id: int
    option_index: int
    votes_already_owned: int
    votes_requested: int
    total_cost: int  # smallest unit of the voting token


class FundingPurpose(str, Enum):
    """What the transfer step of a funding flow pays for."""

    FUND_POLL = "fund_poll"
    BUY_VOTES = "buy_votes"


@dataclass(frozen=True)
class FundingIntent:
    """A user's funding request, derived fresh on every amount or token change."""

    poll_id: int
    token: TokenDescriptor
    amount: str  # as entered
    requires_authorization: bool
    current_allowance: int | None
    requested_amount_smallest_unit: int
    purpose: FundingPurpose = FundingPurpose.FUND_POLL


class FundingPlanKind(str, Enum):
    AUTHORIZE_THEN_TRANSFER = "AUTHORIZE_THEN_TRANSFER"
    TRANSFER_ONLY = "TRANSFER_ONLY"


class FundingAction(str, Enum):
    AUTHORIZE = "AUTHORIZE"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class FundingStep:
    """One transaction the user signs. amount is in the token's smallest unit."""

    action: FundingAction
    token: TokenDescriptor
    token_address: str
    spender: str
    amount: int


@dataclass(frozen=True)
class FundingPlan:
    """Ordered steps for a funding flow. An AUTHORIZE step always precedes TRANSFER."""

    kind: FundingPlanKind
    steps: tuple[FundingStep, ...]

    @property
    def transfer(self) -> FundingStep:
        return self.steps[-1]

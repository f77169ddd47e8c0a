"""Map raw indexer entities and ledger tuples to PollRecord.

The indexer reports enums by name ("MANUAL_PULL"), the ledger by ordinal
(0). Both are parsed into the closed enums in pulse.models; an unknown value
raises ValueError so the record is dropped instead of silently defaulted.
"""

from collections.abc import Sequence
from typing import Any, TypeVar

from pulse.models import (
    QUESTION_TOKEN_SEPARATOR,
    DistributionMode,
    FundingType,
    PollRecord,
    PollStatus,
    TokenDescriptor,
    VotingType,
)
from pulse.tokens.registry import NATIVE_TOKEN_ADDRESS, TokenRegistry

E = TypeVar("E", DistributionMode, FundingType, PollStatus, VotingType)

# Ledger enum ordinals, in contract declaration order
_DISTRIBUTION_MODES = (DistributionMode.MANUAL_PULL, DistributionMode.MANUAL_PUSH, DistributionMode.AUTOMATED)
_FUNDING_TYPES = (FundingType.NONE, FundingType.SELF, FundingType.COMMUNITY)
_STATUSES = (PollStatus.ACTIVE, PollStatus.CLOSED, PollStatus.FOR_CLAIMING, PollStatus.PAUSED)
_VOTING_TYPES = (VotingType.LINEAR, VotingType.QUADRATIC)

# Older subgraph deployments call linear voting "STANDARD"
_VOTING_TYPE_ALIASES = {"STANDARD": VotingType.LINEAR}


def _parse_enum(value: Any, enum_cls: type[E], ordinals: tuple[E, ...]) -> E:
    if isinstance(value, bool):
        raise ValueError(f"invalid {enum_cls.__name__}: {value!r}")
    if isinstance(value, int):
        if 0 <= value < len(ordinals):
            return ordinals[value]
        raise ValueError(f"invalid {enum_cls.__name__} ordinal: {value}")
    if isinstance(value, str):
        name = value.strip().upper()
        if enum_cls is VotingType and name in _VOTING_TYPE_ALIASES:
            return _VOTING_TYPE_ALIASES[name]  # type: ignore[return-value]
        try:
            return enum_cls(name)
        except ValueError:
            pass
        if name.isdigit():
            return _parse_enum(int(name), enum_cls, ordinals)
    raise ValueError(f"invalid {enum_cls.__name__}: {value!r}")


def parse_distribution_mode(value: Any) -> DistributionMode:
    return _parse_enum(value, DistributionMode, _DISTRIBUTION_MODES)


def parse_funding_type(value: Any) -> FundingType:
    return _parse_enum(value, FundingType, _FUNDING_TYPES)


def parse_status(value: Any) -> PollStatus:
    return _parse_enum(value, PollStatus, _STATUSES)


def parse_voting_type(value: Any) -> VotingType:
    return _parse_enum(value, VotingType, _VOTING_TYPES)


def _parse_poll_id(raw: Any) -> int:
    """Poll ids arrive as ints, decimal strings, or hex bytes ("0x2a")."""
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


def _optional_int(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    return int(raw)


def _indexer_funding_token(
    entity: dict[str, Any], chain_id: int, registry: TokenRegistry
) -> TokenDescriptor:
    """Funding token of a subgraph poll.

    Poll entities usually carry no token address; the symbol travels in the
    question as ``TITLE|TOKEN:SYMBOL``. Untagged polls are native-funded.
    """
    address = entity.get("fundingToken")
    if address:
        return registry.by_address(chain_id, address)
    parts = str(entity.get("question", "")).split(QUESTION_TOKEN_SEPARATOR, 1)
    if len(parts) == 2:
        token = registry.get(parts[1].strip())
        if token is not None:
            return token
    return registry.by_address(chain_id, NATIVE_TOKEN_ADDRESS)


def poll_from_indexer(
    entity: dict[str, Any], chain_id: int, registry: TokenRegistry
) -> PollRecord:
    """Build a PollRecord from a subgraph Poll entity.

    Raises:
        ValueError / KeyError: On missing or out-of-range fields.
    """
    raw_id = entity.get("pollId", entity.get("id"))
    funding = entity.get("totalFundingAmount")
    if funding is None:
        funding = entity.get("totalFunding", 0)

    return PollRecord(
        poll_id=_parse_poll_id(raw_id),
        question=entity["question"],
        options=tuple(entity["options"]),
        votes=tuple(int(v) for v in entity["votes"]),
        end_time=int(entity["endTime"]),
        is_active=bool(entity["isActive"]),
        creator=str(entity["creator"]).lower(),
        total_funding=int(funding),
        funding_token=_indexer_funding_token(entity, chain_id, registry),
        distribution_mode=parse_distribution_mode(entity.get("distributionMode", "MANUAL_PULL")),
        funding_type=parse_funding_type(entity.get("fundingType", "NONE")),
        status=parse_status(entity["status"]),
        voting_type=parse_voting_type(entity.get("votingType") or "LINEAR"),
        total_votes_bought=int(entity.get("totalVotesBought") or 0),
        created_at=_optional_int(entity.get("createdAt")),
        voter_count=_optional_int(entity.get("voterCount")),
    )


def poll_from_ledger(
    values: Sequence[Any], chain_id: int, registry: TokenRegistry
) -> PollRecord:
    """Build a PollRecord from the getPoll return tuple.

    Tuple order: id, question, options, votes, endTime, isActive, creator,
    totalFunding, distributionMode, fundingToken, fundingType, status,
    previousStatus, votingType, totalVotesBought, questionnaireId.
    """
    (
        poll_id,
        question,
        options,
        votes,
        end_time,
        is_active,
        creator,
        total_funding,
        distribution_mode,
        funding_token,
        funding_type,
        status,
        _previous_status,
        voting_type,
        total_votes_bought,
        _questionnaire_id,
    ) = values

    return PollRecord(
        poll_id=int(poll_id),
        question=question,
        options=tuple(options),
        votes=tuple(int(v) for v in votes),
        end_time=int(end_time),
        is_active=bool(is_active),
        creator=str(creator).lower(),
        total_funding=int(total_funding),
        funding_token=registry.by_address(chain_id, funding_token),
        distribution_mode=parse_distribution_mode(int(distribution_mode)),
        funding_type=parse_funding_type(int(funding_type)),
        status=parse_status(int(status)),
        voting_type=parse_voting_type(int(voting_type)),
        total_votes_bought=int(total_votes_bought),
    )

"""Custom exceptions for the poll reconciliation and economics core.

All domain exceptions live here to avoid circular imports between the
token, funding, voting and reconcile packages. Every error carries a
stable ``kind`` and a ``context`` dict so callers can render a specific
message (which token, which poll) instead of a generic failure.
"""

from typing import Any


class PulseError(Exception):
    """Base exception for all pulse errors."""

    kind = "pulse_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class InvalidAmount(PulseError):
    """Raised for a malformed, negative, or over-precision user-entered amount."""

    kind = "invalid_amount"


class InvalidAddress(PulseError):
    """Raised for a wallet address that is not a 20-byte hex address."""

    kind = "invalid_address"


class InsufficientBalance(PulseError):
    """Raised when a wallet balance cannot cover the requested amount."""

    kind = "insufficient_balance"


class TokenNotSupportedOnChain(PulseError):
    """Raised when a token has no known address on the active chain."""

    kind = "token_not_supported_on_chain"


class InvalidVoteCount(PulseError):
    """Raised for a non-positive vote request or a negative owned-vote count."""

    kind = "invalid_vote_count"


class VoteCostOverflow(InvalidVoteCount):
    """Raised when a quadratic cost would not fit the ledger's 256-bit word."""

    kind = "vote_cost_overflow"


class IndexerUnavailable(PulseError):
    """Raised when the indexer query fails. Non-fatal for reconciliation."""

    kind = "indexer_unavailable"


class LedgerUnavailable(PulseError):
    """Raised when ledger reads fail. Fatal for the current reconcile call."""

    kind = "ledger_unavailable"


class ConvergenceTimeout(PulseError):
    """Passed to on_timeout when the indexer never showed the watched poll."""

    kind = "convergence_timeout"

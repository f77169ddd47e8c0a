"""Token layer -- per-chain token registry and decimal-exact amounts."""

from pulse.tokens.amounts import TokenAmount, format_amount, normalize_amount, to_decimal
from pulse.tokens.registry import ETH, PULSE, USDC, TokenRegistry

__all__ = [
    "ETH",
    "PULSE",
    "USDC",
    "TokenAmount",
    "TokenRegistry",
    "format_amount",
    "normalize_amount",
    "to_decimal",
]

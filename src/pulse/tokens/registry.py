"""Whitelisted funding tokens and their per-chain deployments.

The ledger identifies tokens by address; everything above the source
adapters works with TokenDescriptor. The zero address is the native asset.
"""

from pulse.config import BASE_MAINNET, BASE_SEPOLIA
from pulse.exceptions import TokenNotSupportedOnChain
from pulse.logging import get_logger
from pulse.models import TokenDescriptor

logger = get_logger(__name__)

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"

ETH = TokenDescriptor(symbol="ETH", decimal_places=18, is_native=True, name="Ethereum")
PULSE = TokenDescriptor(symbol="PULSE", decimal_places=18, name="SideShift Pulse Token")
USDC = TokenDescriptor(symbol="USDC", decimal_places=6, name="USD Coin")

TOKEN_INFO: dict[str, TokenDescriptor] = {t.symbol: t for t in (ETH, PULSE, USDC)}

WHITELISTED_TOKENS: dict[int, dict[str, str]] = {
    BASE_MAINNET: {
        "ETH": NATIVE_TOKEN_ADDRESS,
        "PULSE": "0x1b684A60309b0916C77834d62d117d306171FDFE",
        "USDC": "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
    },
    BASE_SEPOLIA: {
        "ETH": NATIVE_TOKEN_ADDRESS,
        "PULSE": "0x19821658D5798976152146d1c1882047670B898c",
        "USDC": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    },
}

# Fallback for token addresses that are not whitelisted on the chain
UNKNOWN_TOKEN_SYMBOL = "TOKEN"


class TokenRegistry:
    """Resolves token symbols and addresses for a given chain.

    Args:
        tokens: Token metadata keyed by symbol.
        deployments: Per-chain mapping of symbol to token address.
    """

    def __init__(
        self,
        tokens: dict[str, TokenDescriptor] | None = None,
        deployments: dict[int, dict[str, str]] | None = None,
    ) -> None:
        self._tokens = dict(TOKEN_INFO if tokens is None else tokens)
        self._deployments = {
            chain_id: dict(addresses)
            for chain_id, addresses in (WHITELISTED_TOKENS if deployments is None else deployments).items()
        }

    def supported_symbols(self, chain_id: int) -> list[str]:
        return list(self._deployments.get(chain_id, {}))

    def get(self, symbol: str) -> TokenDescriptor | None:
        return self._tokens.get(symbol.upper())

    def resolve(self, chain_id: int, symbol: str) -> tuple[TokenDescriptor, str]:
        """Return the token descriptor and its address on chain_id.

        Raises:
            TokenNotSupportedOnChain: If the token is unknown or has no
                deployment on the chain.
        """
        token = self.get(symbol)
        address = self._deployments.get(chain_id, {}).get(symbol.upper())
        if token is None or address is None:
            raise TokenNotSupportedOnChain(
                f"{symbol} is not supported on chain {chain_id}",
                token=symbol,
                chain_id=chain_id,
            )
        return token, address

    def address_of(self, chain_id: int, token: TokenDescriptor) -> str:
        return self.resolve(chain_id, token.symbol)[1]

    def by_address(self, chain_id: int, address: str) -> TokenDescriptor:
        """Map a ledger token address to its descriptor.

        Unknown non-native addresses map to an 18-decimal placeholder so the
        poll stays visible; the mismatch is logged.
        """
        if address.lower() == NATIVE_TOKEN_ADDRESS:
            return self._tokens.get("ETH", ETH)
        for symbol, candidate in self._deployments.get(chain_id, {}).items():
            if candidate.lower() == address.lower():
                return self._tokens[symbol]
        logger.warning("unknown_token_address", chain_id=chain_id, address=address)
        return TokenDescriptor(symbol=UNKNOWN_TOKEN_SYMBOL, decimal_places=18)

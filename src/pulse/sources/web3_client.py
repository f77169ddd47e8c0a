"""Ledger client implementation via web3 async JSON-RPC.

Reads the polls contract and ERC20 tokens directly. Batch poll reads fan
out one getPoll call per id and drop individual failures, the same
semantics as a multicall with allowFailure.
"""

import asyncio
from collections.abc import Sequence
from typing import Any

from web3 import AsyncWeb3

from pulse.config import LedgerSettings
from pulse.exceptions import LedgerUnavailable
from pulse.logging import get_logger
from pulse.models import SourceKind, SourceRecord
from pulse.sources.client import LedgerClient
from pulse.sources.mappers import poll_from_ledger
from pulse.tokens.registry import NATIVE_TOKEN_ADDRESS, TokenRegistry

logger = get_logger(__name__)

POLLS_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "name": "nextPollId",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "getPoll",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "pollId", "type": "uint256"}],
        "outputs": [
            {"name": "id", "type": "uint256"},
            {"name": "question", "type": "string"},
            {"name": "options", "type": "string[]"},
            {"name": "votes", "type": "uint256[]"},
            {"name": "endTime", "type": "uint256"},
            {"name": "isActive", "type": "bool"},
            {"name": "creator", "type": "address"},
            {"name": "totalFunding", "type": "uint256"},
            {"name": "distributionMode", "type": "uint8"},
            {"name": "fundingToken", "type": "address"},
            {"name": "fundingType", "type": "uint8"},
            {"name": "status", "type": "uint8"},
            {"name": "previousStatus", "type": "uint8"},
            {"name": "votingType", "type": "uint8"},
            {"name": "totalVotesBought", "type": "uint256"},
            {"name": "questionnaireId", "type": "uint256"},
        ],
    },
    {
        "name": "getUserVotesInPoll",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "pollId", "type": "uint256"},
            {"name": "user", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

ERC20_ABI: list[dict[str, Any]] = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


class Web3LedgerClient(LedgerClient):
    """Concrete ledger client using web3's AsyncWeb3."""

    def __init__(self, settings: LedgerSettings, registry: TokenRegistry) -> None:
        self._settings = settings
        self._registry = registry
        self._connections: dict[int, AsyncWeb3] = {}

    def _web3(self, chain_id: int) -> AsyncWeb3:
        w3 = self._connections.get(chain_id)
        if w3 is not None:
            return w3
        url = self._settings.rpc_urls.get(chain_id)
        if url is None:
            raise LedgerUnavailable("no RPC endpoint configured for chain", chain_id=chain_id)
        w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                url, request_kwargs={"timeout": self._settings.timeout_seconds}
            )
        )
        self._connections[chain_id] = w3
        logger.info("ledger_rpc_connected", chain_id=chain_id)
        return w3

    def _polls_contract(self, chain_id: int) -> Any:
        address = self._settings.polls_contracts.get(chain_id)
        if not address or address.lower() == NATIVE_TOKEN_ADDRESS:
            raise LedgerUnavailable("polls contract not deployed on chain", chain_id=chain_id)
        w3 = self._web3(chain_id)
        return w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=POLLS_CONTRACT_ABI)

    async def next_poll_id(self, chain_id: int) -> int:
        contract = self._polls_contract(chain_id)
        try:
            return int(await contract.functions.nextPollId().call())
        except Exception as exc:
            raise LedgerUnavailable(
                "nextPollId read failed", chain_id=chain_id, error=str(exc)
            ) from exc

    async def get_polls(
        self, chain_id: int, poll_ids: Sequence[int]
    ) -> list[SourceRecord]:
        if not poll_ids:
            return []
        contract = self._polls_contract(chain_id)
        results = await asyncio.gather(
            *(contract.functions.getPoll(pid).call() for pid in poll_ids),
            return_exceptions=True,
        )

        records: list[SourceRecord] = []
        failed = 0
        for pid, result in zip(poll_ids, results):
            if isinstance(result, BaseException):
                failed += 1
                logger.debug("ledger_poll_read_failed", chain_id=chain_id, poll_id=pid, error=str(result))
                continue
            try:
                record = poll_from_ledger(result, chain_id, self._registry)
            except (TypeError, ValueError) as exc:
                logger.warning("invalid_ledger_poll", chain_id=chain_id, poll_id=pid, error=str(exc))
                continue
            records.append(SourceRecord(record=record, source=SourceKind.LEDGER))

        if failed == len(poll_ids):
            raise LedgerUnavailable(
                "every getPoll call failed", chain_id=chain_id, requested=len(poll_ids)
            )
        if failed:
            logger.warning("ledger_partial_batch", chain_id=chain_id, failed=failed, requested=len(poll_ids))
        return records

    async def get_balance(self, chain_id: int, address: str, token_address: str) -> int:
        w3 = self._web3(chain_id)
        owner = AsyncWeb3.to_checksum_address(address)
        try:
            if token_address.lower() == NATIVE_TOKEN_ADDRESS:
                return int(await w3.eth.get_balance(owner))
            token = w3.eth.contract(address=AsyncWeb3.to_checksum_address(token_address), abi=ERC20_ABI)
            return int(await token.functions.balanceOf(owner).call())
        except Exception as exc:
            raise LedgerUnavailable(
                "balance read failed", chain_id=chain_id, token=token_address, error=str(exc)
            ) from exc

    async def get_allowance(
        self, chain_id: int, owner: str, spender: str, token_address: str
    ) -> int:
        w3 = self._web3(chain_id)
        token = w3.eth.contract(address=AsyncWeb3.to_checksum_address(token_address), abi=ERC20_ABI)
        try:
            return int(
                await token.functions.allowance(
                    AsyncWeb3.to_checksum_address(owner),
                    AsyncWeb3.to_checksum_address(spender),
                ).call()
            )
        except Exception as exc:
            raise LedgerUnavailable(
                "allowance read failed", chain_id=chain_id, token=token_address, error=str(exc)
            ) from exc

    async def get_votes_owned(self, chain_id: int, poll_id: int, voter: str) -> int:
        contract = self._polls_contract(chain_id)
        try:
            return int(
                await contract.functions.getUserVotesInPoll(
                    poll_id, AsyncWeb3.to_checksum_address(voter)
                ).call()
            )
        except Exception as exc:
            raise LedgerUnavailable(
                "vote count read failed", chain_id=chain_id, poll_id=poll_id, error=str(exc)
            ) from exc

    def polls_contract_address(self, chain_id: int) -> str:
        """Spender address for authorizations on chain_id."""
        address = self._settings.polls_contracts.get(chain_id)
        if not address:
            raise LedgerUnavailable("polls contract not deployed on chain", chain_id=chain_id)
        return address

    async def close(self) -> None:
        for chain_id, w3 in self._connections.items():
            await w3.provider.disconnect()
            logger.info("ledger_rpc_closed", chain_id=chain_id)
        self._connections.clear()

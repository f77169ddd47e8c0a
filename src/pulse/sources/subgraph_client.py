"""Subgraph indexer client over GraphQL/HTTP via httpx.

One endpoint per chain. Polls are fetched newest-first in skip/first pages
until the requested limit is reached or a short page signals the end.
"""

from typing import Any

import httpx

from pulse.config import IndexerSettings
from pulse.exceptions import IndexerUnavailable
from pulse.logging import get_logger
from pulse.models import SourceKind, SourceRecord
from pulse.sources.client import IndexerClient
from pulse.sources.mappers import poll_from_indexer
from pulse.tokens.registry import TokenRegistry

logger = get_logger(__name__)

POLLS_BY_CREATOR_QUERY = """
query PollsByCreator($creator: String!, $first: Int!, $skip: Int!) {
  polls(
    where: { creator: $creator }
    first: $first
    skip: $skip
    orderBy: endTime
    orderDirection: desc
  ) {
    id
    pollId
    question
    options
    votes
    endTime
    isActive
    creator
    createdAt
    totalFunding
    totalFundingAmount
    fundingToken
    voteCount
    voterCount
    distributionMode
    fundingType
    status
    votingType
    totalVotesBought
  }
}
"""


class SubgraphIndexerClient(IndexerClient):
    """Concrete indexer client for The Graph deployments."""

    def __init__(
        self,
        settings: IndexerSettings,
        registry: TokenRegistry,
        page_size: int = 100,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._page_size = page_size
        self._client = http_client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    async def polls_by_creator(
        self, creator: str, chain_id: int, limit: int = 100
    ) -> list[SourceRecord]:
        url = self._settings.urls.get(chain_id)
        if url is None:
            raise IndexerUnavailable("no subgraph configured for chain", chain_id=chain_id)

        creator_id = creator.lower()
        records: list[SourceRecord] = []
        skip = 0

        while len(records) < limit:
            first = min(self._page_size, limit - len(records))
            page = await self._query(
                url,
                POLLS_BY_CREATOR_QUERY,
                {"creator": creator_id, "first": first, "skip": skip},
                chain_id=chain_id,
            )
            entities = page.get("polls") or []

            for entity in entities:
                try:
                    record = poll_from_indexer(entity, chain_id, self._registry)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning(
                        "invalid_indexer_poll",
                        chain_id=chain_id,
                        poll=entity.get("pollId", entity.get("id")),
                        error=str(exc),
                    )
                    continue
                records.append(SourceRecord(record=record, source=SourceKind.INDEXER))

            if len(entities) < first:
                break
            skip += len(entities)

        logger.debug(
            "indexer_polls_fetched",
            chain_id=chain_id,
            creator=creator_id,
            count=len(records),
        )
        return records

    async def _query(
        self, url: str, query: str, variables: dict[str, Any], chain_id: int
    ) -> dict[str, Any]:
        """POST a GraphQL query and return its data object.

        Raises:
            IndexerUnavailable: On HTTP errors, bad JSON, or GraphQL errors.
        """
        try:
            response = await self._client.post(
                url, json={"query": query, "variables": variables}
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise IndexerUnavailable(
                "subgraph request failed", chain_id=chain_id, error=str(exc)
            ) from exc

        if payload.get("errors"):
            messages = [e.get("message", "unknown") for e in payload["errors"]]
            raise IndexerUnavailable(
                "subgraph returned errors", chain_id=chain_id, errors="; ".join(messages)
            )

        data = payload.get("data")
        if data is None:
            raise IndexerUnavailable("subgraph response has no data", chain_id=chain_id)
        return data

    async def close(self) -> None:
        await self._client.aclose()

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import InvalidOperation
import logging
from typing import Any, TypeVar

import httpx

from pool_history.application.dto.pool_events import EventsPage
from pool_history.domain.entities.pool_events import BurnEvent, MintEvent, SwapEvent
from pool_history.domain.services.univ3_math import parse_big_int
from pool_history.infrastructure.mappers.pool_events_mapper import (
    map_row_to_burn_event,
    map_row_to_mint_event,
    map_row_to_swap_event,
)


logger = logging.getLogger(__name__)


EventT = TypeVar("EventT")


class SubgraphRequestError(RuntimeError):
    pass


class SubgraphResolutionError(RuntimeError):
    pass


def _row_timestamp(row: Mapping[str, Any]) -> int | None:
    try:
        return parse_big_int(row.get("timestamp"))
    except ValueError:
        return None


SWAPS_QUERY = """
query PoolSwaps($pool: String!, $cursor: Int!, $endTime: Int!, $excludeIds: [ID!]!, $first: Int!) {
  swaps(
    first: $first
    where: { pool: $pool, timestamp_gte: $cursor, timestamp_lt: $endTime, id_not_in: $excludeIds }
    orderBy: timestamp
    orderDirection: asc
  ) {
    id
    timestamp
    token0 { id symbol }
    token1 { id symbol }
    sender
    recipient
    amount0
    amount1
    sqrtPriceX96
    tick
  }
}
"""

MINTS_QUERY = """
query PoolMints($pool: String!, $startTime: Int!, $endTime: Int!, $skip: Int!, $first: Int!) {
  mints(
    first: $first
    skip: $skip
    where: { pool: $pool, timestamp_gte: $startTime, timestamp_lt: $endTime }
    orderBy: timestamp
    orderDirection: asc
  ) {
    id
    timestamp
    owner
    sender
    origin
    amount
    amount0
    amount1
    tickLower
    tickUpper
  }
}
"""

BURNS_QUERY = """
query PoolBurns($pool: String!, $startTime: Int!, $endTime: Int!, $skip: Int!, $first: Int!) {
  burns(
    first: $first
    skip: $skip
    where: { pool: $pool, timestamp_gte: $startTime, timestamp_lt: $endTime }
    orderBy: timestamp
    orderDirection: asc
  ) {
    id
    timestamp
    owner
    origin
    amount
    amount0
    amount1
    tickLower
    tickUpper
  }
}
"""


@dataclass(frozen=True)
class Univ3SubgraphClientSettings:
    graph_gateway_base: str
    graph_api_key: str
    graph_subgraph_id: str
    timeout_seconds: float


class Univ3SubgraphClient:
    """One GraphQL request per page; retries belong to the caller.

    The subgraph URL is resolved on construction, so a missing subgraph id
    fails before any page is requested.
    """

    def __init__(self, settings: Univ3SubgraphClientSettings):
        self._settings = settings
        self._url = self._resolve_subgraph_url()

    def fetch_swaps_page(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
        cursor_timestamp: int,
        exclude_ids: Sequence[str],
        page_size: int,
    ) -> EventsPage[SwapEvent]:
        payload = self._post_graphql(
            url=self._url,
            query=SWAPS_QUERY,
            variables={
                "pool": pool_address.lower(),
                "cursor": int(max(cursor_timestamp, start_timestamp)),
                "endTime": int(end_timestamp),
                "excludeIds": list(exclude_ids),
                "first": int(page_size),
            },
        )
        return self._map_rows(payload, "swaps", map_row_to_swap_event)

    def fetch_mints_page(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
        skip: int,
        page_size: int,
    ) -> EventsPage[MintEvent]:
        payload = self._post_graphql(
            url=self._url,
            query=MINTS_QUERY,
            variables=self._offset_variables(pool_address, start_timestamp, end_timestamp, skip, page_size),
        )
        return self._map_rows(payload, "mints", map_row_to_mint_event)

    def fetch_burns_page(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
        skip: int,
        page_size: int,
    ) -> EventsPage[BurnEvent]:
        payload = self._post_graphql(
            url=self._url,
            query=BURNS_QUERY,
            variables=self._offset_variables(pool_address, start_timestamp, end_timestamp, skip, page_size),
        )
        return self._map_rows(payload, "burns", map_row_to_burn_event)

    @staticmethod
    def _offset_variables(
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
        skip: int,
        page_size: int,
    ) -> dict:
        return {
            "pool": pool_address.lower(),
            "startTime": int(start_timestamp),
            "endTime": int(end_timestamp),
            "skip": int(skip),
            "first": int(page_size),
        }

    @staticmethod
    def _map_rows(
        payload: dict,
        entity: str,
        mapper: Callable[[Mapping[str, Any]], EventT],
    ) -> EventsPage[EventT]:
        rows = (payload.get("data") or {}).get(entity)
        if rows is None:
            raise SubgraphRequestError(f"Subgraph response has no '{entity}' field.")

        mapped: list[EventT] = []
        row_keys: list[tuple[str, int | None]] = []
        for row in rows:
            row_id = row.get("id") if isinstance(row, Mapping) else None
            if row_id is not None:
                row_keys.append((str(row_id), _row_timestamp(row)))
            try:
                mapped.append(mapper(row))
            except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
                logger.warning(
                    "univ3_subgraph_client: skipped_row entity=%s id=%s error=%s",
                    entity,
                    row_id,
                    exc,
                )
        return EventsPage(events=mapped, row_count=len(rows), row_keys=tuple(row_keys))

    def _post_graphql(self, *, url: str, query: str, variables: dict) -> dict:
        try:
            with httpx.Client(timeout=self._settings.timeout_seconds) as client:
                response = client.post(
                    url,
                    json={"query": query, "variables": variables},
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            raise SubgraphRequestError(f"GraphQL request failed: {exc}") from exc
        except ValueError as exc:
            raise SubgraphRequestError(f"GraphQL response is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise SubgraphRequestError("GraphQL response is not an object.")
        errors = payload.get("errors") or []
        if errors:
            message = " | ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors
            )
            raise SubgraphRequestError(message)
        return payload

    def _resolve_subgraph_url(self) -> str:
        subgraph_id = str(self._settings.graph_subgraph_id or "").strip()
        if not subgraph_id:
            raise SubgraphResolutionError("Missing GRAPH_SUBGRAPH_ID.")
        return self._build_gateway_url(subgraph_id)

    def _build_gateway_url(self, subgraph_id: str) -> str:
        if subgraph_id.startswith("http://") or subgraph_id.startswith("https://"):
            return subgraph_id.rstrip("/")
        base = self._settings.graph_gateway_base.rstrip("/")
        api_key = self._settings.graph_api_key.strip()
        if api_key:
            return f"{base}/{api_key}/subgraphs/id/{subgraph_id}"
        return f"{base}/subgraphs/id/{subgraph_id}"

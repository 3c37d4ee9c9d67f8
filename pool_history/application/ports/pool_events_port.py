from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from pool_history.application.dto.pool_events import EventsPage
from pool_history.domain.entities.pool_events import BurnEvent, MintEvent, SwapEvent


class PoolEventsPort(Protocol):
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
        ...

    def fetch_mints_page(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
        skip: int,
        page_size: int,
    ) -> EventsPage[MintEvent]:
        ...

    def fetch_burns_page(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
        skip: int,
        page_size: int,
    ) -> EventsPage[BurnEvent]:
        ...

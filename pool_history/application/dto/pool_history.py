from __future__ import annotations

from dataclasses import dataclass

from pool_history.application.dto.pool_events import FetchEventsResult
from pool_history.domain.entities.pool import PoolMetadata
from pool_history.domain.entities.pool_events import BurnEvent, MintEvent, SwapEvent
from pool_history.domain.entities.pool_history import PoolHistoryRecord


@dataclass(frozen=True)
class BuildPoolHistoryInput:
    pool_address: str
    start_timestamp: int
    end_timestamp: int
    bucket_width: int = 3600
    strict_alignment: bool = False


@dataclass(frozen=True)
class BuildPoolHistoryOutput:
    records: list[PoolHistoryRecord]
    metadata: PoolMetadata
    tick_spacing: int
    swaps: FetchEventsResult[SwapEvent]
    mints: FetchEventsResult[MintEvent]
    burns: FetchEventsResult[BurnEvent]
    output_location: str | None = None

    @property
    def complete(self) -> bool:
        return self.swaps.complete and self.mints.complete and self.burns.complete

    @property
    def partial_reason(self) -> str | None:
        reasons = [
            f"{result.kind} stopped after {result.pages} pages "
            f"({len(result.events)} events, position={result.position}): {result.error}"
            for result in (self.swaps, self.mints, self.burns)
            if not result.complete
        ]
        if not reasons:
            return None
        return "; ".join(reasons)

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar


EventT = TypeVar("EventT")


@dataclass(frozen=True)
class FetchEventsSettings:
    page_size: int = 100
    max_retries: int = 3
    retry_delay_ms: int = 5000
    batch_delay_ms: int = 200


@dataclass(frozen=True)
class EventsPage(Generic[EventT]):
    """One page as served by the index.

    ``row_keys`` keeps ``(id, timestamp)`` for every returned row, including
    rows that could not be mapped to an event (timestamp is None when it was
    unreadable). Pagination decisions use the rows, not the mapped events.
    """

    events: list[EventT]
    row_count: int
    row_keys: tuple[tuple[str, int | None], ...] = ()

    @classmethod
    def from_events(cls, events: Sequence[EventT]) -> "EventsPage[EventT]":
        return cls(
            events=list(events),
            row_count=len(events),
            row_keys=tuple((event.id, event.timestamp) for event in events),
        )

    @property
    def skipped_rows(self) -> int:
        return self.row_count - len(self.events)

    @property
    def last_row_timestamp(self) -> int | None:
        for _, timestamp in reversed(self.row_keys):
            if timestamp is not None:
                return timestamp
        return None


@dataclass(frozen=True)
class FetchEventsResult(Generic[EventT]):
    kind: str
    events: list[EventT]
    pages: int
    # Last timestamp cursor (cursor pagination) or skip offset (offset pagination) requested.
    position: int
    error: Exception | None = None
    duplicates_dropped: int = 0
    stall_skips: int = 0
    failed_attempts: int = 0
    skipped_rows: int = 0

    @property
    def complete(self) -> bool:
        return self.error is None

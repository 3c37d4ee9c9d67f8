from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging
import time
from typing import Generic, TypeVar

from pool_history.application.dto.pool_events import EventsPage, FetchEventsResult, FetchEventsSettings
from pool_history.application.ports.pool_events_port import PoolEventsPort
from pool_history.domain.entities.pool_events import BurnEvent, MintEvent, SwapEvent
from pool_history.domain.exceptions import PoolHistoryInputError


logger = logging.getLogger(__name__)


EventT = TypeVar("EventT", SwapEvent, MintEvent, BurnEvent)


@dataclass(frozen=True)
class _PageOutcome(Generic[EventT]):
    page: EventsPage[EventT] | None
    error: Exception | None
    failed_attempts: int


class FetchPoolEventsUseCase:
    """Pulls one event kind at a time from the paginated index.

    Swaps use a timestamp cursor; mints and burns use skip offsets. The end of
    a stream is decided from the rows the index returned, so rows that fail to
    map never shorten a page. A page that keeps failing after the retry budget
    ends that stream early: the events gathered so far come back together with
    the last error instead of raising.
    """

    def __init__(self, *, events_port: PoolEventsPort, settings: FetchEventsSettings):
        if settings.page_size <= 0:
            raise PoolHistoryInputError("MAX_RECORDS_PER_QUERY must be a positive page size.")
        if settings.max_retries < 1:
            raise PoolHistoryInputError("MAX_RETRIES must allow at least one attempt per page.")
        self._events_port = events_port
        self._settings = settings

    def fetch_swaps(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
    ) -> FetchEventsResult[SwapEvent]:
        page_size = self._settings.page_size
        cursor = start_timestamp
        ids_at_cursor: list[str] = []
        seen_ids: set[str] = set()
        seen_rows: set[str] = set()
        events: list[SwapEvent] = []
        pages = 0
        duplicates = 0
        stall_skips = 0
        failed_attempts = 0
        skipped_rows = 0

        while True:
            outcome = self._request_page(
                "swaps",
                cursor,
                lambda: self._events_port.fetch_swaps_page(
                    pool_address=pool_address,
                    start_timestamp=start_timestamp,
                    end_timestamp=end_timestamp,
                    cursor_timestamp=cursor,
                    exclude_ids=tuple(ids_at_cursor),
                    page_size=page_size,
                ),
            )
            failed_attempts += outcome.failed_attempts
            if outcome.error is not None:
                return FetchEventsResult(
                    kind="swaps",
                    events=events,
                    pages=pages,
                    position=cursor,
                    error=outcome.error,
                    duplicates_dropped=duplicates,
                    stall_skips=stall_skips,
                    failed_attempts=failed_attempts,
                    skipped_rows=skipped_rows,
                )

            page = outcome.page
            pages += 1
            fresh = self._drop_seen(page.events, seen_ids)
            duplicates += len(page.events) - len(fresh)
            skipped_rows += page.skipped_rows
            events.extend(fresh)
            new_rows = [key for key in page.row_keys if key[0] not in seen_rows]
            seen_rows.update(row_id for row_id, _ in new_rows)
            logger.info(
                "fetch_pool_events: swaps_page page=%s fetched=%s new=%s skipped=%s cursor=%s total=%s",
                pages,
                page.row_count,
                len(fresh),
                page.skipped_rows,
                cursor,
                len(events),
            )

            if page.row_count < page_size:
                break

            last_timestamp = page.last_row_timestamp
            if not new_rows or last_timestamp is None:
                logger.warning(
                    "fetch_pool_events: swaps_stall_guard cursor=%s page_size=%s advancing_to=%s",
                    cursor,
                    page_size,
                    cursor + 1,
                )
                cursor += 1
                ids_at_cursor = []
                stall_skips += 1
            elif last_timestamp == cursor:
                ids_at_cursor.extend(row_id for row_id, _ in new_rows)
            else:
                cursor = last_timestamp
                ids_at_cursor = [row_id for row_id, timestamp in page.row_keys if timestamp == last_timestamp]
            self._pause_between_pages()

        logger.info(
            "fetch_pool_events: swaps_done total=%s pages=%s duplicates=%s stall_skips=%s skipped_rows=%s",
            len(events),
            pages,
            duplicates,
            stall_skips,
            skipped_rows,
        )
        return FetchEventsResult(
            kind="swaps",
            events=events,
            pages=pages,
            position=cursor,
            duplicates_dropped=duplicates,
            stall_skips=stall_skips,
            failed_attempts=failed_attempts,
            skipped_rows=skipped_rows,
        )

    def fetch_mints(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
    ) -> FetchEventsResult[MintEvent]:
        return self._fetch_with_offset(
            "mints",
            lambda skip: self._events_port.fetch_mints_page(
                pool_address=pool_address,
                start_timestamp=start_timestamp,
                end_timestamp=end_timestamp,
                skip=skip,
                page_size=self._settings.page_size,
            ),
        )

    def fetch_burns(
        self,
        *,
        pool_address: str,
        start_timestamp: int,
        end_timestamp: int,
    ) -> FetchEventsResult[BurnEvent]:
        return self._fetch_with_offset(
            "burns",
            lambda skip: self._events_port.fetch_burns_page(
                pool_address=pool_address,
                start_timestamp=start_timestamp,
                end_timestamp=end_timestamp,
                skip=skip,
                page_size=self._settings.page_size,
            ),
        )

    def _fetch_with_offset(
        self,
        kind: str,
        fetch_page: Callable[[int], EventsPage[EventT]],
    ) -> FetchEventsResult[EventT]:
        page_size = self._settings.page_size
        skip = 0
        seen_ids: set[str] = set()
        events: list[EventT] = []
        pages = 0
        duplicates = 0
        failed_attempts = 0
        skipped_rows = 0

        while True:
            outcome = self._request_page(kind, skip, lambda: fetch_page(skip))
            failed_attempts += outcome.failed_attempts
            if outcome.error is not None:
                return FetchEventsResult(
                    kind=kind,
                    events=events,
                    pages=pages,
                    position=skip,
                    error=outcome.error,
                    duplicates_dropped=duplicates,
                    failed_attempts=failed_attempts,
                    skipped_rows=skipped_rows,
                )

            page = outcome.page
            pages += 1
            fresh = self._drop_seen(page.events, seen_ids)
            duplicates += len(page.events) - len(fresh)
            skipped_rows += page.skipped_rows
            events.extend(fresh)
            logger.info(
                "fetch_pool_events: %s_page page=%s fetched=%s skipped=%s skip=%s total=%s",
                kind,
                pages,
                page.row_count,
                page.skipped_rows,
                skip,
                len(events),
            )

            if page.row_count < page_size:
                break
            skip += page_size
            self._pause_between_pages()

        logger.info(
            "fetch_pool_events: %s_done total=%s pages=%s duplicates=%s skipped_rows=%s",
            kind,
            len(events),
            pages,
            duplicates,
            skipped_rows,
        )
        return FetchEventsResult(
            kind=kind,
            events=events,
            pages=pages,
            position=skip,
            duplicates_dropped=duplicates,
            failed_attempts=failed_attempts,
            skipped_rows=skipped_rows,
        )

    def _request_page(
        self,
        kind: str,
        position: int,
        request: Callable[[], EventsPage[EventT]],
    ) -> _PageOutcome[EventT]:
        attempts = self._settings.max_retries
        delay = max(0, self._settings.retry_delay_ms) / 1000.0
        last_exc: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                return _PageOutcome(page=request(), error=None, failed_attempts=attempt - 1)
            except Exception as exc:  # noqa: BLE001
                last_exc = exc
                logger.warning(
                    "fetch_pool_events: %s_retry attempt=%s/%s position=%s error=%s",
                    kind,
                    attempt,
                    attempts,
                    position,
                    exc,
                )
                if attempt == attempts:
                    break
                time.sleep(delay)

        logger.error(
            "fetch_pool_events: %s_exhausted attempts=%s position=%s error=%s",
            kind,
            attempts,
            position,
            last_exc,
        )
        return _PageOutcome(page=None, error=last_exc, failed_attempts=attempts)

    def _pause_between_pages(self) -> None:
        delay = max(0, self._settings.batch_delay_ms) / 1000.0
        if delay > 0:
            time.sleep(delay)

    @staticmethod
    def _drop_seen(page: Sequence[EventT], seen_ids: set[str]) -> list[EventT]:
        fresh: list[EventT] = []
        for event in page:
            if event.id in seen_ids:
                continue
            seen_ids.add(event.id)
            fresh.append(event)
        if len(fresh) != len(page):
            logger.warning(
                "fetch_pool_events: duplicates_dropped count=%s",
                len(page) - len(fresh),
            )
        return fresh

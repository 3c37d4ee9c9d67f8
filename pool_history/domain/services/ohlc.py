from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from pool_history.domain.entities.pool_events import SwapEvent
from pool_history.domain.entities.pool_history import OhlcBucket
from pool_history.domain.services.univ3_math import sqrt_price_x96_to_price


def bucket_start(timestamp: int, bucket_width: int) -> int:
    if bucket_width <= 0:
        raise ValueError("bucket_width must be positive.")
    return (timestamp // bucket_width) * bucket_width


class OhlcBucketBuilder:
    """Folds a timestamp-ordered price stream into closed OHLC buckets.

    Only one bucket is open at a time. A price whose bucket start differs from
    the open bucket closes it; ``finish`` closes the last one. Buckets without
    prices never exist, so gaps in trading stay gaps in the output.
    """

    def __init__(self, bucket_width: int):
        if bucket_width <= 0:
            raise ValueError("bucket_width must be positive.")
        self._bucket_width = bucket_width
        self._current_start: int | None = None
        self._prices: list[Decimal] = []
        self._closed: list[OhlcBucket] = []

    def add(self, timestamp: int, price: Decimal) -> OhlcBucket | None:
        start = bucket_start(timestamp, self._bucket_width)
        closed: OhlcBucket | None = None
        if self._current_start is not None and start != self._current_start:
            closed = self._close()
        if self._current_start is None:
            self._current_start = start
        self._prices.append(price)
        return closed

    def finish(self) -> list[OhlcBucket]:
        if self._current_start is not None:
            self._close()
        return list(self._closed)

    def _close(self) -> OhlcBucket:
        bucket = OhlcBucket(
            timestamp=self._current_start,
            open=self._prices[0],
            high=max(self._prices),
            low=min(self._prices),
            close=self._prices[-1],
        )
        self._closed.append(bucket)
        self._current_start = None
        self._prices = []
        return bucket


def build_ohlc_buckets(
    swaps: Iterable[SwapEvent],
    *,
    bucket_width: int,
    token0_decimals: int,
    token1_decimals: int,
) -> list[OhlcBucket]:
    builder = OhlcBucketBuilder(bucket_width)
    for swap in swaps:
        price = sqrt_price_x96_to_price(swap.sqrt_price_x96, token0_decimals, token1_decimals)
        builder.add(swap.timestamp, price)
    return builder.finish()

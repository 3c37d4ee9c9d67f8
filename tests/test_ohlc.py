from __future__ import annotations

from decimal import Decimal

import pytest

from pool_history.domain.entities.pool_events import SwapEvent
from pool_history.domain.entities.pool_history import OhlcBucket
from pool_history.domain.services.ohlc import OhlcBucketBuilder, bucket_start, build_ohlc_buckets
from pool_history.domain.services.univ3_math import Q96


def _swap(swap_id: str, timestamp: int, sqrt_multiple: int) -> SwapEvent:
    return SwapEvent(
        id=swap_id,
        timestamp=timestamp,
        sqrt_price_x96=sqrt_multiple * Q96,
        tick=0,
        amount0=Decimal("1"),
        amount1=Decimal("-1"),
        sender="0xsender",
        recipient="0xrecipient",
    )


def test_bucket_start_is_epoch_aligned():
    assert bucket_start(0, 3600) == 0
    assert bucket_start(3599, 3600) == 0
    assert bucket_start(3600, 3600) == 3600
    assert bucket_start(1672531201, 3600) == 1672531200
    with pytest.raises(ValueError):
        bucket_start(10, 0)


def test_three_trades_in_one_bucket():
    builder = OhlcBucketBuilder(3600)
    builder.add(100, Decimal("1000"))
    builder.add(1800, Decimal("1050"))
    builder.add(3500, Decimal("980"))

    assert builder.finish() == [
        OhlcBucket(
            timestamp=0,
            open=Decimal("1000"),
            high=Decimal("1050"),
            low=Decimal("980"),
            close=Decimal("980"),
        )
    ]


def test_add_returns_bucket_closed_by_later_trade():
    builder = OhlcBucketBuilder(60)
    assert builder.add(5, Decimal("1")) is None
    closed = builder.add(61, Decimal("2"))

    assert closed == OhlcBucket(timestamp=0, open=Decimal("1"), high=Decimal("1"), low=Decimal("1"), close=Decimal("1"))
    assert [bucket.timestamp for bucket in builder.finish()] == [0, 60]


def test_empty_buckets_produce_no_rows():
    builder = OhlcBucketBuilder(3600)
    builder.add(100, Decimal("1"))
    builder.add(7300, Decimal("2"))
    builder.add(18000, Decimal("3"))

    buckets = builder.finish()
    assert [bucket.timestamp for bucket in buckets] == [0, 7200, 18000]
    assert len(buckets) < (18000 + 3600) // 3600


def test_no_trades_no_buckets():
    assert OhlcBucketBuilder(3600).finish() == []
    assert build_ohlc_buckets([], bucket_width=3600, token0_decimals=6, token1_decimals=18) == []


def test_build_ohlc_buckets_decodes_sqrt_prices():
    swaps = [
        _swap("a", 10, 2),
        _swap("b", 20, 3),
        _swap("c", 30, 1),
        _swap("d", 40, 2),
        _swap("e", 4000, 1),
    ]

    buckets = build_ohlc_buckets(swaps, bucket_width=3600, token0_decimals=0, token1_decimals=0)

    assert buckets == [
        OhlcBucket(timestamp=0, open=Decimal(4), high=Decimal(9), low=Decimal(1), close=Decimal(4)),
        OhlcBucket(timestamp=3600, open=Decimal(1), high=Decimal(1), low=Decimal(1), close=Decimal(1)),
    ]


def test_every_bucket_respects_ohlc_bounds():
    prices = [3, 1, 4, 1, 5, 9, 2, 6, 5, 3, 5, 8, 9, 7, 9]
    swaps = [_swap(f"s{idx}", idx * 1000, price) for idx, price in enumerate(prices)]

    buckets = build_ohlc_buckets(swaps, bucket_width=3600, token0_decimals=0, token1_decimals=0)

    assert buckets
    for bucket in buckets:
        assert bucket.low <= bucket.open <= bucket.high
        assert bucket.low <= bucket.close <= bucket.high

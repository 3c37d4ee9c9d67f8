from __future__ import annotations

import logging
from collections.abc import Sequence

from pool_history.domain.entities.pool_events import BurnEvent, LiquidityEvent, MintEvent
from pool_history.domain.entities.pool_history import (
    LiquidityMetric,
    OhlcBucket,
    PoolHistoryRecord,
)
from pool_history.domain.exceptions import HistoryAlignmentError
from pool_history.domain.services.tick_liquidity_ledger import TickLiquidityLedger
from pool_history.domain.services.univ3_math import price_to_tick, ratio_from_liquidity


logger = logging.getLogger(__name__)


def order_liquidity_events(
    mints: Sequence[MintEvent],
    burns: Sequence[BurnEvent],
) -> list[LiquidityEvent]:
    # sorted() is stable: mints stay ahead of burns sharing a timestamp.
    return sorted([*mints, *burns], key=lambda event: event.timestamp)


def build_liquidity_metrics(
    buckets: Sequence[OhlcBucket],
    mints: Sequence[MintEvent],
    burns: Sequence[BurnEvent],
    *,
    bucket_width: int,
    token0_decimals: int,
    token1_decimals: int,
    tick_spacing: int,
    ledger: TickLiquidityLedger | None = None,
) -> list[LiquidityMetric]:
    """Replay liquidity changes bucket by bucket and measure the traded range.

    Before each bucket is measured every event with a timestamp before the
    bucket end is applied to the ledger, in timestamp order.
    """
    if not buckets:
        return []
    ledger = ledger if ledger is not None else TickLiquidityLedger()
    events = order_liquidity_events(mints, burns)
    cursor = 0

    metrics: list[LiquidityMetric] = []
    for bucket in buckets:
        bucket_end = bucket.timestamp + bucket_width
        while cursor < len(events) and events[cursor].timestamp < bucket_end:
            ledger.apply_event(events[cursor])
            cursor += 1

        total = ledger.total_liquidity
        if bucket.low <= 0 or bucket.high <= 0:
            logger.warning(
                "pool_history: non_positive_price bucket=%s low=%s high=%s",
                bucket.timestamp,
                bucket.low,
                bucket.high,
            )
            active = 0
        else:
            low_tick = price_to_tick(bucket.low, token0_decimals, token1_decimals, tick_spacing)
            high_tick = price_to_tick(bucket.high, token0_decimals, token1_decimals, tick_spacing)
            # Sum over every tick of [low_tick, high_tick): the ratio below
            # exceeds 1 once the traded range spans more than one tick.
            active = ledger.active_liquidity(low_tick, high_tick)

        metrics.append(
            LiquidityMetric(
                timestamp=bucket.timestamp,
                active_liquidity_in_range=active,
                total_liquidity_in_pool=total,
                ratio=ratio_from_liquidity(active, total),
            )
        )

    if ledger.clamped_withdrawals:
        logger.warning(
            "pool_history: clamped_withdrawals count=%s (liquidity established before the range start)",
            ledger.clamped_withdrawals,
        )
    return metrics


def merge_pool_history(
    buckets: Sequence[OhlcBucket],
    metrics: Sequence[LiquidityMetric],
    *,
    strict_alignment: bool = False,
) -> list[PoolHistoryRecord]:
    if len(buckets) != len(metrics):
        raise HistoryAlignmentError(
            "Mismatch between OHLC records and liquidity records length. "
            f"OHLC: {len(buckets)}, Liquidity: {len(metrics)}."
        )

    records: list[PoolHistoryRecord] = []
    for idx, (bucket, metric) in enumerate(zip(buckets, metrics)):
        if bucket.timestamp != metric.timestamp:
            if strict_alignment:
                raise HistoryAlignmentError(
                    f"Timestamp mismatch at index {idx}: OHLC ts {bucket.timestamp}, "
                    f"metric ts {metric.timestamp}."
                )
            logger.warning(
                "pool_history: timestamp_mismatch index=%s ohlc_ts=%s metric_ts=%s using=ohlc_ts",
                idx,
                bucket.timestamp,
                metric.timestamp,
            )
        records.append(
            PoolHistoryRecord(
                timestamp=bucket.timestamp,
                open=bucket.open,
                high=bucket.high,
                low=bucket.low,
                close=bucket.close,
                active_liquidity_in_range=metric.active_liquidity_in_range,
                total_liquidity_in_pool=metric.total_liquidity_in_pool,
                liquidity_ratio=metric.ratio,
            )
        )
    return records


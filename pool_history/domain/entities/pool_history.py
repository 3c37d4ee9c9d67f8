from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class OhlcBucket:
    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal


@dataclass(frozen=True)
class LiquidityMetric:
    timestamp: int
    active_liquidity_in_range: int
    total_liquidity_in_pool: int
    ratio: Decimal


@dataclass(frozen=True)
class PoolHistoryRecord:
    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    active_liquidity_in_range: int
    total_liquidity_in_pool: int
    liquidity_ratio: Decimal

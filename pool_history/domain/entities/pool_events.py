from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


MIN_TICK = -887272
MAX_TICK = 887272


def _validate_tick_range(tick_lower: int, tick_upper: int) -> None:
    if tick_lower >= tick_upper:
        raise ValueError(f"tick_lower must be < tick_upper (got {tick_lower} >= {tick_upper}).")
    if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
        raise ValueError(f"tick range [{tick_lower}, {tick_upper}) outside [{MIN_TICK}, {MAX_TICK}].")


@dataclass(frozen=True)
class SwapEvent:
    id: str
    timestamp: int
    sqrt_price_x96: int
    tick: int
    amount0: Decimal
    amount1: Decimal
    sender: str
    recipient: str
    token0: str | None = None
    token1: str | None = None

    def __post_init__(self) -> None:
        if self.sqrt_price_x96 < 0:
            raise ValueError("sqrt_price_x96 must be non-negative.")


@dataclass(frozen=True)
class MintEvent:
    id: str
    timestamp: int
    amount: int
    tick_lower: int
    tick_upper: int
    owner: str
    origin: str
    sender: str | None = None
    amount0: Decimal | None = None
    amount1: Decimal | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("mint amount must be non-negative.")
        _validate_tick_range(self.tick_lower, self.tick_upper)


@dataclass(frozen=True)
class BurnEvent:
    id: str
    timestamp: int
    amount: int
    tick_lower: int
    tick_upper: int
    owner: str
    origin: str
    amount0: Decimal | None = None
    amount1: Decimal | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("burn amount must be non-negative.")
        _validate_tick_range(self.tick_lower, self.tick_upper)


LiquidityEvent = MintEvent | BurnEvent
PoolEvent = SwapEvent | MintEvent | BurnEvent

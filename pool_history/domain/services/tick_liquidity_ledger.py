from __future__ import annotations

from bisect import bisect_left, bisect_right
import logging

from pool_history.domain.entities.pool_events import (
    MAX_TICK,
    MIN_TICK,
    BurnEvent,
    LiquidityEvent,
    MintEvent,
)


logger = logging.getLogger(__name__)


class TickLiquidityLedger:
    """Liquidity per discrete tick plus the pool total, replayed forward in time.

    Per-tick accumulators are kept as piecewise-constant segments:
    ``_values[i]`` holds the liquidity of every tick in
    ``[_boundaries[i], _boundaries[i + 1])``. Deposits and withdrawals only
    split the segments at their own bounds, so the cost of an update or a
    range query depends on the number of distinct position bounds and not on
    how many ticks the range spans. Since all ticks of a segment share a
    value, clamping a withdrawal at zero per segment is the same as clamping
    it per tick.

    The ledger never sorts; events must be applied in timestamp order.
    """

    def __init__(self) -> None:
        self._boundaries: list[int] = [MIN_TICK, MAX_TICK + 1]
        self._values: list[int] = [0, 0]
        self._total = 0
        self.clamped_withdrawals = 0

    @property
    def total_liquidity(self) -> int:
        return self._total

    def apply_event(self, event: LiquidityEvent) -> None:
        if isinstance(event, MintEvent):
            self.apply_deposit(event.tick_lower, event.tick_upper, event.amount)
        elif isinstance(event, BurnEvent):
            self.apply_withdraw(event.tick_lower, event.tick_upper, event.amount)
        else:
            raise TypeError(f"Unsupported liquidity event: {type(event).__name__}")

    def apply_deposit(self, tick_lower: int, tick_upper: int, amount: int) -> None:
        self._validate(tick_lower, tick_upper, amount)
        self._total += amount
        start, stop = self._split_range(tick_lower, tick_upper)
        for idx in range(start, stop):
            self._values[idx] += amount

    def apply_withdraw(self, tick_lower: int, tick_upper: int, amount: int) -> None:
        self._validate(tick_lower, tick_upper, amount)
        clamped = self._total < amount
        self._total = max(0, self._total - amount)
        start, stop = self._split_range(tick_lower, tick_upper)
        for idx in range(start, stop):
            remaining = self._values[idx] - amount
            if remaining < 0:
                clamped = True
                remaining = 0
            self._values[idx] = remaining
        if clamped:
            self.clamped_withdrawals += 1
            logger.debug(
                "tick_liquidity_ledger: withdraw_clamped tick_lower=%s tick_upper=%s amount=%s",
                tick_lower,
                tick_upper,
                amount,
            )

    def liquidity_at(self, tick: int) -> int:
        if tick < MIN_TICK or tick > MAX_TICK:
            return 0
        return self._values[bisect_right(self._boundaries, tick) - 1]

    def active_liquidity(self, low_tick: int, high_tick: int) -> int:
        """Sum of per-tick liquidity over ``[min(low, high), max(low, high))``."""
        lower = max(min(low_tick, high_tick), MIN_TICK)
        upper = min(max(low_tick, high_tick), MAX_TICK + 1)
        if lower >= upper:
            return 0

        total = 0
        idx = bisect_right(self._boundaries, lower) - 1
        last = len(self._boundaries) - 1
        while idx < last and self._boundaries[idx] < upper:
            segment_start = max(self._boundaries[idx], lower)
            segment_end = min(self._boundaries[idx + 1], upper)
            total += self._values[idx] * (segment_end - segment_start)
            idx += 1
        return total

    def tick_weighted_sum(self) -> int:
        """Sum over every tick of its accumulator."""
        return sum(
            self._values[idx] * (self._boundaries[idx + 1] - self._boundaries[idx])
            for idx in range(len(self._boundaries) - 1)
        )

    def _split_range(self, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        start = self._split_at(tick_lower)
        stop = self._split_at(tick_upper)
        return start, stop

    def _split_at(self, tick: int) -> int:
        idx = bisect_left(self._boundaries, tick)
        if idx < len(self._boundaries) and self._boundaries[idx] == tick:
            return idx
        self._boundaries.insert(idx, tick)
        self._values.insert(idx, self._values[idx - 1])
        return idx

    @staticmethod
    def _validate(tick_lower: int, tick_upper: int, amount: int) -> None:
        if tick_lower >= tick_upper:
            raise ValueError("tick_lower must be < tick_upper.")
        if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
            raise ValueError("tick range outside valid tick bounds.")
        if amount < 0:
            raise ValueError("liquidity amount must be non-negative.")

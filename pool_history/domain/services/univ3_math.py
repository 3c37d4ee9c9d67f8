from __future__ import annotations

import logging
import math
from decimal import Decimal, InvalidOperation

from pool_history.domain.exceptions import UnsupportedFeeTierError


logger = logging.getLogger(__name__)


Q96 = 2**96
Q192 = 2**192
PRICE_SCALE_DECIMALS = 18
PRICE_SCALE = 10**PRICE_SCALE_DECIMALS
SQRT_TICK_LOG_BASE = math.log(math.sqrt(1.0001))

FEE_TIER_TO_TICK_SPACING = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}


def parse_big_int(value: int | str | Decimal | None) -> int:
    if value is None:
        raise ValueError("Missing integer value.")
    if isinstance(value, bool):
        raise ValueError("Unsupported integer value type.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValueError("Empty integer string.")
        try:
            return int(raw)
        except ValueError:
            try:
                parsed = Decimal(raw)
            except InvalidOperation:
                raise ValueError(f"Invalid integer string: {raw!r}.") from None
            if not parsed.is_finite() or parsed != parsed.to_integral_value():
                raise ValueError(f"Integer string must be integral: {raw!r}.") from None
            return int(parsed)
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise ValueError("Decimal integer value must be integral.")
        return int(value)
    raise ValueError("Unsupported integer value type.")


def scaled_to_decimal(scaled: int, decimals: int = PRICE_SCALE_DECIMALS) -> Decimal:
    return Decimal(scaled).scaleb(-decimals)


def sqrt_price_x96_to_price(
    sqrt_price_x96: int,
    token0_decimals: int,
    token1_decimals: int,
) -> Decimal:
    """Token1 per token0 in human units, from the Q64.96 square root price.

    The division runs on integers scaled by 10**18 and only the final result
    becomes a Decimal, so no precision is lost to floating point.
    """
    if sqrt_price_x96 < 0:
        raise ValueError("Invalid sqrt_price_x96.")
    numerator = sqrt_price_x96 * sqrt_price_x96 * 10**token0_decimals
    denominator = Q192 * 10**token1_decimals
    if denominator == 0:
        logger.warning(
            "univ3_math: zero_denominator sqrt_price_x96=%s token0_decimals=%s token1_decimals=%s",
            sqrt_price_x96,
            token0_decimals,
            token1_decimals,
        )
        return Decimal("0")
    return scaled_to_decimal((numerator * PRICE_SCALE) // denominator)


def tick_spacing_for_fee(fee: int) -> int:
    spacing = FEE_TIER_TO_TICK_SPACING.get(fee)
    if spacing is None:
        supported = ", ".join(str(tier) for tier in FEE_TIER_TO_TICK_SPACING)
        raise UnsupportedFeeTierError(
            f"Unknown fee: {fee}, cannot determine tick spacing. Supported fees are {supported}."
        )
    return spacing


def price_to_tick(
    price: Decimal,
    token0_decimals: int,
    token1_decimals: int,
    tick_spacing: int,
) -> int:
    if price <= 0:
        raise ValueError("price must be positive.")
    if tick_spacing <= 0:
        raise ValueError("tick_spacing must be positive.")
    effective_price = price * (Decimal(10) ** (token1_decimals - token0_decimals))
    raw_tick = float(effective_price.ln()) / SQRT_TICK_LOG_BASE
    # Nearest multiple of the spacing, ties towards +inf.
    return math.floor(raw_tick / tick_spacing + 0.5) * tick_spacing


def ratio_from_liquidity(active: int, total: int) -> Decimal:
    if total == 0 or active == 0:
        return Decimal("0")
    return scaled_to_decimal((active * PRICE_SCALE) // total)

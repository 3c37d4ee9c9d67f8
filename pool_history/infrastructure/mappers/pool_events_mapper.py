from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from pool_history.domain.entities.pool_events import BurnEvent, MintEvent, SwapEvent
from pool_history.domain.services.univ3_math import parse_big_int


def _decimal_or_none(value: Any) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def _token_id(value: Any) -> str | None:
    if isinstance(value, Mapping):
        token = value.get("id")
        return str(token) if token is not None else None
    return str(value) if value is not None else None


def map_row_to_swap_event(row: Mapping[str, Any]) -> SwapEvent:
    return SwapEvent(
        id=str(row["id"]),
        timestamp=parse_big_int(row["timestamp"]),
        sqrt_price_x96=parse_big_int(row["sqrtPriceX96"]),
        tick=parse_big_int(row["tick"]),
        amount0=Decimal(str(row["amount0"])),
        amount1=Decimal(str(row["amount1"])),
        sender=str(row.get("sender") or ""),
        recipient=str(row.get("recipient") or ""),
        token0=_token_id(row.get("token0")),
        token1=_token_id(row.get("token1")),
    )


def map_row_to_mint_event(row: Mapping[str, Any]) -> MintEvent:
    return MintEvent(
        id=str(row["id"]),
        timestamp=parse_big_int(row["timestamp"]),
        amount=parse_big_int(row["amount"]),
        tick_lower=parse_big_int(row["tickLower"]),
        tick_upper=parse_big_int(row["tickUpper"]),
        owner=str(row.get("owner") or ""),
        origin=str(row.get("origin") or ""),
        sender=str(row["sender"]) if row.get("sender") is not None else None,
        amount0=_decimal_or_none(row.get("amount0")),
        amount1=_decimal_or_none(row.get("amount1")),
    )


def map_row_to_burn_event(row: Mapping[str, Any]) -> BurnEvent:
    return BurnEvent(
        id=str(row["id"]),
        timestamp=parse_big_int(row["timestamp"]),
        amount=parse_big_int(row["amount"]),
        tick_lower=parse_big_int(row["tickLower"]),
        tick_upper=parse_big_int(row["tickUpper"]),
        owner=str(row.get("owner") or ""),
        origin=str(row.get("origin") or ""),
        amount0=_decimal_or_none(row.get("amount0")),
        amount1=_decimal_or_none(row.get("amount1")),
    )

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PoolMetadata:
    pool_address: str
    token0_address: str
    token1_address: str
    fee: int
    token0_decimals: int
    token1_decimals: int

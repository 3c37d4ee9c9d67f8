from __future__ import annotations

import csv
from collections.abc import Sequence
from decimal import Decimal
from pathlib import Path

from pool_history.domain.entities.pool_history import PoolHistoryRecord


CSV_HEADER = [
    "Time",
    "Open",
    "High",
    "Low",
    "Close",
    "ActiveLiquidityInRange",
    "TotalLiquidityInPool",
    "LiquidityRatio_ActiveInRange_vs_TotalInPool",
]


def format_decimal(value: Decimal) -> str:
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def record_to_csv_row(record: PoolHistoryRecord) -> list[str]:
    return [
        str(record.timestamp),
        format_decimal(record.open),
        format_decimal(record.high),
        format_decimal(record.low),
        format_decimal(record.close),
        str(record.active_liquidity_in_range),
        str(record.total_liquidity_in_pool),
        format_decimal(record.liquidity_ratio),
    ]


class CsvPoolHistoryWriter:
    def __init__(self, path: str | Path):
        self._path = Path(path)

    def write(self, records: Sequence[PoolHistoryRecord]) -> str:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(CSV_HEADER)
            for record in records:
                writer.writerow(record_to_csv_row(record))
        return str(self._path)

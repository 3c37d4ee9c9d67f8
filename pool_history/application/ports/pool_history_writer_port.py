from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from pool_history.domain.entities.pool_history import PoolHistoryRecord


class PoolHistoryWriterPort(Protocol):
    def write(self, records: Sequence[PoolHistoryRecord]) -> str:
        ...

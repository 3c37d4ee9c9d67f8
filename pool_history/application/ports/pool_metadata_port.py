from __future__ import annotations

from typing import Protocol

from pool_history.domain.entities.pool import PoolMetadata


class PoolMetadataPort(Protocol):
    def get_pool_metadata(self, *, pool_address: str) -> PoolMetadata:
        ...

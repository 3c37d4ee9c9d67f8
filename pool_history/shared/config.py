from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


DEFAULT_POOL_ADDRESS = "0x8ad599c3a0ff1de082011efddc58f1908eb6e6d8"
DEFAULT_SUBGRAPH_ID = "5zvR82QoaXYFyDEKLZ9t6v9adgnptxYpKpSbxtgVENFV"


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _int_or_none(name: str) -> int | None:
    value = (_env(name) or "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a Unix timestamp in seconds (got {value!r}).") from exc


def _bool(name: str, default: bool = False) -> bool:
    value = _env(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    rpc_timeout_seconds: float
    pool_address: str
    start_timestamp: int | None
    end_timestamp: int | None
    graph_api_key: str
    graph_gateway_base: str
    graph_subgraph_id: str
    graph_request_timeout_seconds: float
    bucket_interval_seconds: int
    max_records_per_query: int
    max_retries: int
    retry_delay_ms: int
    batch_delay_ms: int
    output_csv_path: str
    strict_alignment: bool
    log_level: str


def get_settings() -> Settings:
    return Settings(
        rpc_url=_env("RPC_URL", "") or "",
        rpc_timeout_seconds=float(_env("RPC_TIMEOUT_SECONDS", "30")),
        pool_address=(_env("POOL_ADDRESS", DEFAULT_POOL_ADDRESS) or DEFAULT_POOL_ADDRESS).strip(),
        start_timestamp=_int_or_none("START_TIMESTAMP"),
        end_timestamp=_int_or_none("END_TIMESTAMP"),
        graph_api_key=_env("GRAPH_API_KEY", "") or "",
        graph_gateway_base=_env("GRAPH_GATEWAY_BASE", "https://gateway.thegraph.com/api"),
        graph_subgraph_id=_env("GRAPH_SUBGRAPH_ID", DEFAULT_SUBGRAPH_ID) or DEFAULT_SUBGRAPH_ID,
        graph_request_timeout_seconds=float(_env("GRAPH_REQUEST_TIMEOUT_SECONDS", "30")),
        bucket_interval_seconds=int(_env("BUCKET_INTERVAL_SECONDS", "3600")),
        max_records_per_query=int(_env("MAX_RECORDS_PER_QUERY", "100")),
        max_retries=int(_env("MAX_RETRIES", "3")),
        retry_delay_ms=int(_env("RETRY_DELAY_MS", "5000")),
        batch_delay_ms=int(_env("BATCH_DELAY_MS", "200")),
        output_csv_path=_env("OUTPUT_CSV_PATH", "historical_pool_data.csv"),
        strict_alignment=_bool("STRICT_ALIGNMENT"),
        log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from dataclasses import replace

from pool_history.application.dto.pool_events import FetchEventsSettings
from pool_history.application.dto.pool_history import BuildPoolHistoryInput
from pool_history.application.use_cases.build_pool_history import BuildPoolHistoryUseCase
from pool_history.application.use_cases.fetch_pool_events import FetchPoolEventsUseCase
from pool_history.domain.exceptions import DomainError
from pool_history.infrastructure.clients.pool_metadata_client import (
    PoolMetadataError,
    Web3PoolMetadataClient,
)
from pool_history.infrastructure.clients.univ3_subgraph_client import (
    SubgraphResolutionError,
    Univ3SubgraphClient,
    Univ3SubgraphClientSettings,
)
from pool_history.infrastructure.writers.csv_pool_history_writer import CsvPoolHistoryWriter
from pool_history.shared.config import Settings, get_settings


logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


def get_subgraph_client(settings: Settings) -> Univ3SubgraphClient:
    return Univ3SubgraphClient(
        Univ3SubgraphClientSettings(
            graph_gateway_base=settings.graph_gateway_base,
            graph_api_key=settings.graph_api_key,
            graph_subgraph_id=settings.graph_subgraph_id,
            timeout_seconds=settings.graph_request_timeout_seconds,
        )
    )


def get_metadata_client(settings: Settings) -> Web3PoolMetadataClient:
    return Web3PoolMetadataClient.from_rpc_url(
        settings.rpc_url,
        timeout_seconds=settings.rpc_timeout_seconds,
    )


def get_fetch_events_use_case(settings: Settings) -> FetchPoolEventsUseCase:
    return FetchPoolEventsUseCase(
        events_port=get_subgraph_client(settings),
        settings=FetchEventsSettings(
            page_size=settings.max_records_per_query,
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
            batch_delay_ms=settings.batch_delay_ms,
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="univ3-pool-history",
        description="Backfill hourly OHLC and in-range liquidity for a Uniswap v3 pool into a CSV file.",
    )
    parser.add_argument("--pool", help="Pool address (defaults to POOL_ADDRESS).")
    parser.add_argument("--start", type=int, help="Inclusive start, Unix seconds (defaults to START_TIMESTAMP).")
    parser.add_argument("--end", type=int, help="Exclusive end, Unix seconds (defaults to END_TIMESTAMP).")
    parser.add_argument("--bucket-seconds", type=int, help="Bucket width (defaults to BUCKET_INTERVAL_SECONDS).")
    parser.add_argument("--output", help="CSV output path (defaults to OUTPUT_CSV_PATH).")
    parser.add_argument(
        "--strict-alignment",
        action="store_true",
        default=None,
        help="Abort when an OHLC bucket and its liquidity metric disagree on the timestamp.",
    )
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "pool_address": args.pool,
        "start_timestamp": args.start,
        "end_timestamp": args.end,
        "bucket_interval_seconds": args.bucket_seconds,
        "output_csv_path": args.output,
        "strict_alignment": args.strict_alignment,
    }
    return replace(settings, **{key: value for key, value in overrides.items() if value is not None})


def run(settings: Settings) -> int:
    if settings.start_timestamp is None or settings.end_timestamp is None:
        logger.error(
            "main: missing_time_range Both START_TIMESTAMP and END_TIMESTAMP must be set "
            "as Unix timestamps in seconds (e.g. START_TIMESTAMP=1672531200)."
        )
        return EXIT_FATAL
    if settings.start_timestamp >= settings.end_timestamp:
        logger.error("main: invalid_time_range START_TIMESTAMP must be earlier than END_TIMESTAMP.")
        return EXIT_FATAL
    if not settings.rpc_url:
        logger.error("main: missing_rpc_url RPC_URL is required to read pool metadata.")
        return EXIT_FATAL

    try:
        metadata_client = get_metadata_client(settings)
        fetch_events = get_fetch_events_use_case(settings)
    except (DomainError, PoolMetadataError, SubgraphResolutionError) as exc:
        logger.error("main: invalid_configuration error=%s", exc)
        return EXIT_FATAL

    use_case = BuildPoolHistoryUseCase(
        metadata_port=metadata_client,
        fetch_events=fetch_events,
        writer_port=CsvPoolHistoryWriter(settings.output_csv_path),
    )
    metadata_client.log_pool_state(pool_address=settings.pool_address)

    try:
        result = use_case.execute(
            BuildPoolHistoryInput(
                pool_address=settings.pool_address,
                start_timestamp=settings.start_timestamp,
                end_timestamp=settings.end_timestamp,
                bucket_width=settings.bucket_interval_seconds,
                strict_alignment=settings.strict_alignment,
            )
        )
    except (DomainError, PoolMetadataError) as exc:
        logger.error("main: aborted error=%s", exc)
        return EXIT_FATAL

    if not result.complete:
        logger.warning(
            "main: partial_output records=%s location=%s reason=%s",
            len(result.records),
            result.output_location,
            result.partial_reason,
        )
        return EXIT_PARTIAL

    logger.info(
        "main: completed records=%s location=%s",
        len(result.records),
        result.output_location,
    )
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = apply_overrides(get_settings(), args)
    except ValueError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("main: invalid_configuration error=%s", exc)
        return EXIT_FATAL

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())

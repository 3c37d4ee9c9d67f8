from __future__ import annotations

import logging

from pool_history.application.dto.pool_history import BuildPoolHistoryInput, BuildPoolHistoryOutput
from pool_history.application.ports.pool_history_writer_port import PoolHistoryWriterPort
from pool_history.application.ports.pool_metadata_port import PoolMetadataPort
from pool_history.application.use_cases.fetch_pool_events import FetchPoolEventsUseCase
from pool_history.domain.exceptions import PoolHistoryInputError
from pool_history.domain.services.ohlc import build_ohlc_buckets
from pool_history.domain.services.pool_history import build_liquidity_metrics, merge_pool_history
from pool_history.domain.services.univ3_math import tick_spacing_for_fee


logger = logging.getLogger(__name__)


class BuildPoolHistoryUseCase:
    def __init__(
        self,
        *,
        metadata_port: PoolMetadataPort,
        fetch_events: FetchPoolEventsUseCase,
        writer_port: PoolHistoryWriterPort | None = None,
    ):
        self._metadata_port = metadata_port
        self._fetch_events = fetch_events
        self._writer_port = writer_port

    def execute(self, command: BuildPoolHistoryInput) -> BuildPoolHistoryOutput:
        if not command.pool_address or not command.pool_address.lower().startswith("0x"):
            raise PoolHistoryInputError("pool_address must start with 0x.")
        if command.start_timestamp < 0:
            raise PoolHistoryInputError("start_timestamp must be a non-negative Unix timestamp.")
        if command.start_timestamp >= command.end_timestamp:
            raise PoolHistoryInputError("start_timestamp must be earlier than end_timestamp.")
        if command.bucket_width <= 0:
            raise PoolHistoryInputError("bucket_width must be a positive number of seconds.")

        pool_address = command.pool_address.lower()
        metadata = self._metadata_port.get_pool_metadata(pool_address=pool_address)
        tick_spacing = tick_spacing_for_fee(metadata.fee)
        logger.info(
            "build_pool_history: pool=%s token0=%s token1=%s decimals0=%s decimals1=%s fee=%s tick_spacing=%s",
            pool_address,
            metadata.token0_address,
            metadata.token1_address,
            metadata.token0_decimals,
            metadata.token1_decimals,
            metadata.fee,
            tick_spacing,
        )

        window = {
            "pool_address": pool_address,
            "start_timestamp": command.start_timestamp,
            "end_timestamp": command.end_timestamp,
        }
        swaps = self._fetch_events.fetch_swaps(**window)
        mints = self._fetch_events.fetch_mints(**window)
        burns = self._fetch_events.fetch_burns(**window)
        logger.info(
            "build_pool_history: fetched swaps=%s mints=%s burns=%s",
            len(swaps.events),
            len(mints.events),
            len(burns.events),
        )
        skipped_rows = swaps.skipped_rows + mints.skipped_rows + burns.skipped_rows
        if skipped_rows:
            logger.warning(
                "build_pool_history: skipped_rows swaps=%s mints=%s burns=%s (rows the index served but could not be read)",
                swaps.skipped_rows,
                mints.skipped_rows,
                burns.skipped_rows,
            )
        if not swaps.events and not mints.events and not burns.events:
            logger.warning(
                "build_pool_history: no_events pool=%s start=%s end=%s (check pool activity and timestamps)",
                pool_address,
                command.start_timestamp,
                command.end_timestamp,
            )

        buckets = build_ohlc_buckets(
            swaps.events,
            bucket_width=command.bucket_width,
            token0_decimals=metadata.token0_decimals,
            token1_decimals=metadata.token1_decimals,
        )
        metrics = build_liquidity_metrics(
            buckets,
            mints.events,
            burns.events,
            bucket_width=command.bucket_width,
            token0_decimals=metadata.token0_decimals,
            token1_decimals=metadata.token1_decimals,
            tick_spacing=tick_spacing,
        )
        records = merge_pool_history(buckets, metrics, strict_alignment=command.strict_alignment)
        logger.info(
            "build_pool_history: buckets=%s metrics=%s records=%s",
            len(buckets),
            len(metrics),
            len(records),
        )

        output_location: str | None = None
        if records and self._writer_port is not None:
            output_location = self._writer_port.write(records)
            logger.info(
                "build_pool_history: written records=%s location=%s",
                len(records),
                output_location,
            )
        elif not records:
            logger.info("build_pool_history: nothing_to_write (no swaps in range)")

        result = BuildPoolHistoryOutput(
            records=records,
            metadata=metadata,
            tick_spacing=tick_spacing,
            swaps=swaps,
            mints=mints,
            burns=burns,
            output_location=output_location,
        )
        if not result.complete:
            logger.warning("build_pool_history: partial_result reason=%s", result.partial_reason)
        return result

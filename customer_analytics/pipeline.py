"""End-to-end run: two input files in, one analytics snapshot out."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from pathlib import Path

import structlog

from customer_analytics.config import EngineSettings
from customer_analytics.ingest import load_raw_tables
from customer_analytics.snapshot import AnalyticsSnapshot, build_snapshot_from_rows

logger = structlog.get_logger(__name__)


async def run_pipeline(
    customers_path: Path | str,
    transactions_path: Path | str,
    as_of: datetime | None = None,
    settings: EngineSettings | None = None,
) -> AnalyticsSnapshot:
    """Load both inputs concurrently, then normalize and analyze them.

    Any ``InputShapeError`` from loading aborts the run before a snapshot
    exists. Once both tables are loaded the remaining steps cannot fail on
    data content.
    """
    settings = settings or EngineSettings()
    started = time.perf_counter()

    customer_rows, transaction_rows = await load_raw_tables(
        customers_path, transactions_path, max_bytes=settings.max_input_bytes
    )
    snapshot = build_snapshot_from_rows(
        customer_rows,
        transaction_rows,
        as_of=as_of,
        top_customers_limit=settings.top_customers_limit,
        recommendation_limit=settings.recommendation_limit,
    )

    logger.info(
        "pipeline_completed",
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
        customers=len(snapshot.customers),
        transactions=len(snapshot.transactions),
    )
    return snapshot


def load_snapshot(
    customers_path: Path | str,
    transactions_path: Path | str,
    as_of: datetime | None = None,
    settings: EngineSettings | None = None,
) -> AnalyticsSnapshot:
    """Synchronous wrapper around :func:`run_pipeline`."""
    return asyncio.run(
        run_pipeline(customers_path, transactions_path, as_of=as_of, settings=settings)
    )

"""Command line entry points for the customer analytics engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from customer_analytics.config import EngineSettings
from customer_analytics.foundation.rfm import Segment
from customer_analytics.ingest import InputShapeError
from customer_analytics.logging_config import configure_logging
from customer_analytics.pipeline import load_snapshot
from customer_analytics.predictions.client import (
    PredictionClient,
    PredictionRequest,
    PredictionServiceError,
)
from customer_analytics.snapshot import snapshot_to_dict
from customer_analytics.views import ALL, FilterCriteria, apply_filters

logger = logging.getLogger(__name__)


def _parse_as_of(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _write_json(payload: dict[str, object], output: Path | None) -> None:
    if output:
        output_path = output.resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
        logger.info(f"Wrote report to {output_path}")
    else:  # stdout keeps the report pipeable
        json.dump(payload, fp=sys.stdout, indent=2)
        print()


def analyze_cli(argv: list[str] | None = None) -> int:
    """Build an analytics snapshot from a customer file and a transaction file.

    The snapshot (optionally filtered by segment and customer type) is written
    as JSON: KPIs, segment counts, top customers, cohort retention, the daily
    time series and recommendations.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Score customers and build cohort, time-series and recommendation analytics"
    )
    parser.add_argument("customers", type=Path, help="Customer summary file (CSV, Excel or JSON)")
    parser.add_argument("transactions", type=Path, help="Transaction file (CSV, Excel or JSON)")
    parser.add_argument(
        "--segment",
        choices=[ALL] + [segment.value for segment in Segment],
        default=ALL,
        help="Only report customers in this segment (default: all)",
    )
    parser.add_argument(
        "--customer-type",
        default=ALL,
        help="Only report customers of this type, e.g. 'new' or 'returning' (default: all)",
    )
    parser.add_argument(
        "--as-of",
        type=str,
        help="Reference time for recency (ISO format). Defaults to now.",
    )
    parser.add_argument(
        "--include-customers",
        action="store_true",
        help="Include every scored customer in the output",
    )
    parser.add_argument("--output", type=Path, help="Write the JSON report here instead of stdout")

    args = parser.parse_args(argv)
    settings = EngineSettings.from_env()
    configure_logging(settings.log_level, json_output=settings.log_json)

    try:
        as_of = _parse_as_of(args.as_of)
    except ValueError:
        logger.error(f"Invalid --as-of value: {args.as_of}")
        return 2

    try:
        snapshot = load_snapshot(args.customers, args.transactions, as_of=as_of, settings=settings)
    except InputShapeError as exc:
        logger.error(f"Could not load input data: {exc}")
        return 1

    view = apply_filters(
        snapshot,
        FilterCriteria(segment=args.segment, customer_type=args.customer_type),
        top_customers_limit=settings.top_customers_limit,
    )
    _write_json(snapshot_to_dict(view, include_customers=args.include_customers), args.output)
    return 0


def predict_cli(argv: list[str] | None = None) -> int:
    """Ask the prediction service for one customer's churn risk.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Request churn probability and next-purchase days for a customer"
    )
    parser.add_argument("--customer-id", type=int, required=True)
    parser.add_argument("--recency-days", type=float, required=True)
    parser.add_argument("--frequency", type=float, required=True)
    parser.add_argument("--monetary", type=float, required=True)
    parser.add_argument("--avg-order-value", type=float, default=0.0)
    parser.add_argument("--total-items-sold", type=float, default=0.0)
    parser.add_argument("--attribution", default="Unknown")
    parser.add_argument("--customer-type", default="new")
    parser.add_argument("--api-url", help="Override the prediction service base URL")

    args = parser.parse_args(argv)
    settings = EngineSettings.from_env()
    if args.api_url:
        settings = settings.model_copy(update={"prediction_api_url": args.api_url})
    configure_logging(settings.log_level, json_output=settings.log_json)

    try:
        request = PredictionRequest(
            customer_id=args.customer_id,
            recency_days=args.recency_days,
            frequency=args.frequency,
            monetary=args.monetary,
            avg_order_value=args.avg_order_value,
            total_items_sold=args.total_items_sold,
            attribution=args.attribution,
            customer_type=args.customer_type,
        )
    except ValueError as exc:
        logger.error(f"Invalid customer features: {exc}")
        return 2

    try:
        result = PredictionClient(settings).predict(request)
    except PredictionServiceError as exc:
        logger.error(f"Prediction failed: {exc}")
        return 1

    _write_json(
        {
            **result.model_dump(by_alias=True),
            "risk_level": result.risk_level,
        },
        None,
    )
    return 0


def main() -> None:
    raise SystemExit(analyze_cli())


def predict_main() -> None:
    raise SystemExit(predict_cli())


if __name__ == "__main__":  # pragma: no cover
    main()

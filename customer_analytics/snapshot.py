"""Assemble the immutable analytics snapshot for one ingestion run."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

import structlog

from customer_analytics.analyses.demographics import (
    count_customer_types,
    rank_attribution_channels,
)
from customer_analytics.analyses.kpis import calculate_kpis, rank_by_propensity
from customer_analytics.analyses.recommendations import generate_recommendations
from customer_analytics.analyses.time_series import (
    TimeSeriesPoint,
    calculate_monthly_sales,
    calculate_time_series,
)
from customer_analytics.config import (
    DEFAULT_RECOMMENDATION_LIMIT,
    DEFAULT_TOP_CUSTOMERS_LIMIT,
)
from customer_analytics.foundation.cohorts import (
    CohortRetention,
    calculate_cohort_retention,
)
from customer_analytics.foundation.records import (
    CustomerSummary,
    TransactionRecord,
    normalize_customers,
    normalize_transactions,
)
from customer_analytics.foundation.rfm import ScoredCustomer, score_customers

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Every derived analytic for one run, held immutably.

    Attributes
    ----------
    customers:
        Scored customers in input order.
    transactions:
        Completed transactions in input order.
    segment_counts:
        Customers per segment label, in order of first appearance.
    top_customers:
        Highest-monetary customers, descending.
    cohort_data:
        Cohort retention matrix and average curve.
    time_series:
        Sparse daily sales / customer series.
    recommendations:
        customer_id -> ranked product names.
    as_of:
        Reference time used for recency.
    """

    customers: tuple[ScoredCustomer, ...]
    transactions: tuple[TransactionRecord, ...]
    segment_counts: Mapping[str, int]
    top_customers: tuple[ScoredCustomer, ...]
    cohort_data: CohortRetention
    time_series: tuple[TimeSeriesPoint, ...]
    recommendations: Mapping[str, tuple[str, ...]]
    as_of: datetime = field(default_factory=datetime.now)

    @property
    def customer_ids(self) -> frozenset[str]:
        return frozenset(c.customer_id for c in self.customers)


#: A filtered projection has exactly the snapshot's shape.
FilteredView = AnalyticsSnapshot


def count_segments(customers: Iterable[ScoredCustomer]) -> Mapping[str, int]:
    """Customers per segment label, as a read-only mapping."""
    counts = Counter(c.segment.value for c in customers)
    return MappingProxyType(dict(counts))


def rank_top_customers(
    customers: Sequence[ScoredCustomer], limit: int = DEFAULT_TOP_CUSTOMERS_LIMIT
) -> tuple[ScoredCustomer, ...]:
    """Top ``limit`` customers by monetary value; ties keep input order."""
    ranked = sorted(customers, key=lambda c: c.monetary, reverse=True)
    return tuple(ranked[:limit])


def freeze_recommendations(
    recommendations: Mapping[str, Sequence[str]],
) -> Mapping[str, tuple[str, ...]]:
    return MappingProxyType(
        {customer_id: tuple(products) for customer_id, products in recommendations.items()}
    )


def build_snapshot(
    customers: Sequence[CustomerSummary],
    transactions: Sequence[TransactionRecord],
    as_of: datetime | None = None,
    top_customers_limit: int = DEFAULT_TOP_CUSTOMERS_LIMIT,
    recommendation_limit: int = DEFAULT_RECOMMENDATION_LIMIT,
) -> AnalyticsSnapshot:
    """Run every engine over normalized records and assemble a snapshot.

    Parameters
    ----------
    customers:
        Normalized customer summaries.
    transactions:
        Normalized, completed transactions.
    as_of:
        Reference time for recency (defaults to now).
    top_customers_limit:
        Size of the top-by-monetary ranking.
    recommendation_limit:
        Maximum recommendations per customer.

    Returns
    -------
    AnalyticsSnapshot
        Never raises for empty inputs; every component degrades to an empty
        or zero result.
    """
    as_of = as_of or datetime.now()
    logger.info(
        "building_snapshot",
        customers=len(customers),
        transactions=len(transactions),
        as_of=as_of.isoformat(),
    )

    scored = score_customers(customers, transactions, as_of=as_of)
    cohort_data = calculate_cohort_retention(transactions)
    time_series = calculate_time_series(transactions)
    recommendations = generate_recommendations(transactions, limit=recommendation_limit)

    snapshot = AnalyticsSnapshot(
        customers=tuple(scored),
        transactions=tuple(transactions),
        segment_counts=count_segments(scored),
        top_customers=rank_top_customers(scored, top_customers_limit),
        cohort_data=cohort_data,
        time_series=tuple(time_series),
        recommendations=freeze_recommendations(recommendations),
        as_of=as_of,
    )

    logger.info(
        "snapshot_built",
        customers=len(snapshot.customers),
        segments=dict(snapshot.segment_counts),
        cohorts=len(cohort_data.cohorts),
        days=len(snapshot.time_series),
        customers_with_recommendations=sum(
            1 for products in snapshot.recommendations.values() if products
        ),
    )
    return snapshot


def build_snapshot_from_rows(
    customer_rows: Iterable[Mapping[Any, Any]],
    transaction_rows: Iterable[Mapping[Any, Any]],
    as_of: datetime | None = None,
    top_customers_limit: int = DEFAULT_TOP_CUSTOMERS_LIMIT,
    recommendation_limit: int = DEFAULT_RECOMMENDATION_LIMIT,
) -> AnalyticsSnapshot:
    """Normalize raw rows, then build the snapshot.

    ``as_of`` doubles as the processing time used for unparseable dates.
    """
    as_of = as_of or datetime.now()
    customers = normalize_customers(customer_rows)
    transactions = normalize_transactions(transaction_rows, now=as_of)
    return build_snapshot(
        customers,
        transactions,
        as_of=as_of,
        top_customers_limit=top_customers_limit,
        recommendation_limit=recommendation_limit,
    )


def snapshot_to_dict(
    snapshot: AnalyticsSnapshot, include_customers: bool = False
) -> dict[str, object]:
    """Return a JSON-serialisable representation of the snapshot.

    The full customer list is omitted unless ``include_customers`` is set;
    transactions are summarised by count only.
    """
    kpis = calculate_kpis(snapshot.customers)
    payload: dict[str, object] = {
        "as_of": snapshot.as_of.isoformat(),
        "kpis": {
            "total_customers": kpis.total_customers,
            "total_revenue": kpis.total_revenue,
            "avg_recency": kpis.avg_recency,
            "avg_frequency": kpis.avg_frequency,
            "avg_monetary": kpis.avg_monetary,
        },
        "transaction_count": len(snapshot.transactions),
        "segment_counts": dict(snapshot.segment_counts),
        "top_customers": [c.as_dict() for c in snapshot.top_customers],
        "top_by_propensity": [
            c.as_dict() for c in rank_by_propensity(snapshot.customers)
        ],
        "customer_types": dict(count_customer_types(snapshot.customers)),
        "attribution_channels": [
            {"attribution": channel, "customers": count}
            for channel, count in rank_attribution_channels(snapshot.customers)
        ],
        "cohorts": {
            "cohorts": list(snapshot.cohort_data.cohorts),
            "cohort_sizes": list(snapshot.cohort_data.cohort_sizes),
            "retention_matrix": [list(row) for row in snapshot.cohort_data.retention_matrix],
            "average_retention": list(snapshot.cohort_data.average_retention),
        },
        "time_series": [
            {"date": p.date, "sales": p.sales, "customers": p.customers}
            for p in snapshot.time_series
        ],
        "monthly_sales": [
            {"month": m.month, "sales": m.sales}
            for m in calculate_monthly_sales(snapshot.time_series)
        ],
        "recommendations": {
            customer_id: list(products)
            for customer_id, products in snapshot.recommendations.items()
        },
    }
    if include_customers:
        payload["customers"] = [c.as_dict() for c in snapshot.customers]
    return payload

"""Headline KPIs over a set of scored customers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from customer_analytics.foundation.rfm import ScoredCustomer


@dataclass(frozen=True)
class CustomerKPIs:
    """Population-level summary used by overview reports.

    Attributes
    ----------
    total_customers:
        Number of scored customers.
    total_revenue:
        Sum of monetary values.
    avg_recency:
        Mean recency in days.
    avg_frequency:
        Mean purchase count.
    avg_monetary:
        Mean monetary value (total_revenue / total_customers).
    """

    total_customers: int
    total_revenue: float
    avg_recency: float
    avg_frequency: float
    avg_monetary: float


def calculate_kpis(customers: Sequence[ScoredCustomer]) -> CustomerKPIs:
    """Summarize ``customers``; an empty population reports zeros."""
    count = len(customers)
    if count == 0:
        return CustomerKPIs(0, 0.0, 0.0, 0.0, 0.0)

    total_revenue = sum(c.monetary for c in customers)
    return CustomerKPIs(
        total_customers=count,
        total_revenue=total_revenue,
        avg_recency=sum(c.recency for c in customers) / count,
        avg_frequency=sum(c.frequency for c in customers) / count,
        avg_monetary=total_revenue / count,
    )


DEFAULT_PROPENSITY_RANKING_LIMIT = 20


def rank_by_propensity(
    customers: Sequence[ScoredCustomer], limit: int = DEFAULT_PROPENSITY_RANKING_LIMIT
) -> tuple[ScoredCustomer, ...]:
    """Top ``limit`` customers by propensity; ties keep input order."""
    if limit < 0:
        raise ValueError(f"limit cannot be negative: {limit}")
    ranked = sorted(customers, key=lambda c: c.propensity, reverse=True)
    return tuple(ranked[:limit])

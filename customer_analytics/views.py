"""Filtered projections of an analytics snapshot.

Presentation layers call :func:`apply_filters` on every filter change. The
function is pure: it reads the snapshot and returns either the snapshot
itself (no active filter) or a newly built view. Nothing is cached and the
input snapshot is never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from customer_analytics.config import DEFAULT_TOP_CUSTOMERS_LIMIT
from customer_analytics.foundation.rfm import ScoredCustomer, Segment
from customer_analytics.snapshot import (
    AnalyticsSnapshot,
    FilteredView,
    count_segments,
    freeze_recommendations,
    rank_top_customers,
)

#: Filter value that matches every customer.
ALL = "all"


def _is_active(value: str | None) -> bool:
    return value is not None and value != ALL


@dataclass(frozen=True)
class FilterCriteria:
    """Active predicates over segment and customer type.

    ``None`` or ``"all"`` disables a predicate.
    """

    segment: Segment | str | None = None
    customer_type: str | None = None

    @property
    def segment_value(self) -> str | None:
        if isinstance(self.segment, Segment):
            return self.segment.value
        return self.segment

    @property
    def is_active(self) -> bool:
        return _is_active(self.segment_value) or _is_active(self.customer_type)

    def matches(self, customer: ScoredCustomer) -> bool:
        segment = self.segment_value
        if _is_active(segment) and customer.segment.value != segment:
            return False
        if _is_active(self.customer_type) and customer.customer_type != self.customer_type:
            return False
        return True


def apply_filters(
    snapshot: AnalyticsSnapshot,
    criteria: FilterCriteria | None = None,
    top_customers_limit: int = DEFAULT_TOP_CUSTOMERS_LIMIT,
) -> FilteredView:
    """Project ``snapshot`` onto the customers matching ``criteria``.

    Segment counts, the top-customer ranking and the recommendation map are
    recomputed over the matching subset; recommendation lists are copied
    unchanged, never regenerated. Transactions, cohort data and the time
    series are not filter-sensitive and pass through.

    With no active predicate the original snapshot is returned, so resetting
    filters restores it exactly.

    Examples
    --------
    >>> view = apply_filters(snapshot, FilterCriteria(segment="Champions"))  # doctest: +SKIP
    >>> apply_filters(snapshot, FilterCriteria()) is snapshot  # doctest: +SKIP
    True
    """
    if criteria is None or not criteria.is_active:
        return snapshot

    subset = [c for c in snapshot.customers if criteria.matches(c)]
    subset_ids = {c.customer_id for c in subset}
    recommendations = {
        customer_id: products
        for customer_id, products in snapshot.recommendations.items()
        if customer_id in subset_ids
    }

    return replace(
        snapshot,
        customers=tuple(subset),
        segment_counts=count_segments(subset),
        top_customers=rank_top_customers(subset, top_customers_limit),
        recommendations=freeze_recommendations(recommendations),
    )

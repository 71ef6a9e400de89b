"""Customer-type and attribution-channel distributions."""

from __future__ import annotations

from collections import Counter
from types import MappingProxyType
from typing import Mapping, Sequence

from customer_analytics.foundation.rfm import ScoredCustomer

DEFAULT_ATTRIBUTION_LIMIT = 10


def count_customer_types(customers: Sequence[ScoredCustomer]) -> Mapping[str, int]:
    """Customers per ``customer_type``, in order of first appearance.

    >>> from customer_analytics.foundation.records import CustomerSummary
    >>> from customer_analytics.foundation.rfm import score_customers
    >>> scored = score_customers(
    ...     [CustomerSummary("A", customer_type="new"),
    ...      CustomerSummary("B", customer_type="returning"),
    ...      CustomerSummary("C", customer_type="new")], [])
    >>> dict(count_customer_types(scored))
    {'new': 2, 'returning': 1}
    """
    return MappingProxyType(dict(Counter(c.customer_type for c in customers)))


def rank_attribution_channels(
    customers: Sequence[ScoredCustomer], limit: int = DEFAULT_ATTRIBUTION_LIMIT
) -> list[tuple[str, int]]:
    """Top ``limit`` attribution channels by customer count, descending.

    Channels with equal counts keep first-appearance order.
    """
    if limit < 0:
        raise ValueError(f"limit cannot be negative: {limit}")
    counts = Counter(c.attribution for c in customers)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]

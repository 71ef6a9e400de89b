"""RFM (Recency-Frequency-Monetary) scoring and segmentation.

RFM analysis segments customers based on three dimensions:
- Recency: How recently did the customer make a completed purchase?
- Frequency: How often do they purchase?
- Monetary: How much do they spend?

Each dimension is scored 1-5 against the population's quintile breakpoints,
the three scores are combined into a fixed segment label, and a 0-100
propensity score estimates purchase likelihood.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Sequence

from customer_analytics.foundation.records import CustomerSummary, TransactionRecord

logger = logging.getLogger(__name__)

QUINTILE_POSITIONS = (0.2, 0.4, 0.6, 0.8)
MAX_PROPENSITY = 100


class Segment(str, Enum):
    """Customer segments, listed in evaluation priority order."""

    CHAMPIONS = "Champions"
    LOYAL = "Loyal"
    AT_RISK = "At Risk"
    HIBERNATING = "Hibernating"
    POTENTIAL_LOYALIST = "Potential Loyalist"


@dataclass(frozen=True)
class ScoredCustomer:
    """A customer summary together with every derived scoring field.

    Attributes
    ----------
    customer:
        The normalized source record.
    recency:
        Days since the last completed transaction, or the customer's
        lifetime days when no transaction was found.
    r_score:
        Recency score (1-5, where 5 = most recent)
    f_score:
        Frequency score (1-5, where 5 = most frequent)
    m_score:
        Monetary score (1-5, where 5 = highest spend)
    rfm_sum:
        r_score + f_score + m_score (3-15)
    segment:
        Segment label derived from the three scores
    propensity:
        Purchase-likelihood score (0-100)
    """

    customer: CustomerSummary
    recency: int
    r_score: int
    f_score: int
    m_score: int
    rfm_sum: int
    segment: Segment
    propensity: int

    def __post_init__(self) -> None:
        """Validate derived scores."""
        for score_name, score_value in [
            ("r_score", self.r_score),
            ("f_score", self.f_score),
            ("m_score", self.m_score),
        ]:
            if not 1 <= score_value <= 5:
                raise ValueError(
                    f"{score_name} must be between 1 and 5: {score_value} (customer_id={self.customer_id})"
                )
        expected_sum = self.r_score + self.f_score + self.m_score
        if self.rfm_sum != expected_sum:
            raise ValueError(
                f"rfm_sum ({self.rfm_sum}) does not match r/f/m scores ({expected_sum}) (customer_id={self.customer_id})"
            )
        if not 0 <= self.propensity <= MAX_PROPENSITY:
            raise ValueError(
                f"propensity must be between 0 and {MAX_PROPENSITY}: {self.propensity} (customer_id={self.customer_id})"
            )

    @property
    def customer_id(self) -> str:
        return self.customer.customer_id

    @property
    def frequency(self) -> float:
        return self.customer.frequency

    @property
    def monetary(self) -> float:
        return self.customer.monetary

    @property
    def customer_type(self) -> str:
        return self.customer.customer_type

    @property
    def rfm_code(self) -> str:
        """Combined score string, e.g. ``"555"`` for the best customers."""
        return f"{self.r_score}{self.f_score}{self.m_score}"

    @property
    def attribution(self) -> str:
        return self.customer.attribution

    def as_dict(self) -> dict[str, object]:
        """Flat, JSON-serialisable row: summary fields followed by scores."""
        summary = self.customer
        return {
            "customer_id": summary.customer_id,
            "frequency": summary.frequency,
            "monetary": summary.monetary,
            "avg_order_value": summary.avg_order_value,
            "customer_lifetime_days": summary.customer_lifetime_days,
            "purchase_rate": summary.purchase_rate,
            "customer_type": summary.customer_type,
            "attribution": summary.attribution,
            "total_items_sold": summary.total_items_sold,
            "recency": self.recency,
            "r_score": self.r_score,
            "f_score": self.f_score,
            "m_score": self.m_score,
            "rfm_sum": self.rfm_sum,
            "segment": self.segment.value,
            "propensity": self.propensity,
        }


def quintile_score(
    value: float, sorted_values: Sequence[float], reverse: bool = False
) -> int:
    """Score ``value`` 1-5 against the quintile breakpoints of ``sorted_values``.

    Breakpoints sit at positions ``floor(0.2n)``, ``floor(0.4n)``,
    ``floor(0.6n)`` and ``floor(0.8n)`` of the ascending sequence. The score
    starts at 1 and becomes ``i + 2`` for every breakpoint ``i`` that
    ``value`` strictly exceeds. With ``reverse=True`` the result is
    ``6 - score`` so that lower values (e.g. fewer days since purchase)
    score higher.

    Raises
    ------
    ValueError
        If ``sorted_values`` is empty.

    Examples
    --------
    >>> population = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]
    >>> quintile_score(10, population)
    5
    >>> quintile_score(1, population)
    1
    >>> quintile_score(1, population, reverse=True)
    5
    """
    n = len(sorted_values)
    if n == 0:
        raise ValueError("Cannot compute quintile score against an empty population")

    breakpoints = [sorted_values[int(n * position)] for position in QUINTILE_POSITIONS]
    score = 1
    for i, breakpoint in enumerate(breakpoints):
        if value > breakpoint:
            score = i + 2
    return 6 - score if reverse else score


def assign_segment(r_score: int, f_score: int, m_score: int) -> Segment:
    """Return the first segment whose predicate matches, in priority order."""
    if r_score >= 4 and f_score >= 4 and m_score >= 4:
        return Segment.CHAMPIONS
    if r_score >= 3 and f_score >= 3 and m_score >= 3:
        return Segment.LOYAL
    if r_score <= 2 and f_score >= 3:
        return Segment.AT_RISK
    if r_score <= 2 and f_score <= 2:
        return Segment.HIBERNATING
    return Segment.POTENTIAL_LOYALIST


def calculate_propensity(r_score: int, f_score: int, m_score: int, recency: int) -> int:
    """Composite purchase-likelihood score, rounded half-up and capped at 100.

    >>> calculate_propensity(5, 5, 5, 0)
    100
    >>> calculate_propensity(1, 1, 1, 99)
    26
    """
    raw = (
        Decimal(r_score * 10 + f_score * 8 + m_score * 7)
        + Decimal(100) / Decimal(recency + 1)
    )
    rounded = int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return min(MAX_PROPENSITY, rounded)


def latest_transaction_dates(
    transactions: Sequence[TransactionRecord],
) -> dict[str, datetime]:
    """Most recent transaction date per customer_id."""
    latest: dict[str, datetime] = {}
    for transaction in transactions:
        current = latest.get(transaction.customer_id)
        if current is None or transaction.date > current:
            latest[transaction.customer_id] = transaction.date
    return latest


def calculate_recency(
    customer: CustomerSummary, last_purchase: datetime | None, as_of: datetime
) -> int:
    """Whole days between ``last_purchase`` and ``as_of``.

    Without a purchase the customer's lifetime days are used instead.
    Transactions dated after ``as_of`` count as recency 0.
    """
    if last_purchase is None:
        days = int(customer.customer_lifetime_days // 1)
    else:
        days = (as_of - last_purchase).days
    return max(0, days)


def score_customers(
    customers: Sequence[CustomerSummary],
    transactions: Sequence[TransactionRecord],
    as_of: datetime | None = None,
) -> list[ScoredCustomer]:
    """Score every customer in one pass.

    Parameters
    ----------
    customers:
        Fully materialized customer summaries.
    transactions:
        Completed transactions; used only to derive recency.
    as_of:
        Reference time for recency. Defaults to the current time.

    Returns
    -------
    list[ScoredCustomer]
        One scored record per input customer, in input order. Empty input
        returns an empty list.

    Examples
    --------
    >>> from datetime import datetime
    >>> customers = [
    ...     CustomerSummary("A", frequency=10, monetary=1000),
    ...     CustomerSummary("B", frequency=1, monetary=10),
    ... ]
    >>> scored = score_customers(customers, [], as_of=datetime(2024, 1, 1))
    >>> [c.f_score for c in scored]
    [3, 1]
    """
    if not customers:
        return []

    as_of = as_of or datetime.now()
    last_purchase = latest_transaction_dates(transactions)

    recencies = [
        calculate_recency(customer, last_purchase.get(customer.customer_id), as_of)
        for customer in customers
    ]
    sorted_recency = sorted(recencies)
    sorted_frequency = sorted(customer.frequency for customer in customers)
    sorted_monetary = sorted(customer.monetary for customer in customers)

    scored: list[ScoredCustomer] = []
    for customer, recency in zip(customers, recencies):
        r_score = quintile_score(recency, sorted_recency, reverse=True)
        f_score = quintile_score(customer.frequency, sorted_frequency)
        m_score = quintile_score(customer.monetary, sorted_monetary)
        scored.append(
            ScoredCustomer(
                customer=customer,
                recency=recency,
                r_score=r_score,
                f_score=f_score,
                m_score=m_score,
                rfm_sum=r_score + f_score + m_score,
                segment=assign_segment(r_score, f_score, m_score),
                propensity=calculate_propensity(r_score, f_score, m_score, recency),
            )
        )

    unmatched = sum(1 for c in customers if c.customer_id not in last_purchase)
    if unmatched:
        logger.info(
            f"{unmatched}/{len(customers)} customers have no completed transaction; "
            f"recency falls back to customer_lifetime_days"
        )
    return scored

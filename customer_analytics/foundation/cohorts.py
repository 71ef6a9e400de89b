"""Acquisition cohorts and month-by-month retention.

Every customer belongs to the cohort of the calendar month of their first
completed transaction. Activity is then bucketed into twelve month offsets
measured in fixed 30-day steps from the first day of the cohort month (an
approximation of calendar months that is kept for compatibility with
existing reports).

Quick Start
-----------
>>> from datetime import datetime
>>> from customer_analytics.foundation.records import TransactionRecord
>>> txns = [
...     TransactionRecord("C1", "1", datetime(2023, 1, 5), "", 1, 10, 10),
...     TransactionRecord("C2", "2", datetime(2023, 1, 9), "", 1, 10, 10),
...     TransactionRecord("C1", "3", datetime(2023, 2, 10), "", 1, 10, 10),
... ]
>>> retention = calculate_cohort_retention(txns)
>>> retention.cohorts
('2023-01',)
>>> retention.retention_matrix[0][:2]
(100.0, 50.0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Mapping, Sequence

from customer_analytics.foundation.records import TransactionRecord

logger = logging.getLogger(__name__)

MONTH_OFFSETS = 12
DAYS_PER_COHORT_MONTH = 30


@dataclass(frozen=True)
class CohortRetention:
    """Retention matrix for all acquisition cohorts.

    Attributes
    ----------
    cohorts:
        Cohort keys (``YYYY-MM``) in ascending order.
    retention_matrix:
        One row per cohort, one column per month offset 0-11. Each cell is
        100 * (distinct customers active at the offset) / (distinct
        customers active at offset 0).
    average_retention:
        Per-offset mean across all cohort rows.
    cohort_sizes:
        Distinct month-0 customers per cohort, aligned with ``cohorts``.
    assignments:
        Mapping of customer_id to cohort key.
    """

    cohorts: tuple[str, ...] = ()
    retention_matrix: tuple[tuple[float, ...], ...] = ()
    average_retention: tuple[float, ...] = (0.0,) * MONTH_OFFSETS
    cohort_sizes: tuple[int, ...] = ()
    assignments: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if len(self.retention_matrix) != len(self.cohorts):
            raise ValueError(
                f"retention_matrix has {len(self.retention_matrix)} rows "
                f"but there are {len(self.cohorts)} cohorts"
            )
        if len(self.average_retention) != MONTH_OFFSETS:
            raise ValueError(
                f"average_retention must have {MONTH_OFFSETS} values: {len(self.average_retention)}"
            )

    def retention_for(self, cohort: str) -> tuple[float, ...]:
        """Return the retention row for ``cohort``.

        Raises
        ------
        KeyError
            If the cohort does not exist.
        """
        try:
            index = self.cohorts.index(cohort)
        except ValueError as exc:
            raise KeyError(cohort) from exc
        return self.retention_matrix[index]


def cohort_key(ts: datetime) -> str:
    """Year-month key of a timestamp, e.g. ``"2023-01"``."""
    return f"{ts.year:04d}-{ts.month:02d}"


def cohort_start(key: str) -> datetime:
    """First instant of the cohort month."""
    year, month = key.split("-")
    return datetime(int(year), int(month), 1)


def month_offset(ts: datetime, start: datetime) -> int:
    """Number of whole 30-day steps between ``start`` and ``ts`` (floored)."""
    return (ts - start) // timedelta(days=DAYS_PER_COHORT_MONTH)


def assign_first_purchase_cohorts(
    transactions: Sequence[TransactionRecord],
) -> dict[str, str]:
    """Assign each customer to the month of their earliest transaction.

    Ties on the earliest date keep the first occurrence in input order.
    """
    first_seen: dict[str, datetime] = {}
    for transaction in transactions:
        current = first_seen.get(transaction.customer_id)
        if current is None or transaction.date < current:
            first_seen[transaction.customer_id] = transaction.date
    return {customer_id: cohort_key(ts) for customer_id, ts in first_seen.items()}


def _average_retention(matrix: Sequence[Sequence[float]]) -> tuple[float, ...]:
    averages: list[float] = []
    for offset in range(MONTH_OFFSETS):
        values = [row[offset] for row in matrix if offset < len(row)]
        averages.append(sum(values) / len(values) if values else 0.0)
    return tuple(averages)


def calculate_cohort_retention(
    transactions: Sequence[TransactionRecord],
) -> CohortRetention:
    """Build the cohort retention matrix from completed transactions.

    Parameters
    ----------
    transactions:
        Completed transactions in any order.

    Returns
    -------
    CohortRetention
        Cohorts sorted ascending. Offsets outside 0-11 are ignored. A cohort
        with no month-0 activity reports 0 at every offset; cells are capped
        at 100. No transactions yields an empty matrix and an all-zero
        average curve.
    """
    assignments = assign_first_purchase_cohorts(transactions)
    cohorts = sorted(set(assignments.values()))
    activity: dict[str, list[set[str]]] = {
        cohort: [set() for _ in range(MONTH_OFFSETS)] for cohort in cohorts
    }
    starts = {cohort: cohort_start(cohort) for cohort in cohorts}

    for transaction in transactions:
        cohort = assignments[transaction.customer_id]
        offset = month_offset(transaction.date, starts[cohort])
        if 0 <= offset < MONTH_OFFSETS:
            activity[cohort][offset].add(transaction.customer_id)

    matrix: list[tuple[float, ...]] = []
    sizes: list[int] = []
    for cohort in cohorts:
        buckets = activity[cohort]
        size = len(buckets[0])
        sizes.append(size)
        if size == 0:
            logger.warning(
                f"Cohort {cohort} has no month-0 activity; retention reported as 0"
            )
            matrix.append((0.0,) * MONTH_OFFSETS)
            continue
        matrix.append(
            tuple(min(100.0, 100 * len(bucket) / size) for bucket in buckets)
        )

    return CohortRetention(
        cohorts=tuple(cohorts),
        retention_matrix=tuple(matrix),
        average_retention=_average_retention(matrix),
        cohort_sizes=tuple(sizes),
        assignments=MappingProxyType(assignments),
    )

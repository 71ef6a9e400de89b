"""Daily sales and active-customer time series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from customer_analytics.foundation.records import TransactionRecord


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Activity on one calendar day.

    Attributes
    ----------
    date:
        ISO day (``YYYY-MM-DD``).
    sales:
        Sum of net sales over the day's completed transactions.
    customers:
        Number of distinct purchasing customers that day.
    """

    date: str
    sales: float
    customers: int


def calculate_time_series(
    transactions: Sequence[TransactionRecord],
) -> list[TimeSeriesPoint]:
    """Bucket completed transactions by calendar day.

    The series is sparse: days without activity are not emitted.

    Examples
    --------
    >>> from datetime import datetime
    >>> txns = [
    ...     TransactionRecord("C1", "1", datetime(2023, 1, 2, 15), "", 1, 20, 18),
    ...     TransactionRecord("C2", "2", datetime(2023, 1, 1, 9), "", 1, 10, 10),
    ...     TransactionRecord("C1", "3", datetime(2023, 1, 2, 8), "", 1, 5, 5),
    ... ]
    >>> [(p.date, p.sales, p.customers) for p in calculate_time_series(txns)]
    [('2023-01-01', 10.0, 1), ('2023-01-02', 23.0, 1)]
    """
    sales: dict[str, float] = {}
    customers: dict[str, set[str]] = {}
    for transaction in transactions:
        day = transaction.date.date().isoformat()
        sales[day] = sales.get(day, 0.0) + transaction.net_sales
        customers.setdefault(day, set()).add(transaction.customer_id)

    return [
        TimeSeriesPoint(date=day, sales=sales[day], customers=len(customers[day]))
        for day in sorted(sales)
    ]


DEFAULT_MONTHLY_WINDOW = 12


@dataclass(frozen=True)
class MonthlySales:
    """Net sales rolled up to a calendar month (``YYYY-MM``)."""

    month: str
    sales: float


def calculate_monthly_sales(
    points: Sequence[TimeSeriesPoint], months: int = DEFAULT_MONTHLY_WINDOW
) -> list[MonthlySales]:
    """Roll the daily series up to months and keep the latest ``months``.

    >>> points = [
    ...     TimeSeriesPoint("2023-01-05", 10.0, 1),
    ...     TimeSeriesPoint("2023-01-20", 5.0, 1),
    ...     TimeSeriesPoint("2023-02-01", 7.5, 2),
    ... ]
    >>> [(m.month, m.sales) for m in calculate_monthly_sales(points)]
    [('2023-01', 15.0), ('2023-02', 7.5)]
    """
    if months < 0:
        raise ValueError(f"months cannot be negative: {months}")
    totals: dict[str, float] = {}
    for point in points:
        month = point.date[:7]
        totals[month] = totals.get(month, 0.0) + point.sales

    rollup = [MonthlySales(month=month, sales=totals[month]) for month in sorted(totals)]
    return rollup[-months:] if months else []

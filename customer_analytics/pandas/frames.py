"""Pandas DataFrame adapters for snapshot components.

Presentation layers (charts, tables, exports) work on DataFrames; these
adapters flatten the immutable snapshot records without changing them.
"""

from typing import Sequence

import pandas as pd  # type: ignore

from customer_analytics.analyses.time_series import TimeSeriesPoint
from customer_analytics.foundation.cohorts import MONTH_OFFSETS, CohortRetention
from customer_analytics.foundation.rfm import ScoredCustomer
from ._utils import empty_frame

CUSTOMER_COLUMNS = [
    "customer_id",
    "frequency",
    "monetary",
    "avg_order_value",
    "customer_lifetime_days",
    "purchase_rate",
    "customer_type",
    "attribution",
    "total_items_sold",
    "recency",
    "r_score",
    "f_score",
    "m_score",
    "rfm_sum",
    "segment",
    "propensity",
]

TIME_SERIES_COLUMNS = ["date", "sales", "customers"]


def customers_to_dataframe(customers: Sequence[ScoredCustomer]) -> pd.DataFrame:
    """Convert scored customers to a DataFrame, one row per customer.

    Args:
        customers: Scored customers, e.g. ``snapshot.customers``

    Returns:
        DataFrame with the columns in :data:`CUSTOMER_COLUMNS`, in input order

    Example:
        >>> df = customers_to_dataframe(snapshot.top_customers)  # doctest: +SKIP
        >>> df.groupby("segment")["monetary"].sum()  # doctest: +SKIP
    """
    if not customers:
        return empty_frame(CUSTOMER_COLUMNS)

    return pd.DataFrame([c.as_dict() for c in customers], columns=CUSTOMER_COLUMNS)


def retention_to_dataframe(cohort_data: CohortRetention) -> pd.DataFrame:
    """Retention matrix as a cohort x month-offset DataFrame.

    The index holds cohort keys and the columns are the integer offsets
    0-11, which is the shape heatmap widgets expect.
    """
    return pd.DataFrame(
        [list(row) for row in cohort_data.retention_matrix],
        index=pd.Index(list(cohort_data.cohorts), name="cohort"),
        columns=list(range(MONTH_OFFSETS)),
        dtype=float,
    )


def time_series_to_dataframe(points: Sequence[TimeSeriesPoint]) -> pd.DataFrame:
    """Daily series with a parsed ``date`` column, ascending."""
    if not points:
        return empty_frame(TIME_SERIES_COLUMNS)

    df = pd.DataFrame(
        [{"date": p.date, "sales": p.sales, "customers": p.customers} for p in points],
        columns=TIME_SERIES_COLUMNS,
    )
    df["date"] = pd.to_datetime(df["date"])
    return df

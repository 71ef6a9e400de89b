"""Derived analyses built on top of the normalized foundation records."""

from .demographics import count_customer_types, rank_attribution_channels
from .kpis import CustomerKPIs, calculate_kpis, rank_by_propensity
from .recommendations import generate_recommendations, parse_products
from .time_series import (
    MonthlySales,
    TimeSeriesPoint,
    calculate_monthly_sales,
    calculate_time_series,
)

__all__ = [
    "CustomerKPIs",
    "MonthlySales",
    "TimeSeriesPoint",
    "calculate_kpis",
    "calculate_monthly_sales",
    "calculate_time_series",
    "count_customer_types",
    "generate_recommendations",
    "parse_products",
    "rank_attribution_channels",
    "rank_by_propensity",
]

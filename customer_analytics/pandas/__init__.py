"""Pandas adapters for the analytics snapshot."""

from .frames import (
    customers_to_dataframe,
    retention_to_dataframe,
    time_series_to_dataframe,
)

__all__ = [
    "customers_to_dataframe",
    "retention_to_dataframe",
    "time_series_to_dataframe",
]

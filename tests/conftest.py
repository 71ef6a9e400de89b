"""Shared fixtures: a small poultry-supply store with six customers."""

from datetime import datetime

import pytest
import structlog

from customer_analytics.snapshot import build_snapshot_from_rows

AS_OF = datetime(2024, 6, 30)


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def customer_rows():
    """Raw customer rows with spreadsheet-style headers."""
    return [
        {
            "Customer ID": 1,
            "Frequency": 12,
            "Monetary": 2400.0,
            "Avg Order Value": 200.0,
            "Customer Type": "returning",
            "Attribution": "Organic: Google",
            "Total Items Sold": 40,
        },
        {"Customer ID": 2, "Frequency": 8, "Monetary": 1500.0, "Customer Type": "returning"},
        {"Customer ID": 3, "Frequency": 5, "Monetary": 600.0, "Customer Type": "new"},
        {"Customer ID": 4, "Frequency": 3, "Monetary": 300.0, "Customer Type": "new"},
        {
            "Customer ID": 5,
            "Frequency": 1,
            "Monetary": 50.0,
            "Customer Type": "new",
            "Customer Lifetime Days": 300,
        },
        {"Customer ID": 6, "Frequency": 2, "Monetary": 90.0, "Customer Type": "returning"},
    ]


@pytest.fixture
def transaction_rows():
    """Raw transaction rows; customer 5 never ordered and one order was refunded."""
    return [
        {"Customer ID": 1, "Order": "1001", "Date": "2024-01-10", "Products": "Feed×2, Vaccine", "Net Sales": 180.0, "Status": "completed"},
        {"Customer ID": 2, "Order": "1002", "Date": "2024-01-15", "Products": "Feed, Grit", "Net Sales": 95.0, "Status": "completed"},
        {"Customer ID": 3, "Order": "1003", "Date": "2024-02-03", "Products": "Hoe, Rake", "Net Sales": 60.0, "Status": "completed"},
        {"Customer ID": 4, "Order": "1004", "Date": "2024-02-20", "Products": "Feed", "Net Sales": 40.0, "Status": "completed"},
        {"Customer ID": 6, "Order": "1005", "Date": "2024-03-05", "Products": "Grit", "Net Sales": 15.0, "Status": "completed"},
        {"Customer ID": 2, "Order": "1006", "Date": "2024-05-20", "Products": "Vaccine", "Net Sales": 55.0, "Status": "completed"},
        {"Customer ID": 4, "Order": "1007", "Date": "2024-06-01", "Products": "Hoe", "Net Sales": 35.0, "Status": "refunded"},
        {"Customer ID": 1, "Order": "1008", "Date": "2024-06-25", "Products": "Feed", "Net Sales": 120.0, "Status": "completed"},
    ]


@pytest.fixture
def snapshot(customer_rows, transaction_rows, as_of):
    """Snapshot built from the fixture rows.

    Recency / RFM scores work out to:

    ==  =======  =======  ===================
    id  recency  r/f/m    segment
    ==  =======  =======  ===================
    1   5        5/5/5    Champions
    2   41       5/4/4    Champions
    3   148      2/3/3    At Risk
    4   131      3/2/2    Potential Loyalist
    5   300      1/1/1    Hibernating
    6   117      4/1/1    Potential Loyalist
    ==  =======  =======  ===================
    """
    return build_snapshot_from_rows(customer_rows, transaction_rows, as_of=as_of)

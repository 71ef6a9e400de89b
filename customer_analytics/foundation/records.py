"""Canonical record shapes and the raw-row normalizer.

Source spreadsheets arrive with arbitrary header spelling ("Customer ID",
"customer-id", "CUSTOMERID", ...). Every header is first reduced to a
canonical key by :func:`normalize_column_name`, then looked up through the
explicit alias tables below. Values that cannot be coerced never abort a run:
they fall back to the documented defaults and a warning is logged.

Quick Start
-----------
>>> from datetime import datetime
>>> rows = [{"Customer ID": 7, "Frequency": "3", "Monetary": 120.5}]
>>> customers = normalize_customers(rows)
>>> customers[0].customer_id, customers[0].frequency, customers[0].customer_type
('7', 3.0, 'unknown')
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

#: Status value that lets a transaction take part in any derived computation.
COMPLETED_STATUS = "completed"

#: Spreadsheet serial dates count days from 1899-12-30 (25569 days before 1970-01-01).
SPREADSHEET_EPOCH = datetime(1899, 12, 30)
SPREADSHEET_UNIX_OFFSET_DAYS = 25569

UNKNOWN_CUSTOMER_TYPE = "unknown"
UNKNOWN_ATTRIBUTION = "Unknown"

CUSTOMER_ID_ALIASES = ("customer_id", "customerid", "cust_id", "id")
TRANSACTION_CUSTOMER_ID_ALIASES = ("customer_id", "customerid", "cust_id")
ORDER_NUMBER_ALIASES = ("order", "order_number")
PRODUCTS_ALIASES = ("products", "product")

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class CustomerSummary:
    """Per-customer aggregate facts supplied by the source system.

    Attributes
    ----------
    customer_id:
        Unique customer identifier (always a string after normalization).
    frequency:
        Purchase count reported by the source system.
    monetary:
        Total spend reported by the source system.
    avg_order_value:
        Average order value.
    customer_lifetime_days:
        Days between first and last activity; used as recency when the
        customer has no completed transaction.
    purchase_rate:
        Purchases per unit time as reported upstream.
    customer_type:
        Free-text categorical (e.g. "new", "returning").
    attribution:
        Acquisition channel, free text.
    total_items_sold:
        Total items across all orders.
    """

    customer_id: str
    frequency: float = 0.0
    monetary: float = 0.0
    avg_order_value: float = 0.0
    customer_lifetime_days: float = 0.0
    purchase_rate: float = 0.0
    customer_type: str = UNKNOWN_CUSTOMER_TYPE
    attribution: str = UNKNOWN_ATTRIBUTION
    total_items_sold: float = 0.0

    def __post_init__(self) -> None:
        if self.frequency < 0:
            raise ValueError(
                f"Frequency cannot be negative: {self.frequency} (customer_id={self.customer_id})"
            )
        if self.monetary < 0:
            raise ValueError(
                f"Monetary value cannot be negative: {self.monetary} (customer_id={self.customer_id})"
            )


@dataclass(frozen=True)
class TransactionRecord:
    """A single order event from the transaction log."""

    customer_id: str
    order_number: str
    date: datetime
    products: str
    items_sold: float
    revenue: float
    net_sales: float
    status: str = COMPLETED_STATUS

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED_STATUS


def normalize_column_name(name: object) -> str:
    """Lower-case a header and replace every non-alphanumeric character with ``_``.

    >>> normalize_column_name("Avg. Order Value")
    'avg__order_value'
    >>> normalize_column_name("Customer-ID")
    'customer_id'
    """
    return _NON_ALPHANUMERIC.sub("_", str(name).lower())


def standardize_row(row: Mapping[Any, Any]) -> dict[str, Any]:
    """Return a copy of ``row`` keyed by normalized column names."""
    return {normalize_column_name(key): value for key, value in row.items()}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    # NaN, NaT and pd.NA from DataFrame rows
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _first_present(row: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for alias in aliases:
        value = row.get(alias)
        if not _is_missing(value):
            return value
    return None


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Coerce ``value`` to a finite float, returning ``default`` when impossible."""
    if _is_missing(value) or isinstance(value, bool):
        return default
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def coerce_text(value: Any, default: str) -> str:
    if _is_missing(value):
        return default
    return str(value).strip()


def coerce_identifier(value: Any) -> str | None:
    """Render an identifier as text; spreadsheet floats like ``12.0`` become ``"12"``."""
    if _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_calendar(value: str) -> datetime | None:
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _parse_serial(value: Any) -> datetime | None:
    try:
        serial = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(serial):
        return None
    try:
        return SPREADSHEET_EPOCH + timedelta(days=serial)
    except OverflowError:
        return None


def parse_transaction_date(value: Any, now: datetime) -> datetime:
    """Parse a raw date cell into a naive (UTC) datetime.

    Strategy:

    1. ``datetime`` values pass through (timezone-aware ones are converted to UTC).
    2. Text gets a standard calendar parse (ISO 8601 first, then pandas).
    3. Anything still unparsed is read as a spreadsheet serial day count
       (days since 1899-12-30), e.g. ``45000`` is 2023-03-15.
    4. Otherwise ``now`` is used and a data-quality warning is logged. Missing
       cells (``None``, ``NaN``, ``NaT``) take this path too.

    >>> parse_transaction_date("2024-02-01", datetime(2025, 1, 1))
    datetime.datetime(2024, 2, 1, 0, 0)
    >>> parse_transaction_date(45000, datetime(2025, 1, 1))
    datetime.datetime(2023, 3, 15, 0, 0)
    """
    if isinstance(value, datetime) and not _is_missing(value):
        return _to_naive_utc(value)

    parsed: datetime | None = None
    if isinstance(value, str) and value.strip():
        parsed = _parse_calendar(value)
    if parsed is None and not _is_missing(value) and not isinstance(value, bool):
        parsed = _parse_serial(value)
    if parsed is None:
        logger.warning(
            f"Unparseable transaction date {value!r}; using processing time {now.isoformat()}"
        )
        return now
    return _to_naive_utc(parsed)


def normalize_customer_row(row: Mapping[Any, Any]) -> CustomerSummary | None:
    """Map one raw customer row to a :class:`CustomerSummary`.

    Returns ``None`` when the row carries no usable customer identifier.
    """
    data = standardize_row(row)
    customer_id = coerce_identifier(_first_present(data, CUSTOMER_ID_ALIASES))
    if customer_id is None:
        return None
    return CustomerSummary(
        customer_id=customer_id,
        frequency=max(0.0, coerce_number(data.get("frequency"))),
        monetary=max(0.0, coerce_number(data.get("monetary"))),
        avg_order_value=coerce_number(data.get("avg_order_value")),
        customer_lifetime_days=coerce_number(data.get("customer_lifetime_days")),
        purchase_rate=coerce_number(data.get("purchase_rate")),
        customer_type=coerce_text(data.get("customer_type"), UNKNOWN_CUSTOMER_TYPE),
        attribution=coerce_text(data.get("attribution"), UNKNOWN_ATTRIBUTION),
        total_items_sold=coerce_number(data.get("total_items_sold")),
    )


def normalize_transaction_row(
    row: Mapping[Any, Any], now: datetime
) -> TransactionRecord | None:
    """Map one raw transaction row to a :class:`TransactionRecord`.

    Returns ``None`` when the row carries no customer identifier.
    """
    data = standardize_row(row)
    customer_id = coerce_identifier(_first_present(data, TRANSACTION_CUSTOMER_ID_ALIASES))
    if customer_id is None:
        return None

    revenue = coerce_number(data.get("revenue"))
    date = parse_transaction_date(data.get("date"), now)
    return TransactionRecord(
        customer_id=customer_id,
        order_number=coerce_text(_first_present(data, ORDER_NUMBER_ALIASES), ""),
        date=date,
        products=coerce_text(_first_present(data, PRODUCTS_ALIASES), ""),
        items_sold=coerce_number(data.get("items_sold"), default=1.0),
        revenue=revenue,
        net_sales=coerce_number(data.get("net_sales"), default=revenue),
        status=coerce_text(data.get("status"), COMPLETED_STATUS),
    )


def normalize_customers(rows: Iterable[Mapping[Any, Any]]) -> list[CustomerSummary]:
    """Normalize raw customer rows, keeping input order.

    Rows without an identifier are skipped and duplicate identifiers keep
    their first occurrence; both cases are logged as warnings.
    """
    customers: list[CustomerSummary] = []
    seen: set[str] = set()
    skipped = 0
    duplicates: list[str] = []

    for row in rows:
        customer = normalize_customer_row(row)
        if customer is None:
            skipped += 1
            continue
        if customer.customer_id in seen:
            duplicates.append(customer.customer_id)
            continue
        seen.add(customer.customer_id)
        customers.append(customer)

    if skipped:
        logger.warning(f"Skipped {skipped} customer rows without a customer_id")
    if duplicates:
        logger.warning(
            f"Dropped {len(duplicates)} duplicate customer rows; "
            f"first 5 duplicate ids: {duplicates[:5]}"
        )
    return customers


def normalize_transactions(
    rows: Iterable[Mapping[Any, Any]],
    now: datetime | None = None,
    completed_only: bool = True,
) -> list[TransactionRecord]:
    """Normalize raw transaction rows, keeping input order.

    Parameters
    ----------
    rows:
        Raw transaction rows with arbitrary header spelling.
    now:
        Processing time used when a date cannot be parsed. Defaults to the
        current time.
    completed_only:
        Drop every record whose status is not ``"completed"`` (default). All
        derived analytics expect this filter to have been applied.
    """
    now = now or datetime.now()
    transactions: list[TransactionRecord] = []
    skipped = 0
    filtered = 0

    for row in rows:
        transaction = normalize_transaction_row(row, now)
        if transaction is None:
            skipped += 1
            continue
        if completed_only and not transaction.is_completed:
            filtered += 1
            continue
        transactions.append(transaction)

    if skipped:
        logger.warning(f"Skipped {skipped} transaction rows without a customer_id")
    if filtered:
        logger.info(f"Discarded {filtered} transactions with a non-completed status")
    return transactions

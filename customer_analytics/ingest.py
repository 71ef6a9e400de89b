"""Read raw tabular inputs into row dictionaries.

Supported formats: CSV, Excel workbooks (first sheet) and JSON files holding
a list of objects. Header spelling is left untouched here; the record
normalizer canonicalizes it.
"""

from __future__ import annotations

import asyncio
import json
import zipfile
from pathlib import Path
from typing import Any

import pandas as pd
import structlog

from customer_analytics.config import MAX_INPUT_BYTES

logger = structlog.get_logger(__name__)

EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm", ".xls"})
CSV_SUFFIXES = frozenset({".csv", ".txt"})
JSON_SUFFIXES = frozenset({".json"})


class InputShapeError(ValueError):
    """An input file is missing, too large or cannot be parsed as a table."""


def _frame_to_rows(frame: pd.DataFrame) -> list[dict[str, Any]]:
    # NaN / NaT become None so downstream coercion sees a single "missing" marker.
    cleaned = frame.astype(object).where(pd.notna(frame), None)
    return cleaned.to_dict("records")


def _read_json_rows(path: Path) -> list[dict[str, Any]]:
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, list):
        raise InputShapeError(
            f"Expected a list of records in {path}, got {type(payload).__name__}"
        )
    if not all(isinstance(item, dict) for item in payload):
        raise InputShapeError(f"Every record in {path} must be a JSON object")
    return _frame_to_rows(pd.DataFrame(payload))


def read_table(path: Path | str, max_bytes: int = MAX_INPUT_BYTES) -> list[dict[str, Any]]:
    """Read one tabular file into a list of row dictionaries.

    Args:
        path: CSV, Excel or JSON file
        max_bytes: Reject files larger than this many bytes

    Returns:
        Rows in file order, with missing cells as ``None``

    Raises:
        InputShapeError: If the file is missing, oversized, of an unsupported
            type, or cannot be parsed
    """
    path = Path(path)
    if not path.is_file():
        raise InputShapeError(f"Input file not found: {path}")

    size = path.stat().st_size
    if size > max_bytes:
        raise InputShapeError(
            f"Input file {path} is {size} bytes; exceeds limit of {max_bytes} bytes"
        )

    suffix = path.suffix.lower()
    try:
        if suffix in EXCEL_SUFFIXES:
            rows = _frame_to_rows(pd.read_excel(path, sheet_name=0))
        elif suffix in CSV_SUFFIXES:
            rows = _frame_to_rows(pd.read_csv(path))
        elif suffix in JSON_SUFFIXES:
            rows = _read_json_rows(path)
        else:
            raise InputShapeError(
                f"Unsupported input type '{suffix}' for {path}; "
                f"expected one of {sorted(EXCEL_SUFFIXES | CSV_SUFFIXES | JSON_SUFFIXES)}"
            )
    except InputShapeError:
        raise
    except pd.errors.EmptyDataError as exc:
        raise InputShapeError(f"Input file {path} contains no data") from exc
    except (ValueError, UnicodeDecodeError, zipfile.BadZipFile, OSError) as exc:
        raise InputShapeError(f"Could not parse {path}: {exc}") from exc

    logger.info("table_loaded", path=str(path), rows=len(rows), bytes=size)
    return rows


async def load_raw_tables(
    customers_path: Path | str,
    transactions_path: Path | str,
    max_bytes: int = MAX_INPUT_BYTES,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Read the customer and transaction files concurrently.

    Both reads run as independent tasks and are joined before returning. If
    either read fails, or the caller is cancelled, the other task is
    cancelled too; the join never proceeds with only one source.

    Returns:
        (customer_rows, transaction_rows)
    """
    tasks = [
        asyncio.create_task(asyncio.to_thread(read_table, customers_path, max_bytes)),
        asyncio.create_task(asyncio.to_thread(read_table, transactions_path, max_bytes)),
    ]
    try:
        customer_rows, transaction_rows = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        # let the cancelled reads settle before re-raising
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.error(
            "raw_table_load_failed",
            customers_path=str(customers_path),
            transactions_path=str(transactions_path),
        )
        raise
    return customer_rows, transaction_rows

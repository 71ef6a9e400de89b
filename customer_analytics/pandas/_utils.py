"""Shared helpers for DataFrame conversion."""

from __future__ import annotations

import pandas as pd  # type: ignore


def empty_frame(columns: list[str]) -> pd.DataFrame:
    """Empty DataFrame with the given columns, so callers can rely on the schema."""
    return pd.DataFrame(columns=columns)

"""Customer analytics engine.

Turns a customer summary table and a transaction log into RFM scores and
segments, cohort retention, a daily sales series and co-occurrence product
recommendations, assembled into one immutable :class:`AnalyticsSnapshot`.
"""

from .snapshot import AnalyticsSnapshot, FilteredView, build_snapshot, build_snapshot_from_rows
from .views import FilterCriteria, apply_filters

__version__ = "0.1.0"

__all__ = [
    "AnalyticsSnapshot",
    "FilterCriteria",
    "FilteredView",
    "apply_filters",
    "build_snapshot",
    "build_snapshot_from_rows",
]

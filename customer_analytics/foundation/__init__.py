"""Foundational building blocks for the customer analytics engine.

This package exposes the canonical record shapes and their normalizer,
RFM scoring and segmentation, and cohort retention.
"""

from .cohorts import CohortRetention, calculate_cohort_retention
from .records import (
    CustomerSummary,
    TransactionRecord,
    normalize_column_name,
    normalize_customers,
    normalize_transactions,
    parse_transaction_date,
)
from .rfm import ScoredCustomer, Segment, quintile_score, score_customers

__all__ = [
    "CohortRetention",
    "CustomerSummary",
    "ScoredCustomer",
    "Segment",
    "TransactionRecord",
    "calculate_cohort_retention",
    "normalize_column_name",
    "normalize_customers",
    "normalize_transactions",
    "parse_transaction_date",
    "quintile_score",
    "score_customers",
]

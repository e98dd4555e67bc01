"""Foundational building blocks for the retail sales audit.

This package exposes the transaction record model and ingest contract,
the data-quality validator, and the grouped aggregation engine that the
analyses build on.
"""

from .aggregation import (
    AggregateRow,
    FieldStatistics,
    Metric,
    MetricKind,
    aggregate,
    describe,
    percentage,
    with_shares,
)
from .quality import QualityIssue, QualityReport, validate
from .records import Dataset, Gender, TransactionContract, TransactionRecord

__all__ = [
    "AggregateRow",
    "FieldStatistics",
    "Metric",
    "MetricKind",
    "aggregate",
    "describe",
    "percentage",
    "with_shares",
    "QualityIssue",
    "QualityReport",
    "validate",
    "Dataset",
    "Gender",
    "TransactionContract",
    "TransactionRecord",
]

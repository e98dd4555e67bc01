"""Pandas integration for retail sales audit.

Adapters between the Decimal-based domain objects and pandas DataFrames,
for loading raw tables and exporting analysis results.

Example:
    >>> from retail_sales_audit.pandas import dataframe_to_records, rfm_to_dataframe  # doctest: +SKIP
    >>> records = dataframe_to_records(pd.read_csv("sales.csv", parse_dates=["sale_date"]))  # doctest: +SKIP
"""

from .analyses import (
    aggregates_to_dataframe,
    breakdowns_to_dataframe,
    cohorts_to_dataframe,
    outliers_to_dataframe,
    rfm_to_dataframe,
)
from .records import dataframe_to_records, records_to_dataframe

__all__ = [
    "aggregates_to_dataframe",
    "breakdowns_to_dataframe",
    "cohorts_to_dataframe",
    "dataframe_to_records",
    "outliers_to_dataframe",
    "records_to_dataframe",
    "rfm_to_dataframe",
]

"""Pandas DataFrame adapters for transaction records."""

from datetime import datetime, time
from typing import Any, List, Sequence

import pandas as pd  # type: ignore

from retail_sales_audit.foundation.records import (
    TransactionContract,
    TransactionRecord,
)
from ._utils import decimal_to_float, to_python_scalar

RECORD_COLUMNS = [
    "transaction_id",
    "sale_date",
    "sale_time",
    "customer_id",
    "gender",
    "age",
    "category",
    "quantity",
    "unit_price",
    "cogs",
    "total_sale",
]


def records_to_dataframe(records: Sequence[TransactionRecord]) -> pd.DataFrame:
    """Convert transaction records to a pandas DataFrame.

    Args:
        records: Sequence of TransactionRecord objects

    Returns:
        DataFrame with one row per record, in input order. Monetary
        columns are floats; ``sale_date`` holds ``datetime.date`` objects.

    Example:
        >>> clean, report = validate(records)  # doctest: +SKIP
        >>> df = records_to_dataframe(clean)  # doctest: +SKIP
        >>> df.groupby("category")["total_sale"].sum()  # doctest: +SKIP
    """
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)

    rows = [
        {
            "transaction_id": r.transaction_id,
            "sale_date": r.sale_date,
            "sale_time": r.sale_time,
            "customer_id": r.customer_id,
            "gender": r.gender.value,
            "age": r.age,
            "category": r.category,
            "quantity": r.quantity,
            "unit_price": decimal_to_float(r.unit_price),
            "cogs": decimal_to_float(r.cogs),
            "total_sale": decimal_to_float(r.total_sale),
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def _to_date(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    return value


def _to_time(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.time()
    if isinstance(value, str):
        return time.fromisoformat(value)
    return value


def dataframe_to_records(df: pd.DataFrame) -> List[TransactionRecord]:
    """Convert a pandas DataFrame of raw transactions to records.

    Dates may be ``datetime64`` columns or ``date`` objects; times may be
    ``time`` objects or ``HH:MM:SS`` strings (as read from CSV). Every
    other value is passed to :class:`TransactionContract` as-is, so type
    problems are reported with the offending row index.

    Args:
        df: DataFrame with the record columns (the source table names
            ``transactions_id`` and ``price_per_unit`` are accepted too)

    Returns:
        List of TransactionRecord objects in row order

    Raises:
        ValueError: If required columns are missing or contain null values
        TypeError: If a value has the wrong type
    """
    frame = df.rename(columns=TransactionContract.ALIASES)
    missing_cols = set(TransactionContract.REQUIRED_FIELDS) - set(frame.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {sorted(missing_cols)}")

    if frame.empty:
        return []

    null_cols = frame[list(TransactionContract.REQUIRED_FIELDS)].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(
            f"Null/NaN values found in columns: {null_col_names}. "
            "Transactions require complete data."
        )

    raw = []
    for record in frame.to_dict("records"):
        row = {key: to_python_scalar(value) for key, value in record.items()}
        row["sale_date"] = _to_date(row["sale_date"])
        row["sale_time"] = _to_time(row["sale_time"])
        if isinstance(row.get("gender"), float):  # NaN in an optional column
            row["gender"] = None
        raw.append(row)

    return TransactionContract().parse_records(raw)

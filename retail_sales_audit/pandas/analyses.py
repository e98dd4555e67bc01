"""Pandas DataFrame adapters for aggregate and analysis results."""

from decimal import Decimal
from typing import Mapping, Sequence

import pandas as pd  # type: ignore

from retail_sales_audit.analyses.breakdowns import SalesBreakdown
from retail_sales_audit.analyses.cohorts import CohortRetention
from retail_sales_audit.analyses.outliers import Outlier
from retail_sales_audit.analyses.rfm import RFMProfile
from retail_sales_audit.foundation.aggregation import AggregateRow
from ._utils import decimal_to_float

RFM_COLUMNS = [
    "customer_id",
    "recency_days",
    "frequency",
    "monetary_value",
    "avg_order_value",
    "r_score",
    "f_score",
    "m_score",
    "rfm_score",
    "segment",
]

BREAKDOWN_COLUMNS = [
    "transaction_count",
    "revenue",
    "avg_transaction",
    "total_items",
    "avg_items",
    "avg_age",
    "transaction_share",
    "revenue_share",
]

OUTLIER_COLUMNS = [
    "transaction_id",
    "customer_id",
    "sale_date",
    "field",
    "value",
    "mean",
    "z_score",
    "severity",
]


def _cell(value):
    return decimal_to_float(value) if isinstance(value, Decimal) else value


def aggregates_to_dataframe(rows: Sequence[AggregateRow]) -> pd.DataFrame:
    """Convert grouped aggregates to a DataFrame.

    Group key fields come first, followed by metrics and any share
    columns added by :func:`with_shares`. Decimals become floats; dates
    from ``min``/``max`` metrics are kept as dates.

    Args:
        rows: Output of :func:`aggregate` or :func:`with_shares`

    Returns:
        DataFrame with one row per group, in input order
    """
    if not rows:
        return pd.DataFrame()

    first = rows[0]
    columns = list(first.group_by) + list(first.metrics) + list(first.shares)
    data = []
    for row in rows:
        record = dict(zip(row.group_by, row.key))
        record.update({name: _cell(value) for name, value in row.metrics.items()})
        record.update({name: _cell(value) for name, value in row.shares.items()})
        data.append(record)
    return pd.DataFrame(data, columns=columns)


def breakdowns_to_dataframe(breakdowns: Sequence[SalesBreakdown]) -> pd.DataFrame:
    """Convert a sales breakdown to a DataFrame.

    Args:
        breakdowns: Output of one breakdown function, e.g. :func:`category_by_gender`

    Returns:
        DataFrame with the dimension columns first, then one column per
        measure, in input order
    """
    if not breakdowns:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    columns = list(breakdowns[0].dimensions) + BREAKDOWN_COLUMNS
    data = []
    for b in breakdowns:
        record = dict(zip(b.dimensions, b.key))
        record.update(
            {
                "transaction_count": b.transaction_count,
                "revenue": decimal_to_float(b.revenue),
                "avg_transaction": decimal_to_float(b.avg_transaction),
                "total_items": b.total_items,
                "avg_items": decimal_to_float(b.avg_items),
                "avg_age": decimal_to_float(b.avg_age),
                "transaction_share": decimal_to_float(b.transaction_share),
                "revenue_share": decimal_to_float(b.revenue_share),
            }
        )
        data.append(record)
    return pd.DataFrame(data, columns=columns)


def rfm_to_dataframe(profiles: Sequence[RFMProfile]) -> pd.DataFrame:
    """Convert RFM profiles to a DataFrame.

    Args:
        profiles: Output of :func:`calculate_rfm`

    Returns:
        DataFrame with one row per customer; ``segment`` holds the label
        string and ``rfm_score`` the concatenated digit code.

    Example:
        >>> df = rfm_to_dataframe(calculate_rfm(records, date(2023, 12, 31)))  # doctest: +SKIP
        >>> df["segment"].value_counts()  # doctest: +SKIP
    """
    if not profiles:
        return pd.DataFrame(columns=RFM_COLUMNS)

    data = [
        {
            "customer_id": p.customer_id,
            "recency_days": p.recency_days,
            "frequency": p.frequency,
            "monetary_value": decimal_to_float(p.monetary_value),
            "avg_order_value": decimal_to_float(p.avg_order_value),
            "r_score": p.r_score,
            "f_score": p.f_score,
            "m_score": p.m_score,
            "rfm_score": p.rfm_score,
            "segment": p.segment.value,
        }
        for p in profiles
    ]
    return pd.DataFrame(data, columns=RFM_COLUMNS)


def cohorts_to_dataframe(cohorts: Mapping[str, CohortRetention]) -> pd.DataFrame:
    """Convert cohort retention to a wide retention matrix.

    Args:
        cohorts: Output of :func:`build_cohort_retention`

    Returns:
        DataFrame indexed by ``cohort_id`` with a ``cohort_size`` column
        and one ``month_<offset>`` column of retention percentages per
        offset. Offsets a cohort has not reached yet are NaN.
    """
    if not cohorts:
        return pd.DataFrame(columns=["cohort_size"]).rename_axis("cohort_id")

    offsets = sorted({offset for c in cohorts.values() for offset in c.active_counts})
    columns = ["cohort_size"] + [f"month_{offset}" for offset in offsets]

    data = []
    for cohort_id in sorted(cohorts):
        retention = cohorts[cohort_id]
        record = {"cohort_id": cohort_id, "cohort_size": retention.cohort_size}
        for offset, rate in retention.retention.items():
            record[f"month_{offset}"] = decimal_to_float(rate)
        data.append(record)

    return pd.DataFrame(data).set_index("cohort_id").reindex(columns=columns)


def outliers_to_dataframe(outliers: Sequence[Outlier]) -> pd.DataFrame:
    """Convert detected outliers to a DataFrame, preserving severity order.

    Args:
        outliers: Output of :func:`detect_outliers`

    Returns:
        DataFrame with one row per flagged transaction
    """
    if not outliers:
        return pd.DataFrame(columns=OUTLIER_COLUMNS)

    data = [
        {
            "transaction_id": o.record.transaction_id,
            "customer_id": o.record.customer_id,
            "sale_date": o.record.sale_date,
            "field": o.field,
            "value": decimal_to_float(o.value),
            "mean": decimal_to_float(o.mean),
            "z_score": decimal_to_float(o.z_score),
            "severity": o.severity.value,
        }
        for o in outliers
    ]
    return pd.DataFrame(data, columns=OUTLIER_COLUMNS)

"""Descriptive breakdowns of the sales table.

Each breakdown groups transactions along one or two dimensions and reports
the same block of measures (count, revenue, average ticket, items, shares):

- Demographics: :func:`gender_breakdown`, :func:`age_group_breakdown`
- Time patterns: :func:`monthly_breakdown`, :func:`weekday_breakdown`,
  :func:`hourly_breakdown`, :func:`seasonal_breakdown`
- Category mix: :func:`category_by_gender`, :func:`category_by_age_group`,
  :func:`product_mix`

Shares are a second pass over the finished groups (see
:func:`~retail_sales_audit.foundation.aggregation.with_shares`). Cross
breakdowns report shares within each category rather than of the whole.

:func:`dataset_overview`, :func:`pricing_statistics` and
:func:`high_value_transactions` complete the exploratory view.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Sequence

from retail_sales_audit.foundation.aggregation import (
    FieldStatistics,
    Metric,
    aggregate,
    describe,
    with_shares,
)
from retail_sales_audit.foundation.records import TransactionRecord

MONEY_PRECISION = Decimal("0.01")
AVERAGE_PRECISION = Decimal("0.1")

#: Fields summarised by :func:`pricing_statistics`, in report order.
PRICING_FIELDS = ("unit_price", "total_sale", "cogs", "profit", "quantity")

DEFAULT_HIGH_VALUE_MINIMUM = Decimal("1000")

_BREAKDOWN_METRICS = (
    Metric.count(),
    Metric.sum("total_sale", alias="revenue"),
    Metric.avg("total_sale", alias="avg_transaction"),
    Metric.sum("quantity", alias="items"),
    Metric.avg("quantity", alias="avg_items"),
    Metric.avg("age", alias="avg_age"),
)


@dataclass(frozen=True)
class SalesBreakdown:
    """Measures for one group of a breakdown.

    Attributes
    ----------
    dimensions:
        Names of the grouping fields, e.g. ``("category", "gender")``.
    key:
        Values of those fields for this group.
    transaction_count:
        Number of transactions.
    revenue:
        Sum of ``total_sale``.
    avg_transaction:
        Average ``total_sale``, rounded to cents.
    total_items:
        Units sold.
    avg_items:
        Units per transaction, one decimal place.
    avg_age:
        Average customer age, one decimal place.
    transaction_share, revenue_share:
        Percent of the transactions / revenue of the partition the group
        belongs to (the whole table, or its category for cross
        breakdowns).
    """

    dimensions: tuple[str, ...]
    key: tuple[Any, ...]
    transaction_count: int
    revenue: Decimal
    avg_transaction: Decimal
    total_items: int
    avg_items: Decimal
    avg_age: Decimal
    transaction_share: Decimal
    revenue_share: Decimal

    def __getitem__(self, name: str) -> Any:
        return self.key[self.dimensions.index(name)]


@dataclass(frozen=True)
class DatasetOverview:
    """Headline figures and the date coverage of a dataset."""

    transaction_count: int
    customer_count: int
    category_count: int
    first_sale: date
    last_sale: date
    unique_dates: int
    smallest_sale: Decimal
    largest_sale: Decimal
    avg_sale: Decimal
    total_revenue: Decimal
    youngest_customer: int
    oldest_customer: int
    avg_age: Decimal

    @property
    def span_days(self) -> int:
        """Days from the first to the last sale date."""
        return (self.last_sale - self.first_sale).days

    @property
    def date_coverage(self) -> Decimal:
        """Percent of calendar days in the span that have sales."""
        return (Decimal(self.unique_dates) / (self.span_days + 1) * 100).quantize(
            MONEY_PRECISION, rounding=ROUND_HALF_UP
        )


def _round(value: Decimal, precision: Decimal) -> Decimal:
    return value.quantize(precision, rounding=ROUND_HALF_UP)


def breakdown(
    records: Sequence[TransactionRecord],
    dimensions: Sequence[str],
    within: Sequence[str] | None = None,
) -> list[SalesBreakdown]:
    """Group ``records`` by ``dimensions`` and compute the breakdown measures.

    Parameters
    ----------
    records:
        Validated transaction records.
    dimensions:
        Grouping fields (any selectable field, e.g. ``"season"``).
    within:
        Subset of ``dimensions`` whose groups the shares are relative to.
        ``None`` measures shares against the whole table.

    Returns
    -------
    list[SalesBreakdown]
        One entry per group in order of first occurrence.

    Raises
    ------
    ValueError
        If a field is unknown or ``within`` is not part of ``dimensions``.
    """
    within = tuple(within or ())
    extra = [name for name in within if name not in dimensions]
    if extra:
        raise ValueError(f"within fields {extra} are not grouping fields {list(dimensions)}")

    rows = aggregate(records, dimensions, _BREAKDOWN_METRICS)
    rows = with_shares(rows, ["count", "revenue"], within)
    return [
        SalesBreakdown(
            dimensions=tuple(dimensions),
            key=row.key,
            transaction_count=row["count"],
            revenue=row["revenue"],
            avg_transaction=_round(row["avg_transaction"], MONEY_PRECISION),
            total_items=int(row["items"]),
            avg_items=_round(row["avg_items"], AVERAGE_PRECISION),
            avg_age=_round(row["avg_age"], AVERAGE_PRECISION),
            transaction_share=row["count_share"],
            revenue_share=row["revenue_share"],
        )
        for row in rows
    ]


def _sorted(
    items: list[SalesBreakdown], key: Callable[[SalesBreakdown], Any]
) -> list[SalesBreakdown]:
    items.sort(key=key)
    return items


def gender_breakdown(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Spending by gender, busiest first."""
    return _sorted(breakdown(records, ["gender"]), lambda b: -b.transaction_count)


def age_group_breakdown(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Spending by age group, highest average ticket first."""
    return _sorted(breakdown(records, ["age_group"]), lambda b: -b.avg_transaction)


def monthly_breakdown(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Sales by calendar month (1-12, all years pooled), January first."""
    return _sorted(breakdown(records, ["month"]), lambda b: b["month"])


def weekday_breakdown(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Sales by day of week, Sunday (0) first."""
    return _sorted(breakdown(records, ["day_of_week"]), lambda b: b["day_of_week"])


def hourly_breakdown(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Sales by hour of day, each hour keyed with its time period."""
    return _sorted(breakdown(records, ["hour", "time_period"]), lambda b: b["hour"])


def seasonal_breakdown(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Sales by season, highest revenue first."""
    return _sorted(breakdown(records, ["season"]), lambda b: -b.revenue)


def category_by_gender(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Gender split inside each category; shares are within the category."""
    return _sorted(
        breakdown(records, ["category", "gender"], within=["category"]),
        lambda b: (b["category"], -b.transaction_count),
    )


def category_by_age_group(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Age-group split inside each category; shares are within the category."""
    return _sorted(
        breakdown(records, ["category", "age_group"], within=["category"]),
        lambda b: (b["category"], -b.transaction_count),
    )


def product_mix(records: Sequence[TransactionRecord]) -> list[SalesBreakdown]:
    """Category shares of traffic and revenue with basket size, top revenue first."""
    return _sorted(breakdown(records, ["category"]), lambda b: -b.revenue)


def dataset_overview(records: Sequence[TransactionRecord]) -> DatasetOverview | None:
    """Headline figures of the dataset; ``None`` when it is empty."""
    sales = describe(records, "total_sale")
    ages = describe(records, "age")
    if sales is None or ages is None:
        return None
    dates = {r.sale_date for r in records}
    return DatasetOverview(
        transaction_count=sales.count,
        customer_count=len({r.customer_id for r in records}),
        category_count=len({r.category for r in records}),
        first_sale=min(dates),
        last_sale=max(dates),
        unique_dates=len(dates),
        smallest_sale=sales.minimum,
        largest_sale=sales.maximum,
        avg_sale=_round(sales.mean, MONEY_PRECISION),
        total_revenue=sales.total,
        youngest_customer=int(ages.minimum),
        oldest_customer=int(ages.maximum),
        avg_age=_round(ages.mean, AVERAGE_PRECISION),
    )


def pricing_statistics(records: Sequence[TransactionRecord]) -> list[FieldStatistics]:
    """:func:`describe` for price, sale, cost, profit and quantity.

    Returns an empty list for an empty input.
    """
    stats = [describe(records, name) for name in PRICING_FIELDS]
    return [s for s in stats if s is not None]


def high_value_transactions(
    records: Sequence[TransactionRecord],
    minimum: Decimal = DEFAULT_HIGH_VALUE_MINIMUM,
) -> list[TransactionRecord]:
    """Transactions with ``total_sale`` strictly above ``minimum``.

    Sorted by ``total_sale`` descending; equal sales keep dataset order.
    """
    selected = [r for r in records if r.total_sale > minimum]
    selected.sort(key=lambda r: r.total_sale, reverse=True)
    return selected

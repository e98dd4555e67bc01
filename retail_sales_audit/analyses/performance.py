"""Sales trends and category performance.

Combines the aggregation engine with the window functions:

- :func:`daily_sales_trend`: daily revenue with a running total, a
  trailing moving average and the day-over-day change.
- :func:`category_performance`: revenue and transaction shares plus
  revenue / average-ticket ranks per category.
- :func:`category_profitability`: costs, profit and margin per category.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from retail_sales_audit.analyses.windows import rank, sequence_rows
from retail_sales_audit.foundation.aggregation import (
    AggregateRow,
    Metric,
    aggregate,
    percentage,
    with_shares,
)
from retail_sales_audit.foundation.records import TransactionRecord

MONEY_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class DailyTrend:
    """Revenue for one sale date in context of the days before it.

    ``change`` is ``None`` on the first day; ``moving_average`` covers at
    most ``window`` trading days and fewer at the start of the series.
    """

    sale_date: date
    transaction_count: int
    revenue: Decimal
    running_total: Decimal
    moving_average: Decimal
    change: Decimal | None


@dataclass(frozen=True)
class CategoryPerformance:
    category: str
    transaction_count: int
    total_revenue: Decimal
    avg_transaction: Decimal
    total_items: int
    revenue_share: Decimal
    transaction_share: Decimal
    revenue_rank: int
    avg_transaction_rank: int


@dataclass(frozen=True)
class CategoryProfitability:
    category: str
    transaction_count: int
    total_revenue: Decimal
    total_costs: Decimal
    total_profit: Decimal
    profit_margin: Decimal
    avg_profit: Decimal


def _money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def daily_sales_trend(
    records: Sequence[TransactionRecord], window: int = 7
) -> list[DailyTrend]:
    """Daily revenue series ordered by date.

    Parameters
    ----------
    records:
        Validated transaction records.
    window:
        Number of trading days (dates with sales) in the moving average.

    Raises
    ------
    ValueError
        If ``window < 1``.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    days = aggregate(records, ["sale_date"], [Metric.count(), Metric.sum("total_sale")])
    annotated = sequence_rows(
        days,
        value=lambda row: row["sum_total_sale"],
        window=window,
        order_by=lambda row: row.key_value("sale_date"),
    )
    return [
        DailyTrend(
            sale_date=item.row.key_value("sale_date"),
            transaction_count=item.row["count"],
            revenue=item.row["sum_total_sale"],
            running_total=item.running_total,
            moving_average=_money(item.window_average),
            change=item.delta,
        )
        for item in annotated
    ]


def category_performance(records: Sequence[TransactionRecord]) -> list[CategoryPerformance]:
    """Compare categories on revenue, ticket size and share of the whole.

    Returns rows sorted by revenue rank (highest revenue first).
    """
    rows: list[AggregateRow] = aggregate(
        records,
        ["category"],
        [
            Metric.count(),
            Metric.sum("total_sale", alias="revenue"),
            Metric.avg("total_sale", alias="avg_transaction"),
            Metric.sum("quantity", alias="items"),
        ],
    )
    rows = with_shares(rows, ["revenue", "count"])
    revenue_ranks = rank(rows, key=lambda row: row["revenue"])
    ticket_ranks = rank(rows, key=lambda row: row["avg_transaction"])

    performance = [
        CategoryPerformance(
            category=row.key_value("category"),
            transaction_count=row["count"],
            total_revenue=row["revenue"],
            avg_transaction=_money(row["avg_transaction"]),
            total_items=int(row["items"]),
            revenue_share=row["revenue_share"],
            transaction_share=row["count_share"],
            revenue_rank=revenue_ranks[idx],
            avg_transaction_rank=ticket_ranks[idx],
        )
        for idx, row in enumerate(rows)
    ]
    performance.sort(key=lambda item: item.revenue_rank)
    return performance


def category_profitability(
    records: Sequence[TransactionRecord],
) -> list[CategoryProfitability]:
    """Revenue, cost and profit per category, most profitable first."""
    rows = aggregate(
        records,
        ["category"],
        [
            Metric.count(),
            Metric.sum("total_sale", alias="revenue"),
            Metric.sum("cogs", alias="costs"),
            Metric.sum("profit", alias="profit"),
            Metric.avg("profit", alias="avg_profit"),
        ],
    )
    results = [
        CategoryProfitability(
            category=row.key_value("category"),
            transaction_count=row["count"],
            total_revenue=row["revenue"],
            total_costs=row["costs"],
            total_profit=row["profit"],
            profit_margin=percentage(row["profit"], row["revenue"]),
            avg_profit=_money(row["avg_profit"]),
        )
        for row in rows
    ]
    results.sort(key=lambda item: item.total_profit, reverse=True)
    return results

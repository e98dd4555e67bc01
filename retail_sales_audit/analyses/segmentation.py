"""Customer summaries, value tiers and spend-based rankings.

Answers the customer-behaviour questions of the retail audit:

- What does each customer's purchase history look like?
- Which value tier (VIP / High / Medium / Low) does each customer fall in?
- Where does each customer rank by total spend, and in which decile?
- How do the spending quartiles compare?

Tier thresholds are a business policy and are passed in as a table
(:data:`~retail_sales_audit.config.DEFAULT_VALUE_TIERS` by default).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from retail_sales_audit.analyses.windows import ntile, rank_rows
from retail_sales_audit.config import DEFAULT_VALUE_TIERS, TierThreshold
from retail_sales_audit.foundation.aggregation import Metric, aggregate
from retail_sales_audit.foundation.records import TransactionRecord

MONEY_PRECISION = Decimal("0.01")

# Tenure boundaries in active days, first and last purchase day inclusive
ESTABLISHED_TENURE_DAYS = 180
DEVELOPING_TENURE_DAYS = 30

#: Spend tiers, checked top to bottom. A bucket gets the label when it lies
#: above the given tenths of the bucket count (deciles 9-10, 7-8, 4-6, 1-3).
DECILE_TIERS: tuple[tuple[int, str], ...] = (
    (8, "Top 20% (VIP)"),
    (6, "Top 40% (High Value)"),
    (3, "Middle 40% (Regular)"),
    (0, "Bottom 40% (Occasional)"),
)

#: Labels for spending quartiles 1..4.
QUARTILE_LABELS = {
    4: "High Value Customers (Top 25%)",
    3: "Medium-High Value (75th percentile)",
    2: "Medium Value (50th percentile)",
    1: "Low Value Customers (Bottom 25%)",
}


def _money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CustomerSummary:
    """Purchase history of one customer.

    Attributes
    ----------
    customer_id:
        Customer identifier.
    transaction_count:
        Number of transactions.
    total_spent:
        Sum of ``total_sale``.
    avg_transaction:
        Average ``total_sale`` per transaction.
    total_quantity:
        Items purchased.
    first_purchase, last_purchase:
        Dates of the earliest and latest transaction.
    avg_days_between_purchases:
        Lifespan divided by ``transaction_count - 1``; ``None`` for
        one-time buyers.
    """

    customer_id: str
    transaction_count: int
    total_spent: Decimal
    avg_transaction: Decimal
    total_quantity: int
    first_purchase: date
    last_purchase: date
    avg_days_between_purchases: Decimal | None

    def __post_init__(self) -> None:
        if self.transaction_count <= 0:
            raise ValueError(
                f"transaction_count must be positive: {self.transaction_count} "
                f"(customer_id={self.customer_id})"
            )
        if self.last_purchase < self.first_purchase:
            raise ValueError(
                f"last_purchase precedes first_purchase (customer_id={self.customer_id})"
            )

    @property
    def lifespan_days(self) -> int:
        return (self.last_purchase - self.first_purchase).days

    @property
    def is_repeat(self) -> bool:
        return self.transaction_count > 1

    @property
    def daily_value(self) -> Decimal:
        """Spend per active day, counting first and last day inclusively."""
        return _money(self.total_spent / self.active_days)

    @property
    def active_days(self) -> int:
        """Days from first to last purchase, counting both ends."""
        return self.lifespan_days + 1

    @property
    def tenure(self) -> str:
        if self.active_days > ESTABLISHED_TENURE_DAYS:
            return "Established"
        if self.active_days > DEVELOPING_TENURE_DAYS:
            return "Developing"
        return "New"


@dataclass(frozen=True)
class CustomerTier:
    customer_id: str
    total_spent: Decimal
    tier: str


@dataclass(frozen=True)
class CustomerRanking:
    """Spend ranking of one customer among all customers.

    Attributes
    ----------
    summary:
        The ranked customer's summary.
    spending_rank:
        Competition rank by total spend, 1 = largest.
    spending_percentile:
        Percent rank by total spend (0-100, ascending).
    spending_decile:
        N-tile bucket by total spend (ascending).
    tier:
        Label derived from the decile.
    """

    summary: CustomerSummary
    spending_rank: int
    spending_percentile: Decimal
    spending_decile: int
    tier: str


@dataclass(frozen=True)
class SpendingSegment:
    """Aggregate view of one spending quartile."""

    quartile: int
    label: str
    customer_count: int
    avg_total_spent: Decimal
    avg_transactions: Decimal
    avg_transaction_value: Decimal


def summarize_customers(records: Iterable[TransactionRecord]) -> list[CustomerSummary]:
    """Summarise each customer's transactions.

    Returns one :class:`CustomerSummary` per customer in order of first
    appearance.
    """
    rows = aggregate(
        records,
        ["customer_id"],
        [
            Metric.count(),
            Metric.sum("total_sale", alias="total_spent"),
            Metric.avg("total_sale", alias="avg_transaction"),
            Metric.sum("quantity", alias="total_quantity"),
            Metric.min("sale_date", alias="first_purchase"),
            Metric.max("sale_date", alias="last_purchase"),
        ],
    )

    summaries: list[CustomerSummary] = []
    for row in rows:
        count = row["count"]
        lifespan = (row["last_purchase"] - row["first_purchase"]).days
        between = (
            (Decimal(lifespan) / (count - 1)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            if count > 1
            else None
        )
        summaries.append(
            CustomerSummary(
                customer_id=row.key_value("customer_id"),
                transaction_count=count,
                total_spent=row["total_spent"],
                avg_transaction=_money(row["avg_transaction"]),
                total_quantity=int(row["total_quantity"]),
                first_purchase=row["first_purchase"],
                last_purchase=row["last_purchase"],
                avg_days_between_purchases=between,
            )
        )
    return summaries


def value_tier(
    total_spent: Decimal, tiers: Sequence[TierThreshold] = DEFAULT_VALUE_TIERS
) -> str:
    """Return the label of the highest tier whose minimum is reached.

    Tiers may be given in any order. Raises ``ValueError`` when the spend
    is below every tier's minimum, since that means the tier table has a
    gap.
    """
    for tier in sorted(tiers, key=lambda t: t.minimum, reverse=True):
        if total_spent >= tier.minimum:
            return tier.label
    raise ValueError(
        f"No value tier covers total spend {total_spent}; "
        f"lowest minimum is {min(t.minimum for t in tiers)}"
    )


def classify_value_tiers(
    summaries: Sequence[CustomerSummary],
    tiers: Sequence[TierThreshold] = DEFAULT_VALUE_TIERS,
) -> list[CustomerTier]:
    """Assign each customer to a value tier, sorted by spend descending."""
    if not tiers:
        raise ValueError("At least one value tier is required")
    classified = [
        CustomerTier(s.customer_id, s.total_spent, value_tier(s.total_spent, tiers))
        for s in summaries
    ]
    classified.sort(key=lambda item: item.total_spent, reverse=True)
    return classified


def tier_counts(tiers: Iterable[CustomerTier]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for item in tiers:
        counts[item.tier] = counts.get(item.tier, 0) + 1
    return counts


def decile_tier(decile: int, buckets: int = 10) -> str:
    """Label an N-tile bucket by its position among ``buckets`` buckets.

    >>> decile_tier(9)
    'Top 20% (VIP)'
    >>> decile_tier(4, buckets=4)
    'Top 20% (VIP)'
    """
    if decile < 1:
        raise ValueError(f"Decile must be >= 1, got {decile}")
    if decile > buckets:
        raise ValueError(f"Decile must be <= buckets ({buckets}), got {decile}")
    for tenths, label in DECILE_TIERS[:-1]:
        if decile * 10 > tenths * buckets:
            return label
    return DECILE_TIERS[-1][1]


def rank_customers(
    summaries: Sequence[CustomerSummary], buckets: int = 10
) -> list[CustomerRanking]:
    """Rank customers by total spend.

    Parameters
    ----------
    summaries:
        Customer summaries, e.g. from :func:`summarize_customers`.
    buckets:
        Number of N-tiles (10 for deciles). Tier labels scale with the
        bucket count: buckets above 80% of it are VIP, and so on down.

    Returns
    -------
    list[CustomerRanking]
        Sorted by spending rank; ties keep input order.
    """
    ranked = rank_rows(summaries, key=lambda s: s.total_spent, buckets=buckets)
    return [
        CustomerRanking(
            summary=item.row,
            spending_rank=item.rank,
            spending_percentile=item.percentile_rank,
            spending_decile=item.bucket,
            tier=decile_tier(item.bucket, buckets),
        )
        for item in ranked
    ]


def spending_quartile_segments(
    summaries: Sequence[CustomerSummary],
) -> list[SpendingSegment]:
    """Group customers into spend quartiles (``NTILE(4)``) and summarise each.

    Returns one segment per non-empty quartile, highest quartile first.
    """
    quartiles = ntile(summaries, 4, key=lambda s: s.total_spent)
    members: dict[int, list[CustomerSummary]] = {}
    for summary, quartile in zip(summaries, quartiles):
        members.setdefault(quartile, []).append(summary)

    segments: list[SpendingSegment] = []
    for quartile in sorted(members, reverse=True):
        group = members[quartile]
        n = len(group)
        segments.append(
            SpendingSegment(
                quartile=quartile,
                label=QUARTILE_LABELS[quartile],
                customer_count=n,
                avg_total_spent=_money(sum((s.total_spent for s in group), Decimal("0")) / n),
                avg_transactions=(
                    Decimal(sum(s.transaction_count for s in group)) / n
                ).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
                avg_transaction_value=_money(
                    sum((s.avg_transaction for s in group), Decimal("0")) / n
                ),
            )
        )
    return segments

"""RFM (Recency-Frequency-Monetary) scoring and segmentation.

RFM analysis segments customers on three dimensions:

- Recency: days between the customer's last purchase and a reference date.
- Frequency: number of transactions.
- Monetary: total spend.

Each dimension is split into quintiles with ``NTILE`` semantics (see
:func:`retail_sales_audit.analyses.windows.ntile`), so scores always use
the full 1..5 range once there are at least five customers. Recency is
bucketed in descending order of days, so the most recent customers score
5. The segment label comes from a fixed decision table evaluated top to
bottom.

The reference date is always an explicit argument; nothing here reads
the clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Sequence

from retail_sales_audit.analyses.windows import ntile
from retail_sales_audit.foundation.records import TransactionRecord

# Quintiles: the segment decision table is written for scores 1..5
RFM_BINS = 5


class RFMSegment(str, Enum):
    """Customer segments derived from RFM scores."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    NEW_CUSTOMERS = "New Customers"
    AT_RISK = "At Risk"
    LOST_CUSTOMERS = "Lost Customers"
    POTENTIAL_LOYALISTS = "Potential Loyalists"


@dataclass(frozen=True)
class RFMProfile:
    """RFM measures, scores and segment for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency_days:
        Days from the last purchase to the reference date
    frequency:
        Number of transactions
    monetary_value:
        Total spend
    avg_order_value:
        monetary_value / frequency, rounded to cents
    r_score:
        Recency score (1-5, where 5 = most recent)
    f_score:
        Frequency score (1-5, where 5 = most frequent)
    m_score:
        Monetary score (1-5, where 5 = highest spend)
    segment:
        Segment label from the decision table
    """

    customer_id: str
    recency_days: int
    frequency: int
    monetary_value: Decimal
    avg_order_value: Decimal
    r_score: int
    f_score: int
    m_score: int
    segment: RFMSegment

    def __post_init__(self) -> None:
        """Validate RFM profile."""
        if self.recency_days < 0:
            raise ValueError(
                f"Recency cannot be negative: {self.recency_days} (customer_id={self.customer_id})"
            )
        if self.frequency <= 0:
            raise ValueError(
                f"Frequency must be positive: {self.frequency} (customer_id={self.customer_id})"
            )
        if self.monetary_value < 0:
            raise ValueError(
                f"Monetary value cannot be negative: {self.monetary_value} (customer_id={self.customer_id})"
            )
        for score_name, score_value in [
            ("r_score", self.r_score),
            ("f_score", self.f_score),
            ("m_score", self.m_score),
        ]:
            if score_value < 1:
                raise ValueError(
                    f"{score_name} must be >= 1: {score_value} (customer_id={self.customer_id})"
                )
            if score_value > RFM_BINS:
                raise ValueError(
                    f"{score_name} must be <= {RFM_BINS}: {score_value} (customer_id={self.customer_id})"
                )

    @property
    def rfm_score(self) -> str:
        """Combined score string, e.g. ``"555"`` for the best customers."""
        return f"{self.r_score}{self.f_score}{self.m_score}"


def assign_segment(r_score: int, f_score: int, m_score: int) -> RFMSegment:
    """Map RFM scores to a segment; first matching rule wins.

    >>> assign_segment(5, 4, 4)
    <RFMSegment.CHAMPIONS: 'Champions'>
    >>> assign_segment(5, 1, 1)
    <RFMSegment.NEW_CUSTOMERS: 'New Customers'>
    """
    if r_score >= 4 and f_score >= 4 and m_score >= 4:
        return RFMSegment.CHAMPIONS
    if r_score >= 3 and f_score >= 3 and m_score >= 3:
        return RFMSegment.LOYAL_CUSTOMERS
    if r_score >= 4 and f_score <= 2:
        return RFMSegment.NEW_CUSTOMERS
    if r_score <= 2 and f_score >= 3:
        return RFMSegment.AT_RISK
    if r_score <= 2 and f_score <= 2:
        return RFMSegment.LOST_CUSTOMERS
    return RFMSegment.POTENTIAL_LOYALISTS


def calculate_rfm(
    records: Iterable[TransactionRecord],
    reference_date: date,
) -> list[RFMProfile]:
    """Calculate RFM profiles for every customer.

    Parameters
    ----------
    records:
        Validated transaction records.
    reference_date:
        Date recency is measured against. Must not precede any purchase.

    Returns
    -------
    list[RFMProfile]
        One profile per customer, sorted by customer_id. Ties within a
        dimension are bucketed by order of the customer's first
        transaction.

    Raises
    ------
    ValueError
        If a transaction is dated after ``reference_date``.

    Examples
    --------
    >>> profiles = calculate_rfm(records, reference_date=date(2024, 1, 1))  # doctest: +SKIP
    >>> profiles[0].rfm_score  # doctest: +SKIP
    '545'
    """
    # Group by customer_id, in order of first appearance
    customer_data: dict[str, dict] = {}
    for record in records:
        if record.sale_date > reference_date:
            raise ValueError(
                f"Transaction date ({record.sale_date}) cannot be after "
                f"reference_date ({reference_date}) for customer {record.customer_id}"
            )
        data = customer_data.setdefault(
            record.customer_id,
            {"last_purchase": record.sale_date, "frequency": 0, "monetary": Decimal("0")},
        )
        if record.sale_date > data["last_purchase"]:
            data["last_purchase"] = record.sale_date
        data["frequency"] += 1
        data["monetary"] += record.total_sale

    if not customer_data:
        return []

    customers = list(customer_data.items())
    recency = [(reference_date - data["last_purchase"]).days for _, data in customers]
    r_scores = ntile(recency, RFM_BINS, descending=True)
    f_scores = ntile([data["frequency"] for _, data in customers], RFM_BINS)
    m_scores = ntile([data["monetary"] for _, data in customers], RFM_BINS)

    profiles: list[RFMProfile] = []
    for idx, (customer_id, data) in enumerate(customers):
        profiles.append(
            RFMProfile(
                customer_id=customer_id,
                recency_days=recency[idx],
                frequency=data["frequency"],
                monetary_value=data["monetary"],
                avg_order_value=(data["monetary"] / data["frequency"]).quantize(
                    Decimal("0.01"), rounding=ROUND_HALF_UP
                ),
                r_score=r_scores[idx],
                f_score=f_scores[idx],
                m_score=m_scores[idx],
                segment=assign_segment(r_scores[idx], f_scores[idx], m_scores[idx]),
            )
        )

    # Sort by customer_id for consistency
    profiles.sort(key=lambda p: p.customer_id)
    return profiles


def segment_distribution(profiles: Sequence[RFMProfile]) -> dict[RFMSegment, int]:
    """Count customers per segment, listing every segment (zeros included)."""
    counts = {segment: 0 for segment in RFMSegment}
    for profile in profiles:
        counts[profile.segment] += 1
    return counts

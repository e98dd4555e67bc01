"""Tests for customer summaries, value tiers and spend rankings."""

from datetime import date, time
from decimal import Decimal

import pytest

from retail_sales_audit.analyses.segmentation import (
    CustomerSummary,
    classify_value_tiers,
    decile_tier,
    rank_customers,
    spending_quartile_segments,
    summarize_customers,
    tier_counts,
    value_tier,
)
from retail_sales_audit.config import TierThreshold
from retail_sales_audit.foundation.records import Gender, TransactionRecord


def _record(tid, customer_id, sale_date, total, quantity=1):
    total = Decimal(total)
    return TransactionRecord(
        transaction_id=tid,
        sale_date=sale_date,
        sale_time=time(15, 30),
        customer_id=customer_id,
        gender=Gender.FEMALE,
        age=41,
        category="Clothing",
        quantity=quantity,
        unit_price=total / quantity,
        cogs=total * Decimal("0.3"),
        total_sale=total,
    )


def _summary(customer_id, total, count=1):
    total = Decimal(total)
    return CustomerSummary(
        customer_id=customer_id,
        transaction_count=count,
        total_spent=total,
        avg_transaction=total / count,
        total_quantity=count,
        first_purchase=date(2023, 1, 1),
        last_purchase=date(2023, 1, 1),
        avg_days_between_purchases=None,
    )


@pytest.fixture
def records():
    return [
        _record("1", "C1", date(2023, 1, 1), "100"),
        _record("2", "C2", date(2023, 2, 1), "2500", quantity=5),
        _record("3", "C1", date(2023, 1, 11), "300", quantity=3),
        _record("4", "C3", date(2023, 1, 5), "1200", quantity=2),
        _record("5", "C1", date(2023, 1, 21), "200", quantity=2),
        _record("6", "C4", date(2023, 3, 1), "50"),
        _record("7", "C3", date(2023, 7, 10), "300"),
    ]


class TestSummarizeCustomers:
    """Per-customer purchase history."""

    def test_first_appearance_order(self, records):
        assert [s.customer_id for s in summarize_customers(records)] == ["C1", "C2", "C3", "C4"]

    def test_repeat_customer(self, records):
        c1 = summarize_customers(records)[0]
        assert c1.transaction_count == 3
        assert c1.total_spent == Decimal("600")
        assert c1.avg_transaction == Decimal("200.00")
        assert c1.total_quantity == 6
        assert c1.first_purchase == date(2023, 1, 1)
        assert c1.last_purchase == date(2023, 1, 21)
        assert c1.lifespan_days == 20
        assert c1.avg_days_between_purchases == Decimal("10.0")
        assert c1.is_repeat
        assert c1.daily_value == Decimal("28.57")
        assert c1.tenure == "New"

    def test_one_time_buyer(self, records):
        c2 = summarize_customers(records)[1]
        assert c2.transaction_count == 1
        assert c2.avg_days_between_purchases is None
        assert not c2.is_repeat
        assert c2.daily_value == Decimal("2500.00")

    def test_tenure(self, records):
        c3 = summarize_customers(records)[2]
        assert c3.lifespan_days == 186
        assert c3.tenure == "Established"

    @pytest.mark.parametrize(
        "last_purchase,tenure",
        [
            (date(2023, 6, 30), "Established"),  # 180 days after, 181 active days
            (date(2023, 6, 29), "Developing"),
            (date(2023, 1, 31), "Developing"),  # 30 days after, 31 active days
            (date(2023, 1, 30), "New"),
        ],
    )
    def test_tenure_counts_both_purchase_days(self, last_purchase, tenure):
        summary = summarize_customers(
            [
                _record("1", "C1", date(2023, 1, 1), "100"),
                _record("2", "C1", last_purchase, "100"),
            ]
        )[0]
        assert summary.active_days == summary.lifespan_days + 1
        assert summary.tenure == tenure

    def test_empty(self):
        assert summarize_customers([]) == []

    def test_invalid_summary_raises(self):
        with pytest.raises(ValueError, match="transaction_count must be positive"):
            CustomerSummary(
                customer_id="C1",
                transaction_count=0,
                total_spent=Decimal("0"),
                avg_transaction=Decimal("0"),
                total_quantity=0,
                first_purchase=date(2023, 1, 1),
                last_purchase=date(2023, 1, 1),
                avg_days_between_purchases=None,
            )


class TestValueTiers:
    """Configurable spend tiers."""

    def test_default_thresholds(self):
        assert value_tier(Decimal("2000")) == "VIP"
        assert value_tier(Decimal("1999.99")) == "High Value"
        assert value_tier(Decimal("500")) == "Medium Value"
        assert value_tier(Decimal("0")) == "Low Value"

    def test_classify_sorted_by_spend(self, records):
        tiers = classify_value_tiers(summarize_customers(records))
        assert [(t.customer_id, t.tier) for t in tiers] == [
            ("C2", "VIP"),
            ("C3", "High Value"),
            ("C1", "Medium Value"),
            ("C4", "Low Value"),
        ]

    def test_custom_tiers_in_any_order(self, records):
        custom = (
            TierThreshold(label="Bronze", minimum=Decimal("0")),
            TierThreshold(label="Gold", minimum=Decimal("1000")),
        )
        tiers = classify_value_tiers(summarize_customers(records), custom)
        assert tier_counts(tiers) == {"Gold": 2, "Bronze": 2}

    def test_gap_in_tier_table_raises(self):
        tiers = (TierThreshold(label="Regular", minimum=Decimal("100")),)
        with pytest.raises(ValueError, match="No value tier covers"):
            value_tier(Decimal("50"), tiers)

    def test_empty_tier_table_raises(self):
        with pytest.raises(ValueError, match="At least one value tier"):
            classify_value_tiers([_summary("C1", "10")], ())


class TestRankCustomers:
    """Spend ranking, percentile and deciles."""

    def test_ranking(self, records):
        rankings = rank_customers(summarize_customers(records))
        assert [r.summary.customer_id for r in rankings] == ["C2", "C3", "C1", "C4"]
        assert [r.spending_rank for r in rankings] == [1, 2, 3, 4]
        assert [r.spending_percentile for r in rankings] == [
            Decimal("100"),
            Decimal("66.67"),
            Decimal("33.33"),
            Decimal("0"),
        ]
        # fewer customers than deciles: one per bucket, ascending
        assert [r.spending_decile for r in rankings] == [4, 3, 2, 1]

    def test_tied_spend_shares_rank(self):
        rankings = rank_customers([_summary("A", "100"), _summary("B", "300"), _summary("C", "100")])
        assert [(r.summary.customer_id, r.spending_rank) for r in rankings] == [
            ("B", 1),
            ("A", 2),
            ("C", 2),
        ]

    def test_deciles_over_twenty_customers(self):
        summaries = [_summary(f"C{i:02d}", str(10 * (i + 1))) for i in range(20)]
        rankings = rank_customers(summaries)
        top = rankings[0]
        assert top.summary.customer_id == "C19"
        assert top.spending_decile == 10
        assert top.tier == "Top 20% (VIP)"
        assert rankings[-1].spending_decile == 1
        assert rankings[-1].tier == "Bottom 40% (Occasional)"

    @pytest.mark.parametrize(
        "decile,label",
        [
            (10, "Top 20% (VIP)"),
            (9, "Top 20% (VIP)"),
            (8, "Top 40% (High Value)"),
            (7, "Top 40% (High Value)"),
            (6, "Middle 40% (Regular)"),
            (4, "Middle 40% (Regular)"),
            (3, "Bottom 40% (Occasional)"),
            (1, "Bottom 40% (Occasional)"),
        ],
    )
    def test_decile_tier(self, decile, label):
        assert decile_tier(decile) == label

    def test_invalid_decile(self):
        with pytest.raises(ValueError, match="Decile must be >= 1"):
            decile_tier(0)
        with pytest.raises(ValueError, match="Decile must be <= buckets"):
            decile_tier(5, buckets=4)

    @pytest.mark.parametrize(
        "decile,label",
        [
            (4, "Top 20% (VIP)"),
            (3, "Top 40% (High Value)"),
            (2, "Middle 40% (Regular)"),
            (1, "Bottom 40% (Occasional)"),
        ],
    )
    def test_tier_scales_with_bucket_count(self, decile, label):
        assert decile_tier(decile, buckets=4) == label

    def test_quartile_ranking_tiers(self):
        summaries = [_summary(f"C{i}", str(100 * (i + 1))) for i in range(8)]
        rankings = rank_customers(summaries, buckets=4)
        assert rankings[0].summary.customer_id == "C7"
        assert rankings[0].spending_decile == 4
        assert rankings[0].tier == "Top 20% (VIP)"
        assert rankings[-1].spending_decile == 1
        assert rankings[-1].tier == "Bottom 40% (Occasional)"

    def test_empty(self):
        assert rank_customers([]) == []


class TestSpendingQuartiles:
    """NTILE(4) spending segments."""

    def test_quartile_segments(self):
        summaries = [
            _summary("A", "100"),
            _summary("B", "800", count=2),
            _summary("C", "200"),
            _summary("D", "600", count=2),
            _summary("E", "300"),
            _summary("F", "400"),
            _summary("G", "700", count=4),
            _summary("H", "50"),
        ]
        segments = spending_quartile_segments(summaries)
        assert [s.quartile for s in segments] == [4, 3, 2, 1]
        top = segments[0]
        assert top.label == "High Value Customers (Top 25%)"
        assert top.customer_count == 2
        assert top.avg_total_spent == Decimal("750.00")  # B, G
        assert top.avg_transactions == Decimal("3.0")
        assert top.avg_transaction_value == Decimal("287.50")  # (400 + 175) / 2
        assert segments[-1].avg_total_spent == Decimal("75.00")  # A, H

    def test_empty(self):
        assert spending_quartile_segments([]) == []

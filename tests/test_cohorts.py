"""Unit tests for monthly cohorts and retention matrices."""

from datetime import date, time
from decimal import Decimal

import pytest

from retail_sales_audit.analyses.cohorts import (
    CohortDefinition,
    CohortRetention,
    assign_cohorts,
    build_cohort_retention,
    cohort_period,
    create_monthly_cohorts,
    period_offset,
    retention_rate,
)
from retail_sales_audit.foundation.records import Gender, TransactionRecord


def _record(tid, customer_id, sale_date):
    return TransactionRecord(
        transaction_id=tid,
        sale_date=sale_date,
        sale_time=time(11, 0),
        customer_id=customer_id,
        gender=Gender.FEMALE,
        age=35,
        category="Beauty",
        quantity=1,
        unit_price=Decimal("30"),
        cogs=Decimal("9"),
        total_sale=Decimal("30"),
    )


@pytest.fixture
def records():
    return [
        _record("1", "C1", date(2023, 2, 3)),
        _record("2", "C1", date(2023, 1, 15)),
        _record("3", "C2", date(2023, 1, 30)),
        _record("4", "C3", date(2023, 3, 2)),
        _record("5", "C2", date(2023, 2, 14)),
        _record("6", "C1", date(2023, 4, 20)),
        _record("7", "C3", date(2024, 1, 5)),
        _record("8", "C1", date(2023, 2, 20)),
    ]


class TestCohortDefinition:
    """Test CohortDefinition dataclass validation."""

    def test_for_month(self):
        cohort = CohortDefinition.for_month(2023, 12)
        assert cohort.cohort_id == "2023-12"
        assert cohort.start_date == date(2023, 12, 1)
        assert cohort.end_date == date(2024, 1, 1)

    def test_contains(self):
        cohort = CohortDefinition.for_month(2023, 2)
        assert cohort.contains(date(2023, 2, 28))
        assert not cohort.contains(date(2023, 3, 1))

    def test_validation_fails_when_start_equals_end(self):
        with pytest.raises(ValueError, match="start_date must be before end_date"):
            CohortDefinition("bad", date(2023, 1, 1), date(2023, 1, 1))


class TestPeriods:
    """Cohort month and period offset arithmetic."""

    def test_cohort_period(self):
        assert cohort_period(date(2023, 7, 19)).cohort_id == "2023-07"

    def test_offset_within_year(self):
        assert period_offset(date(2023, 4, 20), CohortDefinition.for_month(2023, 1)) == 3

    def test_offset_across_year_boundary(self):
        assert period_offset(date(2024, 1, 5), CohortDefinition.for_month(2023, 3)) == 10

    def test_same_month_is_offset_zero(self):
        assert period_offset(date(2023, 1, 31), CohortDefinition.for_month(2023, 1)) == 0

    def test_offset_before_cohort_raises(self):
        with pytest.raises(ValueError, match="precedes cohort 2023-03"):
            period_offset(date(2023, 2, 28), CohortDefinition.for_month(2023, 3))

    def test_create_monthly_cohorts(self):
        cohorts = create_monthly_cohorts(date(2022, 11, 5), date(2023, 1, 2))
        assert [c.cohort_id for c in cohorts] == ["2022-11", "2022-12", "2023-01"]

    def test_create_monthly_cohorts_start_after_end(self):
        with pytest.raises(ValueError, match="start must not be after end"):
            create_monthly_cohorts(date(2023, 2, 1), date(2023, 1, 1))


class TestAssignCohorts:
    """Customers are placed by their earliest transaction, whatever the input order."""

    def test_earliest_transaction_wins(self, records):
        assignments = assign_cohorts(records)
        assert assignments["C1"].cohort_id == "2023-01"
        assert assignments["C2"].cohort_id == "2023-01"
        assert assignments["C3"].cohort_id == "2023-03"

    def test_empty(self):
        assert assign_cohorts([]) == {}


class TestCohortRetention:
    """Retention rows and validation."""

    def test_retention_percentages(self):
        row = CohortRetention(CohortDefinition.for_month(2023, 1), 3, {0: 3, 1: 1, 2: 2})
        assert row.cohort_id == "2023-01"
        assert row.retention == {0: Decimal("100.00"), 1: Decimal("33.33"), 2: Decimal("66.67")}
        assert row.retention_at(9) == Decimal("0")

    def test_active_count_above_size_raises(self):
        with pytest.raises(ValueError, match="outside 0..2"):
            CohortRetention(CohortDefinition.for_month(2023, 1), 2, {0: 3})

    def test_negative_offset_raises(self):
        with pytest.raises(ValueError, match="period offset must be >= 0"):
            CohortRetention(CohortDefinition.for_month(2023, 1), 2, {-1: 1})

    def test_zero_cohort_size_rate_is_zero(self):
        assert retention_rate(0, 0) == Decimal("0")


class TestBuildCohortRetention:
    """Retention matrix."""

    def test_matrix(self, records):
        matrix = build_cohort_retention(records)
        assert list(matrix) == ["2023-01", "2023-03"]

        january = matrix["2023-01"]
        assert january.cohort_size == 2
        assert dict(january.active_counts) == {0: 2, 1: 2, 2: 0, 3: 1}
        assert january.retention == {
            0: Decimal("100.00"),
            1: Decimal("100.00"),
            2: Decimal("0"),
            3: Decimal("50.00"),
        }

        march = matrix["2023-03"]
        assert march.cohort_size == 1
        assert len(march.active_counts) == 11
        assert march.active_counts[10] == 1
        assert march.active_counts[5] == 0

    def test_customer_counted_once_per_offset(self, records):
        """C1 buys twice in February; the offset-1 count is still distinct customers."""
        assert build_cohort_retention(records)["2023-01"].active_counts[1] == 2

    def test_offset_zero_equals_cohort_size(self, records):
        for row in build_cohort_retention(records, include_empty=True).values():
            if row.cohort_size:
                assert row.active_counts[0] == row.cohort_size
                assert all(offset >= 0 for offset in row.active_counts)

    def test_max_offset(self, records):
        matrix = build_cohort_retention(records, max_offset=1)
        assert dict(matrix["2023-01"].active_counts) == {0: 2, 1: 2}
        assert dict(matrix["2023-03"].active_counts) == {0: 1, 1: 0}

    def test_include_empty_fills_gaps(self, records):
        matrix = build_cohort_retention(records, include_empty=True)
        assert list(matrix) == ["2023-01", "2023-02", "2023-03"]
        february = matrix["2023-02"]
        assert february.cohort_size == 0
        assert february.retention_at(0) == Decimal("0")

    def test_negative_max_offset_raises(self, records):
        with pytest.raises(ValueError, match="max_offset must be >= 0"):
            build_cohort_retention(records, max_offset=-1)

    def test_empty(self):
        assert build_cohort_retention([]) == {}

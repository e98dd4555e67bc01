"""Tests for window functions (rank, percent rank, N-tile, lag/lead, moving windows)."""

from decimal import Decimal

import pytest

from retail_sales_audit.analyses.windows import (
    difference,
    lag,
    lead,
    moving_aggregate,
    ntile,
    ordered_positions,
    partitioned,
    percent_rank,
    rank,
    rank_rows,
    running_total,
    sequence_rows,
)


class TestRank:
    """Competition ranking (RANK)."""

    def test_descending_by_default(self):
        assert rank([300, 100, 300, 200]) == [1, 4, 1, 3]

    def test_ascending(self):
        assert rank([300, 100, 300, 200], descending=False) == [3, 1, 3, 2]

    def test_key_function(self):
        rows = [{"spend": 5}, {"spend": 9}, {"spend": 1}]
        assert rank(rows, key=lambda r: r["spend"]) == [2, 1, 3]

    def test_ties_share_lowest_rank_and_skip(self):
        assert rank([10, 10, 10, 5]) == [1, 1, 1, 4]

    def test_single_row(self):
        assert rank([42]) == [1]

    def test_empty(self):
        assert rank([]) == []

    def test_rank_is_monotonic_in_key(self):
        """Equal keys get equal ranks; a larger key never ranks worse."""
        values = [7, 3, 9, 3, 1, 9, 4, 7, 7]
        ranks = rank(values)
        for i, a in enumerate(values):
            for j, b in enumerate(values):
                if a == b:
                    assert ranks[i] == ranks[j]
                elif a > b:
                    assert ranks[i] < ranks[j]


class TestOrderedPositions:
    """Stable ordering used for every tie-break."""

    def test_ties_keep_input_order_ascending(self):
        assert ordered_positions([2, 1, 2, 1]) == [1, 3, 0, 2]

    def test_ties_keep_input_order_descending(self):
        assert ordered_positions([2, 1, 2, 1], descending=True) == [0, 2, 1, 3]


class TestPercentRank:
    """PERCENT_RANK * 100."""

    def test_values(self):
        assert percent_rank([10, 20, 30, 40, 50]) == [
            Decimal("0"),
            Decimal("25"),
            Decimal("50"),
            Decimal("75"),
            Decimal("100"),
        ]

    def test_ties_share_value(self):
        assert percent_rank([10, 20, 20]) == [Decimal("0"), Decimal("50"), Decimal("50")]

    def test_rounded_to_two_places(self):
        assert percent_rank([1, 2, 3, 4]) == [
            Decimal("0"),
            Decimal("33.33"),
            Decimal("66.67"),
            Decimal("100"),
        ]

    def test_single_row_is_zero(self):
        assert percent_rank([99]) == [Decimal("0")]

    def test_empty(self):
        assert percent_rank([]) == []


class TestNtile:
    """NTILE bucketing."""

    def test_earlier_buckets_get_extra_rows(self):
        assert ntile([5, 1, 4, 2, 3], 2) == [2, 1, 2, 1, 1]

    def test_descending(self):
        assert ntile([5, 1, 4, 2, 3], 2, descending=True) == [1, 2, 1, 2, 1]

    @pytest.mark.parametrize("rows,buckets", [(10, 3), (7, 7), (23, 5), (100, 10), (11, 4)])
    def test_bucket_sizes_differ_by_at_most_one(self, rows, buckets):
        result = ntile(list(range(rows)), buckets)
        sizes = [result.count(b) for b in range(1, buckets + 1)]
        assert max(sizes) - min(sizes) <= 1
        assert sum(sizes) == rows
        assert sizes == sorted(sizes, reverse=True)

    def test_bucket_means_non_decreasing(self):
        values = [17, 3, 99, 42, 8, 56, 23, 71, 5, 64, 30, 12]
        result = ntile(values, 4)
        means = []
        for bucket in range(1, 5):
            members = [v for v, b in zip(values, result) if b == bucket]
            means.append(sum(members) / len(members))
        assert means == sorted(means)

    def test_fewer_rows_than_buckets(self):
        assert ntile([30, 10, 20], 5) == [3, 1, 2]

    def test_single_row_is_bucket_one(self):
        for buckets in (1, 4, 10):
            assert ntile([7], buckets) == [1]

    def test_ties_split_by_input_order(self):
        assert ntile([1, 1, 1, 1], 2) == [1, 1, 2, 2]

    def test_deterministic(self):
        values = [3, 1, 3, 2, 1, 3]
        assert ntile(values, 3) == ntile(list(values), 3)

    def test_empty(self):
        assert ntile([], 4) == []

    @pytest.mark.parametrize("buckets", [0, -1])
    def test_invalid_bucket_count(self, buckets):
        with pytest.raises(ValueError, match="buckets must be >= 1"):
            ntile([1, 2], buckets)


class TestLagLead:
    """LAG / LEAD."""

    def test_lag_has_no_prior_value_at_start(self):
        assert lag([10, 20, 40]) == [None, 10, 20]

    def test_lag_offset(self):
        assert lag([1, 2, 3, 4], offset=2) == [None, None, 1, 2]

    def test_lead(self):
        assert lead([10, 20, 40]) == [20, 40, None]

    def test_order_by_results_aligned_with_input(self):
        rows = [("2023-01-03", 30), ("2023-01-01", 10), ("2023-01-02", 20)]
        prior = lag(rows, value=lambda r: r[1], order_by=lambda r: r[0])
        assert prior == [20, None, 10]

    def test_difference(self):
        assert difference([10, 25, 20]) == [None, Decimal("15"), Decimal("-5")]

    def test_invalid_offset(self):
        with pytest.raises(ValueError, match="offset must be >= 1"):
            lag([1, 2], offset=0)
        with pytest.raises(ValueError, match="offset must be >= 1"):
            lead([1, 2], offset=0)

    def test_empty(self):
        assert lag([]) == []
        assert lead([]) == []


class TestMovingAggregate:
    """Trailing window aggregates."""

    def test_partial_window_at_start(self):
        assert moving_aggregate([10, 20, 30, 40], window=2) == [
            Decimal("10"),
            Decimal("15"),
            Decimal("25"),
            Decimal("35"),
        ]

    def test_window_larger_than_sequence(self):
        assert moving_aggregate([3, 6, 9], window=7) == [Decimal("3"), Decimal("4.5"), Decimal("6")]

    @pytest.mark.parametrize(
        "func,expected",
        [
            ("sum", [Decimal("1"), Decimal("3"), Decimal("5")]),
            ("min", [Decimal("1"), Decimal("1"), Decimal("2")]),
            ("max", [Decimal("1"), Decimal("2"), Decimal("3")]),
        ],
    )
    def test_functions(self, func, expected):
        assert moving_aggregate([1, 2, 3], window=2, func=func) == expected

    def test_running_total(self):
        assert running_total([5, 10, 15]) == [Decimal("5"), Decimal("15"), Decimal("30")]

    def test_invalid_window(self):
        with pytest.raises(ValueError, match="window must be >= 1"):
            moving_aggregate([1, 2], window=0)

    def test_unknown_function(self):
        with pytest.raises(ValueError, match="Unknown window function"):
            moving_aggregate([1, 2], func="median")

    def test_empty(self):
        assert moving_aggregate([], window=3) == []


class TestPartitioned:
    """Window functions applied per partition."""

    def test_rank_per_partition(self):
        rows = [("a", 1), ("b", 5), ("a", 3), ("b", 2)]
        result = partitioned(rows, lambda r: r[0], rank, key=lambda r: r[1])
        assert result == [2, 1, 1, 2]

    def test_lag_per_partition(self):
        rows = [("a", 1), ("b", 5), ("a", 3), ("b", 2)]
        result = partitioned(rows, lambda r: r[0], lag, value=lambda r: r[1])
        assert result == [None, None, 1, 5]

    def test_empty(self):
        assert partitioned([], lambda r: r, rank) == []


class TestAnnotatedRows:
    """rank_rows / sequence_rows convenience wrappers."""

    def test_rank_rows(self):
        ranked = rank_rows([100, 300, 200], buckets=2)
        assert [item.row for item in ranked] == [300, 200, 100]
        assert [item.rank for item in ranked] == [1, 2, 3]
        assert [item.percentile_rank for item in ranked] == [
            Decimal("100"),
            Decimal("50"),
            Decimal("0"),
        ]
        assert [item.bucket for item in ranked] == [2, 1, 1]
        assert [item.position for item in ranked] == [1, 2, 0]

    def test_single_row(self):
        (item,) = rank_rows(["only"], buckets=10)
        assert (item.rank, item.percentile_rank, item.bucket) == (1, Decimal("0"), 1)

    def test_sequence_rows(self):
        rows = [("d3", 30), ("d1", 10), ("d2", 20)]
        annotated = sequence_rows(rows, value=lambda r: r[1], window=2, order_by=lambda r: r[0])
        assert [item.row[0] for item in annotated] == ["d1", "d2", "d3"]
        assert [item.prior_value for item in annotated] == [None, 10, 20]
        assert [item.delta for item in annotated] == [None, Decimal("10"), Decimal("10")]
        assert [item.window_average for item in annotated] == [
            Decimal("10"),
            Decimal("15"),
            Decimal("25"),
        ]
        assert [item.running_total for item in annotated] == [
            Decimal("10"),
            Decimal("30"),
            Decimal("60"),
        ]

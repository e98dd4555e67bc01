"""Grouped multi-metric aggregation over transaction records.

Aggregation is a two-pass process:

1. :func:`aggregate` buckets records by a key tuple (first-occurrence
   order) and computes count / sum / avg / min / max / stddev per group.
2. :func:`with_shares` runs over the finished group set and expresses a
   metric as a percentage of its total across all groups, or across the
   groups sharing part of the key. Shares cannot be known before every
   group total exists, so this is always a separate pass.

Standard deviation within groups uses the **sample** estimator
(divide by ``n - 1``); a single-row group has a defined stddev of 0.
:func:`describe` additionally reports the **population** estimator used
by the outlier detector.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from retail_sales_audit.foundation.records import (
    NUMERIC_FIELDS,
    TransactionRecord,
    numeric_value,
    resolve_field,
)

# Percentages are reported with 2 decimal places (e.g., 34.25%)
PERCENTAGE_PRECISION = Decimal("0.01")


class MetricKind(str, Enum):
    """Supported aggregate functions."""

    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    STDDEV = "stddev"


@dataclass(frozen=True)
class Metric:
    """An aggregate function applied to a record field.

    Use the constructors (``Metric.sum("total_sale")``) rather than
    building instances directly. ``alias`` overrides the output column
    name, which otherwise defaults to ``"<kind>_<field>"`` (or
    ``"count"``).
    """

    kind: MetricKind
    field: str | None = None
    alias: str | None = None

    def __post_init__(self) -> None:
        if self.kind is MetricKind.COUNT:
            if self.field is not None:
                raise ValueError("count does not take a field")
            return
        if self.field is None:
            raise ValueError(f"{self.kind.value} requires a field")
        resolve_field(self.field)
        if self.kind in (MetricKind.SUM, MetricKind.AVG, MetricKind.STDDEV):
            if self.field not in NUMERIC_FIELDS:
                raise ValueError(
                    f"{self.kind.value} requires a numeric field, got '{self.field}'"
                )

    @property
    def name(self) -> str:
        if self.alias:
            return self.alias
        if self.kind is MetricKind.COUNT:
            return "count"
        return f"{self.kind.value}_{self.field}"

    @classmethod
    def count(cls, alias: str | None = None) -> "Metric":
        return cls(MetricKind.COUNT, None, alias)

    @classmethod
    def sum(cls, field: str, alias: str | None = None) -> "Metric":
        return cls(MetricKind.SUM, field, alias)

    @classmethod
    def avg(cls, field: str, alias: str | None = None) -> "Metric":
        return cls(MetricKind.AVG, field, alias)

    @classmethod
    def min(cls, field: str, alias: str | None = None) -> "Metric":
        return cls(MetricKind.MIN, field, alias)

    @classmethod
    def max(cls, field: str, alias: str | None = None) -> "Metric":
        return cls(MetricKind.MAX, field, alias)

    @classmethod
    def stddev(cls, field: str, alias: str | None = None) -> "Metric":
        return cls(MetricKind.STDDEV, field, alias)


@dataclass(frozen=True)
class AggregateRow:
    """Metrics for one group.

    Attributes
    ----------
    group_by:
        Names of the grouping fields, aligned with ``key``.
    key:
        Group key values.
    metrics:
        Metric name to value. Numeric metrics are ``Decimal`` (``int`` for
        counts); min/max of non-numeric fields keep the field's type.
    shares:
        Percentage-of-total values added by :func:`with_shares`, keyed by
        ``"<metric>_share"``.
    """

    group_by: tuple[str, ...]
    key: tuple[Any, ...]
    metrics: Mapping[str, Any]
    shares: Mapping[str, Decimal] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        if name in self.metrics:
            return self.metrics[name]
        if name in self.shares:
            return self.shares[name]
        if name in self.group_by:
            return self.key[self.group_by.index(name)]
        raise KeyError(name)

    def key_value(self, name: str) -> Any:
        """Value of grouping field ``name`` for this row."""
        try:
            return self.key[self.group_by.index(name)]
        except ValueError:
            raise KeyError(f"'{name}' is not a grouping field of {self.group_by}") from None


@dataclass(frozen=True)
class FieldStatistics:
    """Global summary statistics for a numeric field.

    Attributes
    ----------
    field:
        Field the statistics describe.
    count:
        Number of values.
    total:
        Sum of values.
    mean:
        Arithmetic mean.
    minimum, maximum:
        Extremes.
    sample_stddev:
        Standard deviation with the ``n - 1`` divisor (0 for one value).
    population_stddev:
        Standard deviation with the ``n`` divisor.
    """

    field: str
    count: int
    total: Decimal
    mean: Decimal
    minimum: Decimal
    maximum: Decimal
    sample_stddev: Decimal
    population_stddev: Decimal


def sample_stddev(values: Sequence[Decimal]) -> Decimal:
    """Sample standard deviation; 0 for fewer than two values."""
    n = len(values)
    if n < 2:
        return Decimal("0")
    mean = sum(values, Decimal("0")) / n
    squares = sum(((v - mean) ** 2 for v in values), Decimal("0"))
    return (squares / (n - 1)).sqrt()


def population_stddev(values: Sequence[Decimal]) -> Decimal:
    """Population standard deviation; 0 for an empty sequence."""
    n = len(values)
    if n == 0:
        return Decimal("0")
    mean = sum(values, Decimal("0")) / n
    squares = sum(((v - mean) ** 2 for v in values), Decimal("0"))
    return (squares / n).sqrt()


def percentage(part: Decimal | int, whole: Decimal | int) -> Decimal:
    """``part / whole * 100`` rounded to 2 places; 0 when ``whole`` is 0."""
    if whole == 0:
        return Decimal("0")
    return (Decimal(part) / Decimal(whole) * 100).quantize(
        PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP
    )


def aggregate(
    records: Iterable[TransactionRecord],
    group_by: Sequence[str],
    metrics: Sequence[Metric],
) -> list[AggregateRow]:
    """Group records and compute metrics per group.

    Parameters
    ----------
    records:
        Records to aggregate.
    group_by:
        Ordered field names forming the group key. An empty sequence
        yields a single global row (or none for empty input).
    metrics:
        Metrics to compute. Names must be unique.

    Returns
    -------
    list[AggregateRow]
        One row per distinct key, in order of first occurrence.

    Raises
    ------
    ValueError
        If a field is unknown or metric names collide.

    Examples
    --------
    >>> rows = aggregate(records, ["category"], [Metric.count(), Metric.sum("total_sale")])  # doctest: +SKIP
    >>> rows[0]["sum_total_sale"]  # doctest: +SKIP
    Decimal('311070.00')
    """
    selectors = [resolve_field(name) for name in group_by]
    names = [metric.name for metric in metrics]
    if len(set(names)) != len(names):
        raise ValueError(f"Metric names must be unique: {names}")

    buckets: dict[tuple[Any, ...], list[TransactionRecord]] = {}
    for record in records:
        key = tuple(selector(record) for selector in selectors)
        buckets.setdefault(key, []).append(record)

    rows: list[AggregateRow] = []
    for key, members in buckets.items():
        values = {metric.name: _compute(metric, members) for metric in metrics}
        rows.append(AggregateRow(group_by=tuple(group_by), key=key, metrics=values))
    return rows


def _compute(metric: Metric, members: Sequence[TransactionRecord]) -> Any:
    if metric.kind is MetricKind.COUNT:
        return len(members)

    assert metric.field is not None
    if metric.kind in (MetricKind.MIN, MetricKind.MAX):
        selector = resolve_field(metric.field)
        raw = [selector(record) for record in members]
        return min(raw) if metric.kind is MetricKind.MIN else max(raw)

    values = [numeric_value(record, metric.field) for record in members]
    if metric.kind is MetricKind.SUM:
        return sum(values, Decimal("0"))
    if metric.kind is MetricKind.AVG:
        return sum(values, Decimal("0")) / len(values)
    return sample_stddev(values)


def with_shares(
    rows: Sequence[AggregateRow],
    metric_names: Sequence[str],
    within: Sequence[str] | None = None,
) -> list[AggregateRow]:
    """Second pass: add percentage-of-total shares for the given metrics.

    Parameters
    ----------
    rows:
        Complete output of :func:`aggregate`.
    metric_names:
        Metrics to express as shares. Each share is stored as
        ``"<metric>_share"``.
    within:
        Optional subset of the grouping fields. When given, totals are
        taken over rows sharing those key values (e.g., gender share
        within each category) instead of over all rows.

    Returns
    -------
    list[AggregateRow]
        New rows in the same order, with shares populated.
    """
    if not rows:
        return []
    within = tuple(within or ())
    for name in metric_names:
        if name not in rows[0].metrics:
            raise ValueError(f"Unknown metric '{name}'. Available: {list(rows[0].metrics)}")

    def partition_key(row: AggregateRow) -> tuple[Any, ...]:
        return tuple(row.key_value(name) for name in within)

    totals: dict[tuple[Any, ...], dict[str, Decimal]] = {}
    for row in rows:
        bucket = totals.setdefault(
            partition_key(row), {name: Decimal("0") for name in metric_names}
        )
        for name in metric_names:
            bucket[name] += Decimal(row.metrics[name])

    shared: list[AggregateRow] = []
    for row in rows:
        bucket = totals[partition_key(row)]
        shares = dict(row.shares)
        for name in metric_names:
            shares[f"{name}_share"] = percentage(Decimal(row.metrics[name]), bucket[name])
        shared.append(replace(row, shares=shares))
    return shared


def describe(records: Iterable[TransactionRecord], field: str) -> FieldStatistics | None:
    """Single global pass of summary statistics for a numeric field.

    Returns ``None`` for an empty input.
    """
    if field not in NUMERIC_FIELDS:
        resolve_field(field)
        raise ValueError(f"describe requires a numeric field, got '{field}'")
    values = [numeric_value(record, field) for record in records]
    if not values:
        return None
    total = sum(values, Decimal("0"))
    return FieldStatistics(
        field=field,
        count=len(values),
        total=total,
        mean=total / len(values),
        minimum=min(values),
        maximum=max(values),
        sample_stddev=sample_stddev(values),
        population_stddev=population_stddev(values),
    )

"""Window functions over ordered partitions.

Explicit, independently testable replacements for the SQL window
functions the retail analysis relies on (``RANK``, ``PERCENT_RANK``,
``NTILE``, ``LAG``/``LEAD`` and framed ``SUM``/``AVG``).

Conventions shared by every function:

- ``rows`` is any sequence; ``key``/``value``/``order_by`` are callables
  applied to each row (``None`` means the row itself is the value).
- Results are aligned with the **input** positions: ``result[i]``
  belongs to ``rows[i]`` whatever the ordering.
- Ties on the ordering key are broken by original position, so the
  output is deterministic for identical input.
- An empty input returns an empty list. Invalid parameters (bucket count,
  window size or offset below 1) raise ``ValueError``.

Quick Start
-----------
>>> rank([300, 100, 300, 200])
[1, 4, 1, 3]
>>> ntile([5, 1, 4, 2, 3], 2)
[2, 1, 2, 1, 1]
>>> lag([10, 20, 40])
[None, 10, 20]
>>> moving_aggregate([10, 20, 30, 40], window=2)
[Decimal('10'), Decimal('15'), Decimal('25'), Decimal('35')]
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Generic, Hashable, Sequence, TypeVar

T = TypeVar("T")

Selector = Callable[[Any], Any]

PERCENTILE_PRECISION = Decimal("0.01")

_AGGREGATES: dict[str, Callable[[list[Decimal]], Decimal]] = {
    "sum": lambda window: sum(window, Decimal("0")),
    "avg": lambda window: sum(window, Decimal("0")) / len(window),
    "min": min,
    "max": max,
}


@dataclass(frozen=True)
class RankedRow(Generic[T]):
    """A row annotated with window-function results.

    Attributes
    ----------
    row:
        The underlying row (aggregate row, record or summary).
    position:
        Index of the row in the input sequence.
    rank:
        Competition rank (1 = best).
    percentile_rank:
        Percent rank in ascending order, 0-100.
    bucket:
        N-tile bucket, 1..N in ascending order.
    prior_value:
        Value of the previous row in sequence order, if any.
    delta:
        Current value minus ``prior_value``, if any.
    window_average:
        Moving average over the trailing window.
    running_total:
        Cumulative sum up to and including this row.
    """

    row: T
    position: int
    rank: int | None = None
    percentile_rank: Decimal | None = None
    bucket: int | None = None
    prior_value: Any = None
    delta: Any = None
    window_average: Decimal | None = None
    running_total: Decimal | None = None


def _selector(func: Selector | None) -> Selector:
    return func if func is not None else (lambda row: row)


def _as_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def ordered_positions(
    rows: Sequence[Any], key: Selector | None = None, descending: bool = False
) -> list[int]:
    """Input positions sorted by ``key``, ties kept in input order.

    Python's sort is stable in both directions, so equal keys always keep
    their original relative order, including when ``descending`` is set.
    """
    select = _selector(key)
    keys = [select(row) for row in rows]
    return sorted(range(len(rows)), key=keys.__getitem__, reverse=descending)


def rank(
    rows: Sequence[Any], key: Selector | None = None, descending: bool = True
) -> list[int]:
    """Standard competition rank (``RANK()``).

    Tied rows share the lowest rank of their tie group; the next distinct
    value skips past the tied count (1, 1, 3, ...). With the default
    ``descending=True`` the largest value gets rank 1.
    """
    select = _selector(key)
    keys = [select(row) for row in rows]
    order = ordered_positions(rows, key, descending)
    ranks = [0] * len(rows)
    for place, pos in enumerate(order):
        if place > 0 and keys[pos] == keys[order[place - 1]]:
            ranks[pos] = ranks[order[place - 1]]
        else:
            ranks[pos] = place + 1
    return ranks


def percent_rank(rows: Sequence[Any], key: Selector | None = None) -> list[Decimal]:
    """Percent rank in ascending order (``PERCENT_RANK() * 100``).

    ``(rows with a strictly smaller key) / (n - 1) * 100``, rounded to two
    places. Tied rows share a value; a single row gets 0.
    """
    n = len(rows)
    if n == 0:
        return []
    if n == 1:
        return [Decimal("0")]
    ascending_ranks = rank(rows, key, descending=False)
    return [
        (Decimal(r - 1) / Decimal(n - 1) * 100).quantize(
            PERCENTILE_PRECISION, rounding=ROUND_HALF_UP
        )
        for r in ascending_ranks
    ]


def ntile(
    rows: Sequence[Any],
    buckets: int,
    key: Selector | None = None,
    descending: bool = False,
) -> list[int]:
    """Split rows into ``buckets`` near-equal groups (``NTILE(n)``).

    Rows are ordered by ``key`` (ascending unless ``descending``) and dealt
    into buckets 1..N in that order. When the row count is not divisible
    by N, the earlier buckets receive one extra row each, so bucket sizes
    differ by at most one. With fewer rows than buckets, each row gets its
    own bucket and the higher buckets stay empty.
    """
    if buckets < 1:
        raise ValueError(f"buckets must be >= 1, got {buckets}")
    n = len(rows)
    order = ordered_positions(rows, key, descending)
    base, extra = divmod(n, buckets)

    result = [0] * n
    place = 0
    for bucket in range(1, buckets + 1):
        size = base + (1 if bucket <= extra else 0)
        for pos in order[place : place + size]:
            result[pos] = bucket
        place += size
    return result


def _sequence_values(
    rows: Sequence[Any], value: Selector | None, order_by: Selector | None
) -> tuple[list[int], list[Any]]:
    select = _selector(value)
    order = ordered_positions(rows, order_by) if order_by is not None else list(range(len(rows)))
    return order, [select(rows[pos]) for pos in order]


def lag(
    rows: Sequence[Any],
    value: Selector | None = None,
    offset: int = 1,
    order_by: Selector | None = None,
) -> list[Any]:
    """Value ``offset`` positions back in sequence order (``LAG``).

    Rows are taken in input order unless ``order_by`` is given. Positions
    with no prior row get ``None``, never 0.
    """
    if offset < 1:
        raise ValueError(f"offset must be >= 1, got {offset}")
    order, values = _sequence_values(rows, value, order_by)
    result: list[Any] = [None] * len(rows)
    for idx, pos in enumerate(order):
        if idx - offset >= 0:
            result[pos] = values[idx - offset]
    return result


def lead(
    rows: Sequence[Any],
    value: Selector | None = None,
    offset: int = 1,
    order_by: Selector | None = None,
) -> list[Any]:
    """Value ``offset`` positions ahead in sequence order (``LEAD``)."""
    if offset < 1:
        raise ValueError(f"offset must be >= 1, got {offset}")
    order, values = _sequence_values(rows, value, order_by)
    result: list[Any] = [None] * len(rows)
    for idx, pos in enumerate(order):
        if idx + offset < len(values):
            result[pos] = values[idx + offset]
    return result


def difference(
    rows: Sequence[Any],
    value: Selector | None = None,
    offset: int = 1,
    order_by: Selector | None = None,
) -> list[Decimal | None]:
    """Current value minus the lagged value; ``None`` where there is no lag."""
    select = _selector(value)
    prior = lag(rows, value, offset=offset, order_by=order_by)
    return [
        None if before is None else _as_decimal(select(row)) - _as_decimal(before)
        for row, before in zip(rows, prior)
    ]


def moving_aggregate(
    rows: Sequence[Any],
    value: Selector | None = None,
    window: int = 7,
    func: str = "avg",
    order_by: Selector | None = None,
) -> list[Decimal]:
    """Aggregate over the trailing frame ``[i - window + 1, i]``.

    Equivalent to ``<func>(...) OVER (ORDER BY ... ROWS window-1
    PRECEDING)``. The frame is truncated at the start of the sequence
    (a partial window), never padded with zeros.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    if func not in _AGGREGATES:
        raise ValueError(f"Unknown window function '{func}'. Choose from {sorted(_AGGREGATES)}")
    aggregate = _AGGREGATES[func]
    order, values = _sequence_values(rows, value, order_by)
    decimals = [_as_decimal(v) for v in values]

    result: list[Decimal] = [Decimal("0")] * len(rows)
    for idx, pos in enumerate(order):
        frame = decimals[max(0, idx - window + 1) : idx + 1]
        result[pos] = aggregate(frame)
    return result


def running_total(
    rows: Sequence[Any],
    value: Selector | None = None,
    order_by: Selector | None = None,
) -> list[Decimal]:
    """Cumulative sum in sequence order (``ROWS UNBOUNDED PRECEDING``)."""
    order, values = _sequence_values(rows, value, order_by)
    result: list[Decimal] = [Decimal("0")] * len(rows)
    total = Decimal("0")
    for pos, v in zip(order, values):
        total += _as_decimal(v)
        result[pos] = total
    return result


def partitioned(
    rows: Sequence[T],
    partition_by: Callable[[T], Hashable],
    func: Callable[..., list[Any]],
    *args: Any,
    **kwargs: Any,
) -> list[Any]:
    """Apply a window function independently within each partition.

    ``func`` is called once per partition (rows keep their input order
    inside a partition) with ``*args``/``**kwargs``; the per-partition
    results are scattered back to the rows' input positions.

    >>> partitioned(["a1", "b5", "a3"], lambda s: s[0], rank, key=lambda s: int(s[1]))
    [2, 1, 1]
    """
    groups: dict[Hashable, list[int]] = {}
    for pos, row in enumerate(rows):
        groups.setdefault(partition_by(row), []).append(pos)

    result: list[Any] = [None] * len(rows)
    for positions in groups.values():
        members = [rows[pos] for pos in positions]
        for pos, item in zip(positions, func(members, *args, **kwargs)):
            result[pos] = item
    return result


def rank_rows(
    rows: Sequence[T],
    key: Selector | None = None,
    buckets: int = 10,
    descending: bool = True,
) -> list[RankedRow[T]]:
    """Annotate rows with rank, percentile rank and N-tile bucket.

    Rank follows ``descending`` (largest first by default) while the
    percentile rank and bucket are always computed in ascending order, as
    in ``RANK() OVER (ORDER BY x DESC)`` next to ``NTILE(n) OVER (ORDER BY
    x)``. The result is sorted by rank, ties in input order.
    """
    ranks = rank(rows, key, descending=descending)
    percentiles = percent_rank(rows, key)
    tiles = ntile(rows, buckets, key)
    annotated = [
        RankedRow(
            row=row,
            position=pos,
            rank=ranks[pos],
            percentile_rank=percentiles[pos],
            bucket=tiles[pos],
        )
        for pos, row in enumerate(rows)
    ]
    annotated.sort(key=lambda item: (item.rank, item.position))
    return annotated


def sequence_rows(
    rows: Sequence[T],
    value: Selector,
    window: int = 7,
    order_by: Selector | None = None,
) -> list[RankedRow[T]]:
    """Annotate rows in sequence order with lag, delta and window values.

    Each row receives the prior value, the change against it, the
    trailing ``window`` average and the running total. The result is
    returned in sequence order.
    """
    prior = lag(rows, value, order_by=order_by)
    deltas = difference(rows, value, order_by=order_by)
    averages = moving_aggregate(rows, value, window=window, order_by=order_by)
    totals = running_total(rows, value, order_by=order_by)
    order = ordered_positions(rows, order_by) if order_by is not None else range(len(rows))
    return [
        RankedRow(
            row=rows[pos],
            position=pos,
            prior_value=prior[pos],
            delta=deltas[pos],
            window_average=averages[pos],
            running_total=totals[pos],
        )
        for pos in order
    ]

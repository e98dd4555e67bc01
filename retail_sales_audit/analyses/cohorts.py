"""Monthly acquisition cohorts and retention matrices.

A customer's cohort is the calendar month of their earliest transaction.
Every transaction is placed at a period offset from that month::

    offset = (year - cohort_year) * 12 + (month - cohort_month)

which is never negative because the cohort month is the customer's first.
Retention at offset ``k`` is the share of the cohort's customers with at
least one transaction at that offset.

Quick Start
-----------
>>> from retail_sales_audit.analyses.cohorts import build_cohort_retention
>>> matrix = build_cohort_retention(records)  # doctest: +SKIP
>>> matrix["2022-01"].cohort_size  # doctest: +SKIP
49
>>> matrix["2022-01"].retention[1]  # doctest: +SKIP
Decimal('24.49')
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from retail_sales_audit.foundation.aggregation import percentage
from retail_sales_audit.foundation.records import TransactionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CohortDefinition:
    """A monthly acquisition cohort.

    Attributes
    ----------
    cohort_id:
        Cohort label formatted ``YYYY-MM``.
    start_date:
        Inclusive first day of the acquisition month.
    end_date:
        Exclusive first day of the following month.
    """

    cohort_id: str
    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        """Validate cohort definition constraints."""
        if self.start_date >= self.end_date:
            raise ValueError(
                f"start_date must be before end_date: "
                f"start={self.start_date.isoformat()}, end={self.end_date.isoformat()}"
            )

    @classmethod
    def for_month(cls, year: int, month: int) -> "CohortDefinition":
        start = date(year, month, 1)
        end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        return cls(cohort_id=start.strftime("%Y-%m"), start_date=start, end_date=end)

    def contains(self, day: date) -> bool:
        return self.start_date <= day < self.end_date


@dataclass(frozen=True)
class CohortRetention:
    """Retention counts for one acquisition cohort.

    Attributes
    ----------
    cohort:
        The cohort definition.
    cohort_size:
        Distinct customers acquired in the cohort month.
    active_counts:
        Period offset to distinct customers active at that offset. Offsets
        with no activity (up to the reported maximum) are present with 0.
    """

    cohort: CohortDefinition
    cohort_size: int
    active_counts: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.cohort_size < 0:
            raise ValueError(f"cohort_size must be >= 0, got {self.cohort_size}")
        for offset, active in self.active_counts.items():
            if offset < 0:
                raise ValueError(f"period offset must be >= 0, got {offset}")
            if not 0 <= active <= self.cohort_size:
                raise ValueError(
                    f"active count {active} at offset {offset} outside 0..{self.cohort_size}"
                )

    @property
    def cohort_id(self) -> str:
        return self.cohort.cohort_id

    @property
    def retention(self) -> dict[int, Decimal]:
        """Offset to retention percentage (0-100, two decimals)."""
        return {
            offset: retention_rate(active, self.cohort_size)
            for offset, active in self.active_counts.items()
        }

    def retention_at(self, offset: int) -> Decimal:
        return retention_rate(self.active_counts.get(offset, 0), self.cohort_size)


def retention_rate(active: int, cohort_size: int) -> Decimal:
    """``active / cohort_size * 100``; 0 for an empty cohort."""
    return percentage(active, cohort_size)


def cohort_period(day: date) -> CohortDefinition:
    """The monthly cohort containing ``day``."""
    return CohortDefinition.for_month(day.year, day.month)


def period_offset(day: date, cohort: CohortDefinition) -> int:
    """Whole calendar months from the cohort month to ``day``'s month.

    Raises ``ValueError`` if ``day`` falls before the cohort month.
    """
    start = cohort.start_date
    offset = (day.year - start.year) * 12 + (day.month - start.month)
    if offset < 0:
        raise ValueError(
            f"{day.isoformat()} precedes cohort {cohort.cohort_id}"
        )
    return offset


def assign_cohorts(records: Iterable[TransactionRecord]) -> dict[str, CohortDefinition]:
    """Map each customer to the cohort of their earliest transaction."""
    first_purchase: dict[str, date] = {}
    for record in records:
        current = first_purchase.get(record.customer_id)
        if current is None or record.sale_date < current:
            first_purchase[record.customer_id] = record.sale_date
    return {cid: cohort_period(day) for cid, day in first_purchase.items()}


def create_monthly_cohorts(start: date, end: date) -> list[CohortDefinition]:
    """Monthly cohort definitions covering ``start``'s month to ``end``'s month.

    >>> [c.cohort_id for c in create_monthly_cohorts(date(2022, 11, 5), date(2023, 1, 2))]
    ['2022-11', '2022-12', '2023-01']
    """
    if start > end:
        raise ValueError(
            f"start must not be after end: start={start.isoformat()}, end={end.isoformat()}"
        )
    cohorts: list[CohortDefinition] = []
    current = cohort_period(start)
    while current.start_date <= end:
        cohorts.append(current)
        current = cohort_period(current.end_date)
    return cohorts


def build_cohort_retention(
    records: Sequence[TransactionRecord],
    max_offset: int | None = None,
    include_empty: bool = False,
) -> dict[str, CohortRetention]:
    """Build the cohort retention matrix.

    Parameters
    ----------
    records:
        Validated transaction records.
    max_offset:
        Highest period offset to report (e.g., 3 for month_0..month_3).
        Defaults to the highest offset observed in each cohort.
    include_empty:
        Also report months without newly acquired customers, as cohorts
        of size 0, so the matrix has no gaps.

    Returns
    -------
    dict[str, CohortRetention]
        Cohort id to retention counts, ordered by cohort month.
    """
    if max_offset is not None and max_offset < 0:
        raise ValueError(f"max_offset must be >= 0, got {max_offset}")

    assignments = assign_cohorts(records)

    members: dict[str, set[str]] = {}
    active: dict[str, dict[int, set[str]]] = {}
    definitions: dict[str, CohortDefinition] = {}
    for customer_id, cohort in assignments.items():
        definitions[cohort.cohort_id] = cohort
        members.setdefault(cohort.cohort_id, set()).add(customer_id)

    for record in records:
        cohort = assignments[record.customer_id]
        offset = period_offset(record.sale_date, cohort)
        active.setdefault(cohort.cohort_id, {}).setdefault(offset, set()).add(
            record.customer_id
        )

    if include_empty and definitions:
        first = min(c.start_date for c in definitions.values())
        last = max(c.start_date for c in definitions.values())
        for cohort in create_monthly_cohorts(first, last):
            definitions.setdefault(cohort.cohort_id, cohort)

    matrix: dict[str, CohortRetention] = {}
    for cohort_id in sorted(definitions):
        by_offset = active.get(cohort_id, {})
        highest = max(by_offset, default=0) if max_offset is None else max_offset
        matrix[cohort_id] = CohortRetention(
            cohort=definitions[cohort_id],
            cohort_size=len(members.get(cohort_id, ())),
            active_counts={
                offset: len(by_offset.get(offset, ())) for offset in range(highest + 1)
            },
        )

    empty = [cid for cid, row in matrix.items() if row.cohort_size == 0]
    if empty:
        logger.debug("Cohorts without acquisitions: %s", empty)
    return matrix

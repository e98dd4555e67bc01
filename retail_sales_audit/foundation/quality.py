"""Data quality repair and filtering for transaction records.

Validation runs once, before any analysis. Rules are applied in a fixed
order:

1. ``cogs > total_sale`` is repaired by resetting COGS to a fraction of
   the sale (``QualityPolicy.cogs_repair_ratio``). Never a reason to drop.
2. Rows with ``quantity <= 0``, ``unit_price <= 0`` or ``total_sale <= 0``
   are dropped.
3. Implausible ages and arithmetic mismatches
   (``|quantity * unit_price - total_sale| > tolerance``) are flagged for
   manual review. They stay in the clean set unless the policy asks for
   them to be dropped.

The input sequence is never modified; repaired rows are new records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable

from retail_sales_audit.config import QualityPolicy
from retail_sales_audit.foundation.records import TransactionRecord

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class QualityIssue(str, Enum):
    """Categories of data problems detected by the validator."""

    COGS_EXCEEDS_SALE = "cogs_exceeds_sale"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_PRICE = "invalid_price"
    INVALID_TOTAL_SALE = "invalid_total_sale"
    INVALID_AGE = "invalid_age"
    CALCULATION_MISMATCH = "calculation_mismatch"


#: Issues that always remove the row.
DROPPING_ISSUES = frozenset(
    {
        QualityIssue.INVALID_QUANTITY,
        QualityIssue.INVALID_PRICE,
        QualityIssue.INVALID_TOTAL_SALE,
    }
)


@dataclass(frozen=True)
class QualityReport:
    """Outcome of a validation pass.

    Attributes
    ----------
    input_count:
        Rows received.
    retained_count:
        Rows in the clean set.
    dropped_count:
        Rows removed (each row counted once even with several issues).
    repaired_count:
        Retained or dropped rows whose COGS was repaired.
    issue_counts:
        Number of rows exhibiting each issue. A row may count towards
        several issues.
    flagged_ids:
        Transaction ids per issue, for manual review.
    """

    input_count: int
    retained_count: int
    dropped_count: int
    repaired_count: int
    issue_counts: dict[QualityIssue, int] = field(default_factory=dict)
    flagged_ids: dict[QualityIssue, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.retained_count + self.dropped_count != self.input_count:
            raise ValueError(
                f"retained ({self.retained_count}) + dropped ({self.dropped_count}) "
                f"!= input ({self.input_count})"
            )

    @property
    def has_issues(self) -> bool:
        return any(self.issue_counts.values())


def validate(
    records: Iterable[TransactionRecord],
    policy: QualityPolicy | None = None,
) -> tuple[list[TransactionRecord], QualityReport]:
    """Repair, filter and flag transaction records.

    Parameters
    ----------
    records:
        Parsed transaction records.
    policy:
        Repair ratio, tolerance and age bounds. Defaults to
        :class:`~retail_sales_audit.config.QualityPolicy`.

    Returns
    -------
    tuple[list[TransactionRecord], QualityReport]
        The clean records in input order and a report of what was found.

    Examples
    --------
    >>> from datetime import date, time
    >>> from decimal import Decimal
    >>> from retail_sales_audit.foundation.records import Gender, TransactionRecord
    >>> record = TransactionRecord(
    ...     "1", date(2023, 1, 5), time(10, 0), "C1", Gender.FEMALE, 30,
    ...     "Beauty", 1, Decimal("100"), Decimal("150"), Decimal("100"),
    ... )
    >>> clean, report = validate([record])
    >>> clean[0].cogs
    Decimal('70.00')
    >>> report.repaired_count
    1
    """
    policy = policy or QualityPolicy()

    clean: list[TransactionRecord] = []
    flagged: dict[QualityIssue, list[str]] = {issue: [] for issue in QualityIssue}
    input_count = 0
    dropped = 0
    repaired = 0

    for record in records:
        input_count += 1
        issues: list[QualityIssue] = []

        if record.cogs > record.total_sale:
            issues.append(QualityIssue.COGS_EXCEEDS_SALE)
            record = replace(
                record,
                cogs=(record.total_sale * policy.cogs_repair_ratio).quantize(
                    CENTS, rounding=ROUND_HALF_UP
                ),
            )
            repaired += 1

        if record.quantity <= 0:
            issues.append(QualityIssue.INVALID_QUANTITY)
        if record.unit_price <= 0:
            issues.append(QualityIssue.INVALID_PRICE)
        if record.total_sale <= 0:
            issues.append(QualityIssue.INVALID_TOTAL_SALE)
        if not policy.min_age <= record.age <= policy.max_age:
            issues.append(QualityIssue.INVALID_AGE)
        if abs(record.quantity * record.unit_price - record.total_sale) > policy.tolerance:
            issues.append(QualityIssue.CALCULATION_MISMATCH)

        for issue in issues:
            flagged[issue].append(record.transaction_id)

        drop = any(issue in DROPPING_ISSUES for issue in issues)
        if policy.drop_invalid_age and QualityIssue.INVALID_AGE in issues:
            drop = True
        if policy.drop_calculation_mismatch and QualityIssue.CALCULATION_MISMATCH in issues:
            drop = True

        if drop:
            dropped += 1
        else:
            clean.append(record)

    report = QualityReport(
        input_count=input_count,
        retained_count=len(clean),
        dropped_count=dropped,
        repaired_count=repaired,
        issue_counts={issue: len(ids) for issue, ids in flagged.items()},
        flagged_ids={issue: tuple(ids) for issue, ids in flagged.items()},
    )

    review = [
        issue
        for issue in (QualityIssue.INVALID_AGE, QualityIssue.CALCULATION_MISMATCH)
        if report.issue_counts[issue]
    ]
    if review:
        logger.warning(
            "Rows flagged for manual review: %s",
            {issue.value: report.issue_counts[issue] for issue in review},
        )
    return clean, report

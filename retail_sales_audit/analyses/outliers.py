"""Z-score outlier detection over a single numeric field.

Statistics are taken in one global pass with the **population**
estimator (divide by ``n``), unlike the per-group sample stddev of the
aggregation engine. A record is reported when ``|z| > threshold_sigma``
and labelled by severity bands (``|z| > 3`` Extreme, ``|z| > 2``
Moderate, otherwise Normal).

If every value is identical the stddev is 0; nothing can be an outlier
and the result is empty.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Sequence

from retail_sales_audit.config import OutlierBands
from retail_sales_audit.foundation.aggregation import describe
from retail_sales_audit.foundation.records import TransactionRecord, numeric_value


class OutlierSeverity(str, Enum):
    EXTREME = "Extreme"
    MODERATE = "Moderate"
    NORMAL = "Normal"


@dataclass(frozen=True)
class Outlier:
    """A flagged record with its deviation from the dataset mean.

    Attributes
    ----------
    record:
        The flagged transaction.
    field:
        Field the z-score was computed on.
    value:
        The record's value of ``field``.
    mean:
        Dataset mean of ``field``.
    z_score:
        ``(value - mean) / population_stddev``.
    severity:
        Severity band of ``|z_score|``.
    """

    record: TransactionRecord
    field: str
    value: Decimal
    mean: Decimal
    z_score: Decimal
    severity: OutlierSeverity


def classify_severity(z_score: Decimal, bands: OutlierBands | None = None) -> OutlierSeverity:
    bands = bands or OutlierBands()
    magnitude = abs(z_score)
    if magnitude > Decimal(str(bands.extreme)):
        return OutlierSeverity.EXTREME
    if magnitude > Decimal(str(bands.moderate)):
        return OutlierSeverity.MODERATE
    return OutlierSeverity.NORMAL


def detect_outliers(
    records: Sequence[TransactionRecord],
    field: str = "total_sale",
    threshold_sigma: float = 2.0,
    bands: OutlierBands | None = None,
) -> list[Outlier]:
    """Flag records whose ``field`` deviates more than ``threshold_sigma``.

    Parameters
    ----------
    records:
        The full dataset; mean and stddev are taken over all of it.
    field:
        Numeric field to test (``total_sale``, ``unit_price``, ``profit``...).
    threshold_sigma:
        Minimum ``|z|`` (exclusive) for a record to be reported. Must be > 0.
        A threshold below ``bands.moderate`` also reports records whose
        severity is Normal; :class:`~retail_sales_audit.config.AuditConfig`
        rejects that combination for pipeline runs.
    bands:
        Severity boundaries; defaults to 3 (Extreme) and 2 (Moderate).

    Returns
    -------
    list[Outlier]
        Sorted by ``|z|`` descending; ties keep dataset order.

    Raises
    ------
    ValueError
        If ``threshold_sigma <= 0`` or ``field`` is not a numeric field.
    """
    if threshold_sigma <= 0:
        raise ValueError(f"threshold_sigma must be > 0, got {threshold_sigma}")

    stats = describe(records, field)
    if stats is None or stats.population_stddev == 0:
        return []

    threshold = Decimal(str(threshold_sigma))
    outliers: list[Outlier] = []
    for record in records:
        value = numeric_value(record, field)
        z_score = (value - stats.mean) / stats.population_stddev
        if abs(z_score) > threshold:
            outliers.append(
                Outlier(
                    record=record,
                    field=field,
                    value=value,
                    mean=stats.mean,
                    z_score=z_score,
                    severity=classify_severity(z_score, bands),
                )
            )

    outliers.sort(key=lambda o: abs(o.z_score), reverse=True)
    return outliers

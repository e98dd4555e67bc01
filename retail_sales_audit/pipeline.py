"""End-to-end audit run over a batch of raw transactions.

The pipeline owns the dataset: it parses raw rows, validates them once,
freezes the result into a :class:`~retail_sales_audit.foundation.records.Dataset`
and hands that read-only view to every analysis.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping

import structlog

from retail_sales_audit.analyses.breakdowns import (
    DatasetOverview,
    SalesBreakdown,
    age_group_breakdown,
    category_by_age_group,
    category_by_gender,
    dataset_overview,
    gender_breakdown,
    high_value_transactions,
    hourly_breakdown,
    monthly_breakdown,
    pricing_statistics,
    product_mix,
    seasonal_breakdown,
    weekday_breakdown,
)
from retail_sales_audit.analyses.cohorts import CohortRetention, build_cohort_retention
from retail_sales_audit.analyses.outliers import Outlier, detect_outliers
from retail_sales_audit.analyses.performance import (
    CategoryPerformance,
    CategoryProfitability,
    DailyTrend,
    category_performance,
    category_profitability,
    daily_sales_trend,
)
from retail_sales_audit.analyses.rfm import RFMProfile, calculate_rfm
from retail_sales_audit.analyses.segmentation import (
    CustomerRanking,
    CustomerSummary,
    CustomerTier,
    SpendingSegment,
    classify_value_tiers,
    rank_customers,
    spending_quartile_segments,
    summarize_customers,
)
from retail_sales_audit.config import AuditConfig
from retail_sales_audit.foundation.aggregation import FieldStatistics, describe
from retail_sales_audit.foundation.quality import QualityReport, validate
from retail_sales_audit.foundation.records import (
    Dataset,
    TransactionContract,
    TransactionRecord,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuditReport:
    """Every derived view of one audit run."""

    reference_date: date
    dataset: Dataset
    quality: QualityReport
    statistics: FieldStatistics | None
    customers: list[CustomerSummary]
    value_tiers: list[CustomerTier]
    rankings: list[CustomerRanking]
    spending_segments: list[SpendingSegment]
    rfm: list[RFMProfile]
    cohorts: dict[str, CohortRetention]
    outliers: list[Outlier]
    daily_trend: list[DailyTrend]
    categories: list[CategoryPerformance]
    profitability: list[CategoryProfitability]
    overview: DatasetOverview | None
    pricing: list[FieldStatistics]
    gender: list[SalesBreakdown]
    age_groups: list[SalesBreakdown]
    months: list[SalesBreakdown]
    weekdays: list[SalesBreakdown]
    hours: list[SalesBreakdown]
    seasons: list[SalesBreakdown]
    category_by_gender: list[SalesBreakdown]
    category_by_age_group: list[SalesBreakdown]
    product_mix: list[SalesBreakdown]
    high_value: list[TransactionRecord]


def run_audit(
    raw_records: Iterable[Mapping[str, Any]],
    reference_date: date,
    config: AuditConfig | None = None,
) -> AuditReport:
    """Parse, validate and analyse a batch of transactions.

    Parameters
    ----------
    raw_records:
        Typed raw rows (see :class:`TransactionContract`).
    reference_date:
        Date recency is measured against for RFM scoring.
    config:
        Thresholds and parameters; defaults to :class:`AuditConfig`.

    Raises
    ------
    ValueError, TypeError
        For malformed input rows, invalid configuration or a reference
        date earlier than a transaction.
    """
    config = config or AuditConfig()
    log = logger.bind(reference_date=reference_date.isoformat())
    started = time.perf_counter()

    parsed = TransactionContract().parse_records(raw_records)
    log.info("records_parsed", count=len(parsed))

    clean, quality = validate(parsed, config.quality)
    dataset = Dataset(clean)
    log.info(
        "records_validated",
        retained=quality.retained_count,
        dropped=quality.dropped_count,
        repaired=quality.repaired_count,
        issues={issue.value: count for issue, count in quality.issue_counts.items() if count},
    )

    customers = summarize_customers(dataset)
    tiers = classify_value_tiers(customers, config.value_tiers)
    rankings = rank_customers(customers, buckets=config.ranking_buckets)
    segments = spending_quartile_segments(customers)
    log.info("customers_segmented", customers=len(customers))

    rfm = calculate_rfm(dataset, reference_date)
    log.info("rfm_scored", customers=len(rfm))

    cohorts = build_cohort_retention(dataset, max_offset=config.cohort_max_offset)
    log.info("cohorts_built", cohorts=len(cohorts))

    outliers = detect_outliers(
        dataset,
        field=config.outlier_field,
        threshold_sigma=config.outlier_threshold_sigma,
        bands=config.outlier_bands,
    )
    log.info(
        "outliers_detected",
        field=config.outlier_field,
        threshold_sigma=config.outlier_threshold_sigma,
        count=len(outliers),
    )

    high_value = high_value_transactions(dataset, config.high_value_minimum)
    log.info(
        "high_value_listed",
        minimum=str(config.high_value_minimum),
        count=len(high_value),
    )

    report = AuditReport(
        reference_date=reference_date,
        dataset=dataset,
        quality=quality,
        statistics=describe(dataset, "total_sale"),
        customers=customers,
        value_tiers=tiers,
        rankings=rankings,
        spending_segments=segments,
        rfm=rfm,
        cohorts=cohorts,
        outliers=outliers,
        daily_trend=daily_sales_trend(dataset, window=config.trend_window),
        categories=category_performance(dataset),
        profitability=category_profitability(dataset),
        overview=dataset_overview(dataset),
        pricing=pricing_statistics(dataset),
        gender=gender_breakdown(dataset),
        age_groups=age_group_breakdown(dataset),
        months=monthly_breakdown(dataset),
        weekdays=weekday_breakdown(dataset),
        hours=hourly_breakdown(dataset),
        seasons=seasonal_breakdown(dataset),
        category_by_gender=category_by_gender(dataset),
        category_by_age_group=category_by_age_group(dataset),
        product_mix=product_mix(dataset),
        high_value=high_value,
    )
    log.info("audit_complete", duration_ms=round((time.perf_counter() - started) * 1000, 2))
    return report

"""Windowed analytics and customer segmentation.

Built on the foundation package:

1. Window functions (rank, percent rank, N-tile, lag/lead, moving windows)
2. Customer summaries, value tiers and spend rankings
3. RFM scoring and segments
4. Monthly cohort retention
5. Z-score outlier detection
6. Daily trends and category performance
7. Demographic, time-pattern and category-mix breakdowns
"""

from .breakdowns import (
    DatasetOverview,
    SalesBreakdown,
    age_group_breakdown,
    breakdown,
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
from .cohorts import (
    CohortDefinition,
    CohortRetention,
    assign_cohorts,
    build_cohort_retention,
    cohort_period,
    period_offset,
    retention_rate,
)
from .outliers import Outlier, OutlierSeverity, detect_outliers
from .performance import (
    CategoryPerformance,
    CategoryProfitability,
    DailyTrend,
    category_performance,
    category_profitability,
    daily_sales_trend,
)
from .rfm import RFMProfile, RFMSegment, assign_segment, calculate_rfm, segment_distribution
from .segmentation import (
    CustomerRanking,
    CustomerSummary,
    CustomerTier,
    SpendingSegment,
    classify_value_tiers,
    rank_customers,
    spending_quartile_segments,
    summarize_customers,
)
from .windows import (
    RankedRow,
    lag,
    lead,
    moving_aggregate,
    ntile,
    partitioned,
    percent_rank,
    rank,
    rank_rows,
    running_total,
)

__all__ = [
    # Breakdowns
    "DatasetOverview",
    "SalesBreakdown",
    "age_group_breakdown",
    "breakdown",
    "category_by_age_group",
    "category_by_gender",
    "dataset_overview",
    "gender_breakdown",
    "high_value_transactions",
    "hourly_breakdown",
    "monthly_breakdown",
    "pricing_statistics",
    "product_mix",
    "seasonal_breakdown",
    "weekday_breakdown",
    # Cohorts
    "CohortDefinition",
    "CohortRetention",
    "assign_cohorts",
    "build_cohort_retention",
    "cohort_period",
    "period_offset",
    "retention_rate",
    # Outliers
    "Outlier",
    "OutlierSeverity",
    "detect_outliers",
    # Performance
    "CategoryPerformance",
    "CategoryProfitability",
    "DailyTrend",
    "category_performance",
    "category_profitability",
    "daily_sales_trend",
    # RFM
    "RFMProfile",
    "RFMSegment",
    "assign_segment",
    "calculate_rfm",
    "segment_distribution",
    # Segmentation
    "CustomerRanking",
    "CustomerSummary",
    "CustomerTier",
    "SpendingSegment",
    "classify_value_tiers",
    "rank_customers",
    "spending_quartile_segments",
    "summarize_customers",
    # Windows
    "RankedRow",
    "lag",
    "lead",
    "moving_aggregate",
    "ntile",
    "partitioned",
    "percent_rank",
    "rank",
    "rank_rows",
    "running_total",
]

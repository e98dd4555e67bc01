"""Retail sales audit: data quality, windowed analytics and customer segmentation.

Subpackages:

- ``foundation``: transaction records, quality validation and grouped aggregation
- ``analyses``: window functions, segmentation, RFM, cohorts, outliers, trends
- ``pandas``: DataFrame adapters
- ``synthetic``: fake retail data for tests and demos
"""

from retail_sales_audit.config import AuditConfig
from retail_sales_audit.pipeline import AuditReport, run_audit

__version__ = "0.1.0"

__all__ = ["AuditConfig", "AuditReport", "run_audit", "__version__"]

"""Synthetic data generation utilities.

This package produces realistic-but-fake retail sale rows to exercise
the audit pipeline without accessing production data.
"""

from .generator import RetailScenario, generate_retail_transactions

__all__ = [
    "RetailScenario",
    "generate_retail_transactions",
]

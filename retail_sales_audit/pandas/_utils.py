"""Shared utilities for pandas conversion operations."""

from decimal import Decimal
from typing import Any


def decimal_to_float(value: Decimal | None) -> float | None:
    """Convert Decimal to float for pandas compatibility (``None`` passes through)."""
    return None if value is None else float(value)


def to_python_scalar(value: Any) -> Any:
    """Unwrap numpy scalar types into their Python equivalents.

    ``DataFrame.to_dict("records")`` yields ``numpy.int64`` / ``numpy.float64``
    values, which the transaction contract would reject as non-int /
    non-float. Plain Python values pass through unchanged.
    """
    item = getattr(value, "item", None)
    if callable(item) and type(value).__module__ == "numpy":
        return item()
    return value

"""Configuration models for the retail sales audit.

Business thresholds (value tiers, outlier bands, repair ratios) are
policy, not code, so they live in validated pydantic models that callers
can override per run.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator


class QualityPolicy(BaseModel):
    """Rules applied by the quality validator."""

    model_config = {"frozen": True}

    cogs_repair_ratio: Decimal = Field(
        default=Decimal("0.7"),
        gt=0,
        le=1,
        description="COGS is reset to total_sale * ratio when it exceeds the sale",
    )
    tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Allowed |quantity * unit_price - total_sale| rounding gap",
    )
    min_age: int = Field(default=1, description="Smallest plausible customer age")
    max_age: int = Field(default=120, description="Largest plausible customer age")
    drop_invalid_age: bool = Field(
        default=False, description="Drop rows with implausible ages instead of flagging"
    )
    drop_calculation_mismatch: bool = Field(
        default=False,
        description="Drop rows failing the arithmetic check instead of flagging",
    )

    @model_validator(mode="after")
    def _check_age_bounds(self) -> "QualityPolicy":
        if self.min_age > self.max_age:
            raise ValueError(
                f"min_age ({self.min_age}) must not exceed max_age ({self.max_age})"
            )
        return self


class TierThreshold(BaseModel):
    """A customer value tier reached at ``minimum`` total spend."""

    model_config = {"frozen": True}

    label: str = Field(min_length=1)
    minimum: Decimal = Field(ge=0)


DEFAULT_VALUE_TIERS: tuple[TierThreshold, ...] = (
    TierThreshold(label="VIP", minimum=Decimal("2000")),
    TierThreshold(label="High Value", minimum=Decimal("1000")),
    TierThreshold(label="Medium Value", minimum=Decimal("500")),
    TierThreshold(label="Low Value", minimum=Decimal("0")),
)


class OutlierBands(BaseModel):
    """|z| boundaries for outlier severity labels."""

    model_config = {"frozen": True}

    extreme: float = Field(default=3.0, gt=0)
    moderate: float = Field(default=2.0, gt=0)

    @model_validator(mode="after")
    def _check_order(self) -> "OutlierBands":
        if self.moderate > self.extreme:
            raise ValueError(
                f"moderate band ({self.moderate}) must not exceed extreme band ({self.extreme})"
            )
        return self


class AuditConfig(BaseModel):
    """Settings for a full :func:`~retail_sales_audit.pipeline.run_audit` run.

    Unknown settings are rejected. RFM always scores quintiles, so there is
    no bin count to configure.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    quality: QualityPolicy = Field(default_factory=QualityPolicy)
    value_tiers: tuple[TierThreshold, ...] = Field(default=DEFAULT_VALUE_TIERS)
    outlier_field: str = Field(default="total_sale")
    outlier_threshold_sigma: float = Field(default=2.0, gt=0)
    outlier_bands: OutlierBands = Field(default_factory=OutlierBands)
    ranking_buckets: int = Field(default=10, gt=0, description="N-tiles for spend ranking")
    trend_window: int = Field(default=7, gt=0, description="Moving average window in days")
    cohort_max_offset: int | None = Field(default=None, ge=0)
    high_value_minimum: Decimal = Field(
        default=Decimal("1000"), ge=0, description="Sales above this are listed as high value"
    )

    @field_validator("value_tiers")
    @classmethod
    def _check_tiers(cls, tiers: tuple[TierThreshold, ...]) -> tuple[TierThreshold, ...]:
        if not tiers:
            raise ValueError("value_tiers must contain at least one tier")
        labels = [tier.label for tier in tiers]
        if len(set(labels)) != len(labels):
            raise ValueError(f"value tier labels must be unique: {labels}")
        return tiers

    @model_validator(mode="after")
    def _check_outlier_threshold(self) -> "AuditConfig":
        if self.outlier_threshold_sigma < self.outlier_bands.moderate:
            raise ValueError(
                f"outlier_threshold_sigma ({self.outlier_threshold_sigma}) must not be "
                f"below the moderate band ({self.outlier_bands.moderate})"
            )
        return self

"""ParamConfig: Expert defaults for scoutcard.

This module defines the complete default configuration. ALL tunable
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Annotated, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AfterValidator, BeforeValidator, Field, model_validator

from scoutcard.analysis.classifier import DEFAULT_THRESHOLDS
from scoutcard.analysis.models import RangeSpec, ThresholdConfig
from scoutcard.analysis.trends import WEEKDAYS
from scoutcard.schemas.base import ScoutBaseModel

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def check_timezone(v: str) -> str:
    """Reject names the IANA database does not know."""
    try:
        ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone {v!r}") from exc
    return v


def normalize_weekday(v):
    """Accept 'Monday', 'MON', ' mon ' for 'monday'."""
    if isinstance(v, str):
        v = v.strip().lower()
        for day in WEEKDAYS:
            if day.startswith(v) and len(v) >= 3:
                return day
    return v


TimezoneName = Annotated[str, AfterValidator(check_timezone)]
WeekdayName = Annotated[Weekday, BeforeValidator(normalize_weekday)]


# =============================================================================
# Nested Configuration Models
# =============================================================================

class AggregatorConfig(ScoutBaseModel):
    """Multi-pass oracle fan-out and aggregation."""
    passes_per_category: int = Field(3, ge=1, le=10, description="Oracle passes per category per image")
    pass_timeout_sec: float = Field(45.0, gt=0, description="Timeout for each oracle pass")
    high_spread_pct: int = Field(10, ge=0, le=100, description="Max spread for high consistency, % of count")
    medium_spread_pct: int = Field(30, ge=0, le=100, description="Max spread for medium consistency, % of count")

    @model_validator(mode="after")
    def spreads_are_ordered(self):
        if self.high_spread_pct > self.medium_spread_pct:
            raise ValueError("high_spread_pct must not exceed medium_spread_pct")
        return self


class AlertsConfig(ScoutBaseModel):
    """Alert thresholds used when the record store has none."""
    default_thresholds: list[ThresholdConfig] = Field(
        default_factory=lambda: list(DEFAULT_THRESHOLDS)
    )


class TrendsConfig(ScoutBaseModel):
    """Trend bucketing."""
    week_start: WeekdayName = "monday"
    timezone: TimezoneName = "UTC"
    default_unit: Literal["day", "week", "month", "year"] = "week"
    default_count: int = Field(8, ge=1)

    def default_range(self) -> RangeSpec:
        return RangeSpec(unit=self.default_unit, count=self.default_count)


class StoreConfig(ScoutBaseModel):
    """Record store location."""
    base_dir: str = "./scoutcard_data"
    db_filename: str = "scoutcard.db"


class GerminationConfig(ScoutBaseModel):
    """Germination status cut-offs in percent (inclusive lower bounds)."""
    excellent: float = Field(90.0, ge=0, le=100)
    good: float = Field(80.0, ge=0, le=100)
    fair: float = Field(70.0, ge=0, le=100)
    poor: float = Field(50.0, ge=0, le=100)

    @model_validator(mode="after")
    def cutoffs_descend(self):
        if not (self.excellent >= self.good >= self.fair >= self.poor):
            raise ValueError("germination cut-offs must satisfy excellent >= good >= fair >= poor")
        return self


class LoggingConfig(ScoutBaseModel):
    """Logging configuration."""
    level: LogLevel = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(ScoutBaseModel):
    """Complete expert configuration with all defaults.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    trends: TrendsConfig = Field(default_factory=TrendsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    germination: GerminationConfig = Field(default_factory=GerminationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

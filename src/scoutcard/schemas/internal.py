"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from pathlib import Path
from typing import Literal

from pydantic import ConfigDict

from scoutcard.analysis.models import RangeSpec, ThresholdConfig
from scoutcard.schemas.base import ScoutBaseModel
from scoutcard.schemas.param import LogLevel, TimezoneName, WeekdayName


_FROZEN = ConfigDict(
    extra='forbid',
    validate_assignment=True,
    use_enum_values=True,
    str_strip_whitespace=True,
    frozen=True,
)


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalAggregatorConfig(ScoutBaseModel):
    """Runtime aggregator configuration."""
    passes_per_category: int
    pass_timeout_sec: float
    high_spread_pct: int
    medium_spread_pct: int

    model_config = _FROZEN


class InternalAlertsConfig(ScoutBaseModel):
    """Runtime alert defaults (validated, one entry per category)."""
    default_thresholds: tuple[ThresholdConfig, ...]

    model_config = _FROZEN


class InternalTrendsConfig(ScoutBaseModel):
    """Runtime trend configuration."""
    week_start: WeekdayName
    timezone: TimezoneName
    default_unit: Literal["day", "week", "month", "year"]
    default_count: int

    model_config = _FROZEN

    def default_range(self) -> RangeSpec:
        return RangeSpec(unit=self.default_unit, count=self.default_count)


class InternalStoreConfig(ScoutBaseModel):
    """Runtime record store configuration."""
    base_dir: str
    db_filename: str

    model_config = _FROZEN

    @property
    def db_path(self) -> Path:
        return Path(self.base_dir) / self.db_filename


class InternalGerminationConfig(ScoutBaseModel):
    """Runtime germination cut-offs."""
    excellent: float
    good: float
    fair: float
    poor: float

    model_config = _FROZEN

    @property
    def cutoffs(self) -> tuple[float, float, float, float]:
        return (self.excellent, self.good, self.fair, self.poor)


class InternalLoggingConfig(ScoutBaseModel):
    """Runtime logging configuration."""
    level: LogLevel

    model_config = _FROZEN


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(ScoutBaseModel):
    """Fully resolved runtime configuration.

    This is the ONLY configuration schema that runtime code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.passes = config.aggregator.passes_per_category  # NOT .get()
            self.tz = config.trends.timezone

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    aggregator: InternalAggregatorConfig
    alerts: InternalAlertsConfig
    trends: InternalTrendsConfig
    store: InternalStoreConfig
    germination: InternalGerminationConfig
    logging: InternalLoggingConfig

    model_config = _FROZEN

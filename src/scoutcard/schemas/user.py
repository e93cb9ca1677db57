"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with flat uppercase aliases for the common
settings (e.g., PASSES -> aggregator.passes_per_category, WEEK_START ->
trends.week_start) plus nested sections for advanced users.

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Unknown keys are ignored.

Threshold entries are kept as raw mappings here; they are validated during
resolution so that a bad entry surfaces as InvalidThresholdConfig.
"""

from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from scoutcard.schemas.base import ScoutBaseModel
from scoutcard.schemas.param import normalize_weekday


class UserAggregatorConfig(ScoutBaseModel):
    """User-facing aggregator config."""
    passes_per_category: Optional[int] = None
    pass_timeout_sec: Optional[float] = None
    high_spread_pct: Optional[int] = None
    medium_spread_pct: Optional[int] = None

    @field_validator("pass_timeout_sec", mode="before")
    @classmethod
    def coerce_timeout(cls, v):
        """Accept int or float for the timeout."""
        if v is not None:
            return float(v)
        return v


class UserTrendsConfig(ScoutBaseModel):
    """User-facing trends config."""
    week_start: Optional[str] = None
    timezone: Optional[str] = None
    default_unit: Optional[Literal["day", "week", "month", "year"]] = None
    default_count: Optional[int] = None

    @field_validator("week_start", mode="before")
    @classmethod
    def normalize_week_start(cls, v):
        return normalize_weekday(v)

    @field_validator("default_unit", mode="before")
    @classmethod
    def normalize_unit(cls, v):
        """Accept 'Weeks', 'WEEK' for 'week'."""
        if isinstance(v, str):
            return v.strip().lower().rstrip("s")
        return v


class UserConfig(ScoutBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            PASSES=5,
            WEEK_START="sunday",
            TIMEZONE="America/Chicago",
            THRESHOLDS=[{"category": "whitefly", "watch": 3, "action": 10, "critical": 20}],
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Storage
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    db_filename: Optional[str] = Field(None, alias="DB_FILENAME")

    # Aggregator settings (flat aliases)
    passes_per_category: Optional[int] = Field(None, alias="PASSES")
    pass_timeout_sec: Optional[float] = Field(None, alias="PASS_TIMEOUT_SEC")
    high_spread_pct: Optional[int] = Field(None, alias="HIGH_SPREAD_PCT")
    medium_spread_pct: Optional[int] = Field(None, alias="MEDIUM_SPREAD_PCT")

    # Trend settings (flat aliases)
    week_start: Optional[str] = Field(None, alias="WEEK_START")
    timezone: Optional[str] = Field(None, alias="TIMEZONE")

    # Alerts
    thresholds: Optional[list[dict[str, Any]]] = Field(None, alias="THRESHOLDS")

    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(
        None, alias="LOG_LEVEL"
    )

    # Nested overrides (advanced users)
    aggregator: Optional[UserAggregatorConfig] = None
    trends: Optional[UserTrendsConfig] = None

    model_config = ScoutBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("pass_timeout_sec", mode="before")
    @classmethod
    def coerce_timeout(cls, v):
        """Accept int or float for the timeout."""
        if v is not None:
            return float(v)
        return v

    @field_validator("week_start", mode="before")
    @classmethod
    def normalize_week_start(cls, v):
        return normalize_weekday(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        # Store section
        store = {}
        if self.base_dir is not None:
            store["base_dir"] = str(self.base_dir)
        if self.db_filename is not None:
            store["db_filename"] = self.db_filename
        if store:
            overrides["store"] = store

        # Aggregator section
        aggregator = {}
        if self.passes_per_category is not None:
            aggregator["passes_per_category"] = self.passes_per_category
        if self.pass_timeout_sec is not None:
            aggregator["pass_timeout_sec"] = self.pass_timeout_sec
        if self.high_spread_pct is not None:
            aggregator["high_spread_pct"] = self.high_spread_pct
        if self.medium_spread_pct is not None:
            aggregator["medium_spread_pct"] = self.medium_spread_pct

        # Merge with explicit aggregator config
        if self.aggregator is not None:
            aggregator.update(self.aggregator.model_dump(exclude_none=True))

        if aggregator:
            overrides["aggregator"] = aggregator

        # Trends section
        trends = {}
        if self.week_start is not None:
            trends["week_start"] = self.week_start
        if self.timezone is not None:
            trends["timezone"] = self.timezone

        # Merge with explicit trends config
        if self.trends is not None:
            trends.update(self.trends.model_dump(exclude_none=True))

        if trends:
            overrides["trends"] = trends

        # Alerts section (merged per category during resolution)
        if self.thresholds is not None:
            overrides["alerts"] = {"default_thresholds": list(self.thresholds)}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides

"""Domain records for scan analysis.

These are the plain records that flow between the oracle fan-out, the
multi-pass aggregator, the alert classifier, the trend aggregator and the
record store. All of them are pydantic models; records that must not change
after creation are frozen.
"""

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Literal, Optional
from uuid import uuid4

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

__all__ = [
    "Category",
    "SCOUT_CATEGORIES",
    "GERM_CATEGORIES",
    "CATEGORY_LABELS",
    "PassFailure",
    "PassResult",
    "ConsistencyLevel",
    "Completeness",
    "AggregatedCount",
    "AlertLevel",
    "ALERT_LABELS",
    "InvalidThresholdConfig",
    "ThresholdConfig",
    "ScanRecord",
    "RangeSpec",
    "TrendBucket",
    "Trap",
    "SeedLot",
]


class RecordModel(BaseModel):
    """Base for immutable domain records."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# Categories
# =============================================================================

class Category(str, Enum):
    """Fixed set of things the oracle is asked to count."""

    # Sticky-card pests
    WHITEFLY = "whitefly"
    THRIPS = "thrips"
    FUNGUS_GNAT = "fungus_gnat"
    SHORE_FLY = "shore_fly"
    APHID = "aphid"
    LEAFMINER = "leafminer"
    OTHER = "other"

    # Plug-tray cell classes
    GERMINATED = "germinated"
    EMPTY = "empty"
    ABNORMAL = "abnormal"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


SCOUT_CATEGORIES = (
    Category.WHITEFLY,
    Category.THRIPS,
    Category.FUNGUS_GNAT,
    Category.SHORE_FLY,
    Category.APHID,
    Category.LEAFMINER,
    Category.OTHER,
)

GERM_CATEGORIES = (
    Category.GERMINATED,
    Category.EMPTY,
    Category.ABNORMAL,
)

CATEGORY_LABELS = {
    Category.WHITEFLY: "Whitefly",
    Category.THRIPS: "Thrips",
    Category.FUNGUS_GNAT: "Fungus Gnat",
    Category.SHORE_FLY: "Shore Fly",
    Category.APHID: "Aphid",
    Category.LEAFMINER: "Leafminer",
    Category.OTHER: "Other",
    Category.GERMINATED: "Germinated",
    Category.EMPTY: "Empty",
    Category.ABNORMAL: "Abnormal",
}


# =============================================================================
# Multi-pass aggregation
# =============================================================================

class PassFailure(str, Enum):
    """Why a single oracle pass produced no usable value."""
    TIMEOUT = "timeout"
    MALFORMED = "malformed"
    UNAVAILABLE = "unavailable"


class PassResult(RecordModel):
    """Outcome of one oracle pass for one category on one image.

    Exactly one of ``value`` or ``failure`` is set.
    """

    value: Optional[int] = Field(None, ge=0)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    failure: Optional[PassFailure] = None

    @model_validator(mode="after")
    def value_xor_failure(self):
        if (self.value is None) == (self.failure is None):
            raise ValueError("PassResult needs exactly one of value or failure")
        return self

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: int, confidence: Optional[float] = None) -> "PassResult":
        return cls(value=value, confidence=confidence)

    @classmethod
    def failed(cls, failure: PassFailure) -> "PassResult":
        return cls(failure=failure)


class ConsistencyLevel(str, Enum):
    """Agreement among the passes behind one aggregated count."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Completeness(str, Enum):
    """How many of the configured passes for an image were usable."""
    COMPLETE = "complete"
    DEGRADED = "degraded"
    FAILED = "failed"


class AggregatedCount(RecordModel):
    """Robust count for one category, derived once at analysis time."""

    category: Category
    count: int = Field(ge=0)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    consistency: ConsistencyLevel
    pass_results: tuple[int, ...] = Field(min_length=1)


# =============================================================================
# Alerts and thresholds
# =============================================================================

class AlertLevel(str, Enum):
    """Ordered severity tiers: safe < watch < action < critical."""
    SAFE = "safe"
    WATCH = "watch"
    ACTION = "action"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(AlertLevel).index(self)

    @property
    def label(self) -> str:
        return ALERT_LABELS[self]

    @classmethod
    def highest(cls, levels) -> "AlertLevel":
        """Most severe level in ``levels``; ``SAFE`` when empty."""
        return max(levels, key=lambda level: level.rank, default=cls.SAFE)


ALERT_LABELS = {
    AlertLevel.SAFE: "Safe",
    AlertLevel.WATCH: "Watch",
    AlertLevel.ACTION: "Action Needed",
    AlertLevel.CRITICAL: "Critical",
}


class InvalidThresholdConfig(ValueError):
    """Raised when a threshold configuration is rejected at write time."""


class ThresholdConfig(RecordModel):
    """Per-category alert bounds. Requires watch <= action <= critical."""

    category: Category
    watch: int = Field(ge=0)
    action: int = Field(ge=0)
    critical: int = Field(ge=0)

    @model_validator(mode="after")
    def bounds_are_ordered(self):
        if not (self.watch <= self.action <= self.critical):
            raise ValueError(
                f"thresholds for '{self.category.value}' must satisfy "
                f"watch <= action <= critical, got "
                f"{self.watch}/{self.action}/{self.critical}"
            )
        return self


# =============================================================================
# Scans
# =============================================================================

class ScanRecord(RecordModel):
    """One saved scan of a trap or seed lot.

    ``alert_level`` is a snapshot taken when the scan was saved and is not
    recomputed when thresholds change later. Only ``notes`` may change, via
    :meth:`with_notes`.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    subject_id: str = Field(min_length=1)
    timestamp: AwareDatetime
    aggregated_counts: tuple[AggregatedCount, ...] = ()
    total_count: int = Field(ge=0)
    alert_level: AlertLevel
    notes: str = ""

    @model_validator(mode="after")
    def total_matches_counts(self):
        expected = sum(c.count for c in self.aggregated_counts)
        if self.total_count != expected:
            raise ValueError(
                f"total_count {self.total_count} does not match sum of counts {expected}"
            )
        categories = [c.category for c in self.aggregated_counts]
        if len(set(categories)) != len(categories):
            raise ValueError("aggregated_counts contains a category more than once")
        return self

    def count_for(self, category: Category) -> Optional[int]:
        """Aggregated count for ``category``, or None when it was not counted."""
        for aggregated in self.aggregated_counts:
            if aggregated.category == category:
                return aggregated.count
        return None

    def with_notes(self, notes: str) -> "ScanRecord":
        return self.model_copy(update={"notes": notes.strip()})


# =============================================================================
# Trends
# =============================================================================

class RangeSpec(RecordModel):
    """'Last ``count`` ``unit``s'; the unit is also the bucket granularity."""

    unit: Literal["day", "week", "month", "year"]
    count: int = Field(ge=1)


class TrendBucket(RecordModel):
    """Summed counts for the scans in ``[window_start, window_end)``."""

    window_start: AwareDatetime
    window_end: AwareDatetime
    per_category_sums: dict[Category, int]
    total: int = Field(ge=0)
    scan_count: int = Field(ge=0)

    @property
    def duration(self) -> timedelta:
        # Elapsed time, so a DST day is 23 or 25 hours
        return self.window_end.astimezone(timezone.utc) - self.window_start.astimezone(timezone.utc)


# =============================================================================
# Subjects
# =============================================================================

class Trap(RecordModel):
    """A sticky card hung in a greenhouse zone."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=1)
    zone: str = ""
    greenhouse: str = ""
    card_color: Literal["yellow", "blue"] = "yellow"


TRAY_SIZES = {"128": 128, "200": 200, "288": 288, "512": 512}


class SeedLot(RecordModel):
    """A batch of seed trays tracked for germination."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=1)
    crop: str = ""
    variety: str = ""
    supplier: str = ""
    seed_date: date
    tray_size: Literal["128", "200", "288", "512", "custom"] = "288"
    custom_tray_size: Optional[int] = Field(None, ge=1)
    tray_count: int = Field(1, ge=1)
    expected_germ_days: int = Field(7, ge=1)
    germ_target: float = Field(90.0, ge=0, le=100)
    active: bool = True
    notes: str = ""

    @model_validator(mode="after")
    def custom_size_present(self):
        if self.tray_size == "custom" and self.custom_tray_size is None:
            raise ValueError("custom tray size requires custom_tray_size")
        return self

    @property
    def cells_per_tray(self) -> int:
        if self.tray_size == "custom":
            return self.custom_tray_size
        return TRAY_SIZES[self.tray_size]

    def days_after_seeding(self, when: datetime) -> int:
        return (when.date() - self.seed_date).days

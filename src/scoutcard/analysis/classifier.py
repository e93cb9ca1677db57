"""Map aggregated counts to alert tiers through a threshold snapshot.

Every function here takes the thresholds to apply as an explicit argument,
so a stored scan can be re-derived against any snapshot (for example
today's settings) without touching the alert level saved with it.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from scoutcard.analysis.models import (
    AggregatedCount,
    AlertLevel,
    Category,
    InvalidThresholdConfig,
    RecordModel,
    ScanRecord,
    ThresholdConfig,
)
from scoutcard.contracts import assert_classified

__all__ = [
    "DEFAULT_THRESHOLDS",
    "Classification",
    "validate_thresholds",
    "threshold_index",
    "tier",
    "scan_alert_level",
    "classify",
    "reclassify",
    "snapshot_scan",
    "highest_alert",
]

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = (
    ThresholdConfig(category=Category.WHITEFLY, watch=5, action=15, critical=30),
    ThresholdConfig(category=Category.THRIPS, watch=10, action=15, critical=30),
    ThresholdConfig(category=Category.FUNGUS_GNAT, watch=10, action=25, critical=50),
    ThresholdConfig(category=Category.SHORE_FLY, watch=20, action=40, critical=80),
    ThresholdConfig(category=Category.APHID, watch=3, action=8, critical=15),
    ThresholdConfig(category=Category.LEAFMINER, watch=1, action=3, critical=8),
    ThresholdConfig(category=Category.OTHER, watch=10, action=20, critical=40),
)


class Classification(RecordModel):
    """Tier per present category and the overall scan level."""

    per_category_tiers: dict[Category, AlertLevel]
    scan_alert_level: AlertLevel


def validate_thresholds(
    items: Iterable[Union[ThresholdConfig, Mapping]],
) -> list[ThresholdConfig]:
    """Validate threshold configs at write time.

    Accepts models or plain mappings. Bounds are never reordered or clamped.

    Raises
    ------
    InvalidThresholdConfig
        If any entry is malformed, violates ``watch <= action <= critical``,
        or repeats a category.
    """
    validated = []
    for item in items:
        if isinstance(item, ThresholdConfig):
            validated.append(item)
            continue
        try:
            validated.append(ThresholdConfig.model_validate(item))
        except ValidationError as exc:
            details = "; ".join(err["msg"] for err in exc.errors())
            raise InvalidThresholdConfig(f"Invalid threshold config {dict(item)!r}: {details}") from exc

    threshold_index(validated)
    return validated


def threshold_index(thresholds: Iterable[ThresholdConfig]) -> dict[Category, ThresholdConfig]:
    """Index a threshold snapshot by category, rejecting duplicates."""
    index = {}
    for cfg in thresholds:
        if cfg.category in index:
            raise InvalidThresholdConfig(
                f"Duplicate thresholds for category '{cfg.category.value}'"
            )
        index[cfg.category] = cfg
    return index


def tier(count: int, cfg: ThresholdConfig) -> AlertLevel:
    """Alert tier for ``count`` under ``cfg``. Monotonic in ``count``.

    Examples
    --------
    >>> cfg = ThresholdConfig(category="whitefly", watch=5, action=15, critical=30)
    >>> tier(20, cfg)
    <AlertLevel.ACTION: 'action'>
    """
    if count >= cfg.critical:
        return AlertLevel.CRITICAL
    if count >= cfg.action:
        return AlertLevel.ACTION
    if count >= cfg.watch:
        return AlertLevel.WATCH
    return AlertLevel.SAFE


def scan_alert_level(tiers: Iterable[AlertLevel]) -> AlertLevel:
    """Highest tier among the present categories; ``safe`` when none."""
    return AlertLevel.highest(tiers)


def classify(
    aggregated_counts: Sequence[AggregatedCount],
    thresholds: Iterable[ThresholdConfig],
) -> Classification:
    """Classify one scan's counts against a threshold snapshot.

    Categories without a matching config are ``safe``. Categories absent
    from ``aggregated_counts`` do not affect the result.
    """
    index = threshold_index(thresholds)

    tiers = {}
    for aggregated in aggregated_counts:
        cfg = index.get(aggregated.category)
        tiers[aggregated.category] = tier(aggregated.count, cfg) if cfg else AlertLevel.SAFE

    classification = Classification(
        per_category_tiers=tiers,
        scan_alert_level=scan_alert_level(tiers.values()),
    )
    assert_classified(classification, aggregated_counts)
    return classification


def reclassify(scan: ScanRecord, thresholds: Iterable[ThresholdConfig]) -> Classification:
    """What ``scan`` would be under ``thresholds``; the record is untouched."""
    return classify(scan.aggregated_counts, thresholds)


def snapshot_scan(
    subject_id: str,
    aggregated_counts: Sequence[AggregatedCount],
    thresholds: Iterable[ThresholdConfig],
    timestamp: Optional[datetime] = None,
    notes: str = "",
) -> ScanRecord:
    """Build a :class:`ScanRecord` with its alert level fixed at save time."""
    classification = classify(aggregated_counts, thresholds)
    return ScanRecord(
        subject_id=subject_id,
        timestamp=timestamp or datetime.now(timezone.utc),
        aggregated_counts=tuple(aggregated_counts),
        total_count=sum(c.count for c in aggregated_counts),
        alert_level=classification.scan_alert_level,
        notes=notes,
    )


def highest_alert(scans: Iterable[ScanRecord]) -> AlertLevel:
    """Most severe stored alert across the latest scan of every subject."""
    latest = {}
    for scan in scans:
        current = latest.get(scan.subject_id)
        if current is None or scan.timestamp > current.timestamp:
            latest[scan.subject_id] = scan
    return AlertLevel.highest(scan.alert_level for scan in latest.values())

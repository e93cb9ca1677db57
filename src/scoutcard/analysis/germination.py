"""Germination rate and status for plug-tray scans."""

from enum import Enum
from typing import Optional, Sequence

from scoutcard.analysis.models import GERM_CATEGORIES, AggregatedCount, Category

__all__ = ["GermStatus", "DEFAULT_GERM_CUTOFFS", "germination_rate", "germ_status"]

# excellent, good, fair, poor (percent, inclusive lower bounds)
DEFAULT_GERM_CUTOFFS = (90.0, 80.0, 70.0, 50.0)


class GermStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    FAILING = "failing"


def germination_rate(aggregated_counts: Sequence[AggregatedCount]) -> Optional[float]:
    """Percent of classified cells that germinated, to one decimal.

    Returns None when the tray had no classified cells, or when any of the
    germinated/empty/abnormal classes has no count (its value is unknown).
    """
    counts = {c.category: c.count for c in aggregated_counts}
    if any(category not in counts for category in GERM_CATEGORIES):
        return None

    total = sum(counts[category] for category in GERM_CATEGORIES)
    if total == 0:
        return None
    return round(100.0 * counts[Category.GERMINATED] / total, 1)


def germ_status(rate: float, cutoffs: Sequence[float] = DEFAULT_GERM_CUTOFFS) -> GermStatus:
    """Status bucket for a germination ``rate`` given descending ``cutoffs``."""
    excellent, good, fair, poor = cutoffs
    if rate >= excellent:
        return GermStatus.EXCELLENT
    if rate >= good:
        return GermStatus.GOOD
    if rate >= fair:
        return GermStatus.FAIR
    if rate >= poor:
        return GermStatus.POOR
    return GermStatus.FAILING

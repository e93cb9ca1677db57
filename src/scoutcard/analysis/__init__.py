"""Analysis modules.

- models: Domain records (categories, passes, counts, scans, buckets)
- aggregator: Multi-pass reduction to robust counts
- classifier: Threshold tiers and scan alert levels
- trends: Calendar-aligned trend buckets
- germination: Plug-tray germination rate and status
"""

from scoutcard.analysis.aggregator import AggregationResult, aggregate, median_count
from scoutcard.analysis.classifier import Classification, classify, reclassify
from scoutcard.analysis.trends import build_trend

__all__ = [
    "AggregationResult",
    "aggregate",
    "median_count",
    "Classification",
    "classify",
    "reclassify",
    "build_trend",
]

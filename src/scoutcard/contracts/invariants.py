"""Formal pipeline invariants.

This file documents what each stage MUST produce. Use it as a reviewer
anchor and system reference; enforcement lives in the sibling modules.
"""

PIPELINE_INVARIANTS = {
    "oracle": [
        "Every configured pass resolves to exactly one PassResult (value or failure)",
        "A timed-out or failed pass never contributes a synthetic zero",
        "Passes are issued concurrently; one slow pass never delays the others past the timeout",
    ],

    "aggregation": [
        "One AggregatedCount per category with at least one usable pass",
        "min(pass_results) <= count <= max(pass_results)",
        "Result is independent of pass order",
        "completeness == failed iff some category has no usable pass",
    ],

    "classification": [
        "Exactly one tier per present category",
        "Tier is monotonic in count for a fixed ThresholdConfig",
        "Scan level is the highest tier among present categories (safe when none)",
    ],

    "store": [
        "A saved scan's alert_level is the snapshot taken at save time",
        "Only notes may change after a scan is saved",
        "Threshold configs are validated before they are written",
    ],

    "trend": [
        "Buckets are contiguous, ordered and cover [span_start, now) exactly",
        "Every scan in the span lands in exactly one bucket",
        "Bucket boundaries are computed in the configured timezone",
    ],
}

# Which stages are optional vs required
STAGE_REQUIREMENTS = {
    "oracle": "REQUIRED",          # Every image must be counted
    "aggregation": "REQUIRED",     # Every image must be aggregated
    "classification": "REQUIRED",  # Every saved scan carries an alert level
    "store": "OPTIONAL",           # Analysis can run without persistence
    "trend": "OPTIONAL",           # Only when a report is requested
}

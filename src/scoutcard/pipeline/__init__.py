"""Pipeline modules.

- multipass: Concurrent oracle fan-out with timeout and cancellation
- scan_pipeline: Image -> counts -> alert -> saved scan
- record_store: SQLite-backed scans, thresholds, traps and lots
"""

from scoutcard.pipeline.multipass import PassTaskGroup
from scoutcard.pipeline.record_store import RecordStore
from scoutcard.pipeline.scan_pipeline import ImageAnalysis, ScanPipeline, current_thresholds

__all__ = [
    "PassTaskGroup",
    "RecordStore",
    "ImageAnalysis",
    "ScanPipeline",
    "current_thresholds",
]

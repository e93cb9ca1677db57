"""Scan pipeline: image -> oracle passes -> counts -> alert -> stored scan.

Wires the pass task group, the aggregator, the classifier and the record
store together. All tunables come from :class:`InternalConfig`.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from scoutcard.analysis.aggregator import AggregationResult, aggregate
from scoutcard.analysis.classifier import Classification, classify, snapshot_scan
from scoutcard.analysis.models import Category, Completeness, RecordModel, ScanRecord, ThresholdConfig
from scoutcard.oracle.client import OracleClient
from scoutcard.oracle.errors import AnalysisCancelled, OracleTotalFailure
from scoutcard.pipeline.multipass import PassTaskGroup
from scoutcard.pipeline.record_store import RecordStore
from scoutcard.schemas import InternalConfig

logger = logging.getLogger(__name__)


def current_thresholds(config: InternalConfig, store: Optional[RecordStore] = None) -> List[ThresholdConfig]:
    """Threshold snapshot in effect now: stored ones, else config defaults."""
    if store is not None:
        stored = store.get_thresholds()
        if stored:
            return stored
    return list(config.alerts.default_thresholds)


class ImageAnalysis(RecordModel):
    """Counts and tiers for one analysed image (not yet saved)."""

    aggregation: AggregationResult
    classification: Classification


class ScanPipeline:
    """Analyse images and save them as scans.

    Parameters
    ----------
    config : InternalConfig
        Fully resolved runtime configuration.
    oracle : OracleClient
        Counting oracle; called concurrently.
    store : RecordStore, optional
        Where thresholds are read from and scans are saved. Without a store
        the configured default thresholds are used and nothing is persisted.

    Examples
    --------
    >>> pipeline = ScanPipeline(config, oracle, store)
    >>> record = pipeline.capture(trap.id, image, SCOUT_CATEGORIES)
    >>> record.alert_level
    <AlertLevel.WATCH: 'watch'>
    """

    def __init__(self, config: InternalConfig, oracle: OracleClient,
                 store: Optional[RecordStore] = None):
        self.config = config
        self.store = store
        self.task_group = PassTaskGroup(
            oracle,
            passes_per_category=config.aggregator.passes_per_category,
            pass_timeout_sec=config.aggregator.pass_timeout_sec,
        )

    def thresholds(self) -> List[ThresholdConfig]:
        """Threshold snapshot in effect now: stored ones, else config defaults."""
        return current_thresholds(self.config, self.store)

    def expected_count_hints(self, subject_id: str) -> Dict[Category, int]:
        """Counts from the subject's latest saved scan, used as oracle hints."""
        if self.store is None:
            return {}
        latest = self.store.latest_scan(subject_id)
        if latest is None:
            return {}
        return {c.category: c.count for c in latest.aggregated_counts}

    def analyze_image(self, image_bytes: bytes, categories: Iterable[Category],
                      hints: Optional[Mapping[Category, int]] = None,
                      cancel: Optional[threading.Event] = None,
                      thresholds: Optional[Iterable[ThresholdConfig]] = None) -> ImageAnalysis:
        """Count, aggregate and classify one image.

        Raises
        ------
        AnalysisCancelled
            If ``cancel`` is set before the passes resolve.
        """
        cfg = self.config.aggregator
        outcomes = self.task_group.run(image_bytes, categories, hints=hints, cancel=cancel)

        aggregation = aggregate(
            outcomes,
            expected_passes=cfg.passes_per_category,
            high_spread_pct=cfg.high_spread_pct,
            medium_spread_pct=cfg.medium_spread_pct,
        )

        if aggregation.completeness != Completeness.COMPLETE:
            dropped = sum(len(v) for v in aggregation.dropped_passes.values())
            logger.warning(
                "Image analysis %s: %d pass(es) dropped, failed categories: %s",
                aggregation.completeness.value, dropped,
                [c.value for c in aggregation.failed_categories] or "none",
            )

        if thresholds is None:
            thresholds = self.thresholds()
        classification = classify(aggregation.aggregated_counts, thresholds)

        return ImageAnalysis(aggregation=aggregation, classification=classification)

    def capture(self, subject_id: str, image_bytes: bytes, categories: Iterable[Category],
                timestamp: Optional[datetime] = None, notes: str = "",
                cancel: Optional[threading.Event] = None) -> ScanRecord:
        """Analyse an image and save it as a scan of ``subject_id``.

        The alert level is classified once, against the thresholds in effect
        now, and stored with the scan.

        Raises
        ------
        OracleTotalFailure
            If no category produced a usable value. Nothing is saved.
        AnalysisCancelled
            If ``cancel`` is set before the passes resolve. Nothing is saved.
        """
        categories = list(dict.fromkeys(Category(c) for c in categories))
        thresholds = self.thresholds()

        analysis = self.analyze_image(
            image_bytes,
            categories,
            hints=self.expected_count_hints(subject_id),
            cancel=cancel,
            thresholds=thresholds,
        )
        counts = analysis.aggregation.aggregated_counts
        if not counts:
            logger.error("No usable oracle passes for %s; scan not saved", subject_id)
            raise OracleTotalFailure(categories)

        if cancel is not None and cancel.is_set():
            logger.info("Capture for %s cancelled; scan not saved", subject_id)
            raise AnalysisCancelled("image analysis was cancelled")

        record = snapshot_scan(subject_id, counts, thresholds, timestamp=timestamp, notes=notes)
        if self.store is not None:
            self.store.add_scan(record)

        logger.info(
            "Scan %s for %s: total=%d alert=%s (%s)",
            record.id, subject_id, record.total_count, record.alert_level.value,
            analysis.aggregation.completeness.value,
        )
        return record

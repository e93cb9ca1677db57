"""Tests for stage contracts.

These tests verify that contracts are enforced at stage boundaries.
They build deliberately broken stage outputs and check that the violation
is raised.
"""

from datetime import datetime, timedelta, timezone

import pytest

from scoutcard.analysis.aggregator import AggregationResult
from scoutcard.analysis.classifier import Classification
from scoutcard.analysis.models import (
    AlertLevel,
    Category,
    Completeness,
    PassFailure,
    TrendBucket,
)
from scoutcard.contracts import (
    ContractViolation,
    assert_aggregated,
    assert_classified,
    assert_trend_partition,
    require,
)
from scoutcard.contracts.invariants import PIPELINE_INVARIANTS, STAGE_REQUIREMENTS
from tests.helpers.records import make_count

pytestmark = pytest.mark.unit

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def bucket(start_day, end_day, sums=None, total=None):
    sums = sums or {}
    return TrendBucket(
        window_start=T0 + timedelta(days=start_day),
        window_end=T0 + timedelta(days=end_day),
        per_category_sums=sums,
        total=sum(sums.values()) if total is None else total,
        scan_count=0,
    )


class TestRequire:

    def test_passes_silently(self):
        require(True, "never raised")

    def test_raises_with_message(self):
        with pytest.raises(ContractViolation, match="boom"):
            require(False, "boom")

    def test_violation_is_runtime_error(self):
        assert issubclass(ContractViolation, RuntimeError)


class TestAggregationContract:
    """Test aggregation stage contract."""

    def test_valid_result_passes(self):
        result = AggregationResult(
            aggregated_counts=(make_count("whitefly", 20, passes=(18, 20, 21)),),
            completeness=Completeness.COMPLETE,
        )
        assert_aggregated(result)

    def test_count_outside_pass_range(self):
        """A count not backed by its passes is an aggregator bug."""
        result = AggregationResult(
            aggregated_counts=(make_count("whitefly", 30, passes=(18, 20, 21)),),
            completeness=Completeness.COMPLETE,
        )
        with pytest.raises(ContractViolation, match="outside pass range"):
            assert_aggregated(result)

    def test_duplicate_categories(self):
        result = AggregationResult(
            aggregated_counts=(make_count("thrips", 2), make_count("thrips", 3)),
            completeness=Completeness.COMPLETE,
        )
        with pytest.raises(ContractViolation, match="duplicate categories"):
            assert_aggregated(result)

    def test_counted_and_failed(self):
        result = AggregationResult(
            aggregated_counts=(make_count("thrips", 2),),
            completeness=Completeness.FAILED,
            failed_categories=(Category.THRIPS,),
        )
        with pytest.raises(ContractViolation, match="both counted and failed"):
            assert_aggregated(result)

    def test_failed_category_requires_failed_completeness(self):
        result = AggregationResult(
            aggregated_counts=(make_count("whitefly", 2),),
            completeness=Completeness.DEGRADED,
            failed_categories=(Category.THRIPS,),
        )
        with pytest.raises(ContractViolation, match="completeness 'degraded'"):
            assert_aggregated(result)

    def test_complete_with_dropped_passes(self):
        result = AggregationResult(
            aggregated_counts=(make_count("whitefly", 2),),
            completeness=Completeness.COMPLETE,
            dropped_passes={Category.WHITEFLY: (PassFailure.TIMEOUT,)},
        )
        with pytest.raises(ContractViolation, match="dropped passes"):
            assert_aggregated(result)


class TestClassificationContract:
    """Test classification stage contract."""

    def test_valid_classification_passes(self):
        counts = [make_count("whitefly", 12), make_count("thrips", 1)]
        classification = Classification(
            per_category_tiers={Category.WHITEFLY: AlertLevel.ACTION, Category.THRIPS: AlertLevel.SAFE},
            scan_alert_level=AlertLevel.ACTION,
        )
        assert_classified(classification, counts)

    def test_empty_counts_are_safe(self):
        classification = Classification(per_category_tiers={}, scan_alert_level=AlertLevel.SAFE)
        assert_classified(classification, [])

    def test_scan_level_below_highest_tier(self):
        counts = [make_count("whitefly", 12)]
        classification = Classification(
            per_category_tiers={Category.WHITEFLY: AlertLevel.ACTION},
            scan_alert_level=AlertLevel.WATCH,
        )
        with pytest.raises(ContractViolation, match="not the highest tier"):
            assert_classified(classification, counts)

    def test_tier_for_absent_category(self):
        counts = [make_count("whitefly", 12)]
        classification = Classification(
            per_category_tiers={Category.WHITEFLY: AlertLevel.ACTION, Category.APHID: AlertLevel.SAFE},
            scan_alert_level=AlertLevel.ACTION,
        )
        with pytest.raises(ContractViolation, match="tiers for"):
            assert_classified(classification, counts)


class TestTrendContract:
    """Test trend partition contract."""

    def test_contiguous_buckets_pass(self):
        buckets = [bucket(0, 1), bucket(1, 2, {Category.THRIPS: 4}), bucket(2, 3)]
        assert_trend_partition(buckets, T0, T0 + timedelta(days=3))

    def test_no_buckets(self):
        with pytest.raises(ContractViolation, match="no buckets"):
            assert_trend_partition([], T0, T0 + timedelta(days=1))

    def test_gap_between_buckets(self):
        buckets = [bucket(0, 1), bucket(2, 3)]
        with pytest.raises(ContractViolation, match="gap or overlap"):
            assert_trend_partition(buckets, T0, T0 + timedelta(days=3))

    def test_wrong_span_start(self):
        buckets = [bucket(1, 2)]
        with pytest.raises(ContractViolation, match="first bucket starts"):
            assert_trend_partition(buckets, T0, T0 + timedelta(days=2))

    def test_wrong_span_end(self):
        buckets = [bucket(0, 1)]
        with pytest.raises(ContractViolation, match="last bucket ends"):
            assert_trend_partition(buckets, T0, T0 + timedelta(days=2))

    def test_empty_window(self):
        buckets = [bucket(0, 0)]
        with pytest.raises(ContractViolation, match="empty bucket"):
            assert_trend_partition(buckets, T0, T0)

    def test_total_must_match_sums(self):
        buckets = [bucket(0, 1, {Category.WHITEFLY: 2}, total=5)]
        with pytest.raises(ContractViolation, match="sum of categories"):
            assert_trend_partition(buckets, T0, T0 + timedelta(days=1))


class TestInvariantRegistry:

    def test_every_stage_has_a_requirement(self):
        assert set(PIPELINE_INVARIANTS) == set(STAGE_REQUIREMENTS)
        assert all(PIPELINE_INVARIANTS[stage] for stage in PIPELINE_INVARIANTS)

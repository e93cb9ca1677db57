"""Reduce repeated oracle passes to one robust count per category.

The oracle is asked the same question several times per image. Each
category's usable pass values are reduced to a median count, a
consistency rating describing how much the passes disagreed, and an
image-level completeness flag describing how many passes were lost.

Rules
-----
- Median: odd number of values -> the middle value; even number -> the mean
  of the two middle values rounded half up.
- Consistency: ``spread = max - min``. For a zero count the rating is high
  only if every pass reported zero. Otherwise high when
  ``spread <= ceil(high_pct% * count)``, medium when
  ``spread <= ceil(medium_pct% * count)``, low beyond that.
- A failed pass (timeout, malformed payload, unavailable oracle) is
  dropped; it never contributes a synthetic zero. A category with no usable
  values is omitted from the result and marks the image ``failed``.
"""

import logging
from typing import Mapping, Optional, Sequence

import numpy as np
from pydantic import Field

from scoutcard.analysis.models import (
    AggregatedCount,
    Category,
    Completeness,
    ConsistencyLevel,
    PassFailure,
    PassResult,
    RecordModel,
)
from scoutcard.contracts import assert_aggregated

__all__ = [
    "DEFAULT_HIGH_SPREAD_PCT",
    "DEFAULT_MEDIUM_SPREAD_PCT",
    "AggregationResult",
    "median_count",
    "rate_consistency",
    "aggregate_category",
    "aggregate",
]

logger = logging.getLogger(__name__)

DEFAULT_HIGH_SPREAD_PCT = 10
DEFAULT_MEDIUM_SPREAD_PCT = 30


class AggregationResult(RecordModel):
    """Aggregated counts for one image plus how complete the passes were.

    ``dropped_passes`` lists, per category, the failure reason of every pass
    that produced no usable value (including passes that never reported).
    """

    aggregated_counts: tuple[AggregatedCount, ...] = ()
    completeness: Completeness
    failed_categories: tuple[Category, ...] = ()
    dropped_passes: dict[Category, tuple[PassFailure, ...]] = Field(default_factory=dict)

    def count_for(self, category: Category) -> Optional[AggregatedCount]:
        for aggregated in self.aggregated_counts:
            if aggregated.category == category:
                return aggregated
        return None


def median_count(values: Sequence[int]) -> int:
    """Median of non-negative integer pass values.

    Even-length input averages the two middle values and rounds half up,
    so ``[18, 21]`` gives 20.

    Raises
    ------
    ValueError
        If ``values`` is empty.
    """
    if len(values) == 0:
        raise ValueError("median_count() needs at least one value")

    ordered = np.sort(np.asarray(values, dtype=np.int64))
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return int(ordered[mid])
    return int((ordered[mid - 1] + ordered[mid] + 1) // 2)


def _ceil_pct(count: int, pct: int) -> int:
    # ceil(pct% of count) in integer arithmetic
    return -(-count * pct // 100)


def rate_consistency(
    values: Sequence[int],
    count: int,
    high_spread_pct: int = DEFAULT_HIGH_SPREAD_PCT,
    medium_spread_pct: int = DEFAULT_MEDIUM_SPREAD_PCT,
) -> ConsistencyLevel:
    """Rate how closely the pass values agree around ``count``.

    Parameters
    ----------
    values : sequence of int
        Usable pass values (non-empty).
    count : int
        The aggregated count the values were reduced to.
    high_spread_pct, medium_spread_pct : int
        Spread allowed for a high/medium rating, in percent of ``count``.

    Examples
    --------
    >>> rate_consistency([18, 20, 22], 20)
    <ConsistencyLevel.MEDIUM: 'medium'>
    """
    spread = max(values) - min(values)

    if count == 0:
        if all(v == 0 for v in values):
            return ConsistencyLevel.HIGH
        return ConsistencyLevel.LOW

    if spread == 0 or spread <= _ceil_pct(count, high_spread_pct):
        return ConsistencyLevel.HIGH
    if spread <= _ceil_pct(count, medium_spread_pct):
        return ConsistencyLevel.MEDIUM
    return ConsistencyLevel.LOW


def aggregate_category(
    category: Category,
    passes: Sequence[PassResult],
    high_spread_pct: int = DEFAULT_HIGH_SPREAD_PCT,
    medium_spread_pct: int = DEFAULT_MEDIUM_SPREAD_PCT,
) -> Optional[AggregatedCount]:
    """Aggregate one category's passes, or None when none are usable."""
    usable = [p for p in passes if p.ok]
    if not usable:
        return None

    values = sorted(p.value for p in usable)
    count = median_count(values)

    confidences = [p.confidence for p in usable if p.confidence is not None]
    confidence = round(float(np.mean(confidences)), 3) if confidences else None

    return AggregatedCount(
        category=category,
        count=count,
        confidence=confidence,
        consistency=rate_consistency(values, count, high_spread_pct, medium_spread_pct),
        pass_results=tuple(values),
    )


def aggregate(
    pass_results_by_category: Mapping[Category, Sequence[PassResult]],
    expected_passes: Optional[int] = None,
    high_spread_pct: int = DEFAULT_HIGH_SPREAD_PCT,
    medium_spread_pct: int = DEFAULT_MEDIUM_SPREAD_PCT,
) -> AggregationResult:
    """Reduce every category's passes for one image.

    Parameters
    ----------
    pass_results_by_category : mapping
        Category -> list of :class:`PassResult`, one entry per pass that
        resolved (successfully or not).
    expected_passes : int, optional
        Number of passes configured per category. Passes missing from a
        category's list are counted as unavailable.
    high_spread_pct, medium_spread_pct : int
        Consistency constants, see :func:`rate_consistency`.

    Returns
    -------
    AggregationResult
        Counts for every category with at least one usable value, in
        category order, plus the image completeness.

    Examples
    --------
    >>> result = aggregate({Category.WHITEFLY: [
    ...     PassResult.success(18), PassResult.success(22),
    ...     PassResult.failed(PassFailure.TIMEOUT)]}, expected_passes=3)
    >>> result.completeness, result.aggregated_counts[0].count
    (<Completeness.DEGRADED: 'degraded'>, 20)
    """
    order = list(Category)
    by_category = {Category(c): list(passes) for c, passes in pass_results_by_category.items()}
    categories = sorted(by_category, key=order.index)

    counts = []
    failed = []
    dropped = {}

    for category in categories:
        passes = by_category[category]

        failures = [p.failure for p in passes if not p.ok]
        if expected_passes is not None and len(passes) < expected_passes:
            failures.extend([PassFailure.UNAVAILABLE] * (expected_passes - len(passes)))
        if failures:
            dropped[category] = tuple(failures)

        aggregated = aggregate_category(category, passes, high_spread_pct, medium_spread_pct)
        if aggregated is None:
            failed.append(category)
            logger.warning("No usable passes for %s (%d dropped)", category.value, len(failures))
            continue

        counts.append(aggregated)
        logger.debug(
            "%s: passes=%s count=%d consistency=%s",
            category.value, list(aggregated.pass_results),
            aggregated.count, aggregated.consistency.value,
        )

    if failed:
        completeness = Completeness.FAILED
    elif dropped:
        completeness = Completeness.DEGRADED
    else:
        completeness = Completeness.COMPLETE

    result = AggregationResult(
        aggregated_counts=tuple(counts),
        completeness=completeness,
        failed_categories=tuple(failed),
        dropped_passes=dropped,
    )
    assert_aggregated(result)
    return result

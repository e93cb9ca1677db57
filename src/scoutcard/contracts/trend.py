"""Trend stage contract.

Enforces the guarantee that trend buckets tile the requested span exactly:
contiguous, ordered, non-empty, starting at the span start and ending at
the reference instant.
"""

from scoutcard.contracts.base import require


def assert_trend_partition(buckets, span_start, span_end) -> None:
    """Enforce trend bucket partition contract.

    Parameters
    ----------
    buckets : sequence of TrendBucket
        Output of trends.build_trend()

    span_start, span_end : datetime
        Requested span ``[span_start, span_end)``

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(len(buckets) >= 1, "Trend contract violated: no buckets for a non-empty span")

    require(
        buckets[0].window_start == span_start,
        f"Trend contract violated: first bucket starts at {buckets[0].window_start}, "
        f"expected {span_start}"
    )
    require(
        buckets[-1].window_end == span_end,
        f"Trend contract violated: last bucket ends at {buckets[-1].window_end}, "
        f"expected {span_end}"
    )

    for bucket in buckets:
        require(
            bucket.window_start < bucket.window_end,
            f"Trend contract violated: empty bucket at {bucket.window_start}"
        )
        require(
            bucket.total == sum(bucket.per_category_sums.values()),
            f"Trend contract violated: bucket total {bucket.total} != sum of categories"
        )

    # Contiguous: each bucket begins where the previous one ended
    for prev, nxt in zip(buckets, buckets[1:]):
        require(
            prev.window_end == nxt.window_start,
            f"Trend contract violated: gap or overlap between {prev.window_end} "
            f"and {nxt.window_start}"
        )

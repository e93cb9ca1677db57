"""Calendar-aligned trend buckets over stored scans.

A trend covers "the last N units" ending at an explicit reference instant
``now``. The span is cut at calendar boundaries (local midnight, the
configured week-start midnight, the first of the month, January 1st) in the
reference timezone, so the first and last buckets may be partial. Each scan
lands in exactly one half-open bucket ``[window_start, window_end)``.

Boundaries are generated on naive wall-clock time with pandas offsets and
only then localized, so a DST change never shifts a boundary off midnight.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence, Union
from zoneinfo import ZoneInfo

import numpy as np
import pandas as pd

from scoutcard.analysis.models import Category, RangeSpec, ScanRecord, TrendBucket
from scoutcard.contracts import assert_trend_partition, require

__all__ = [
    "WEEKDAYS",
    "span_start",
    "bucket_edges",
    "assign_to_buckets",
    "build_trend",
    "trend_frame",
    "summarize_scans",
]

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_OFFSET_UNITS = {"day": "days", "week": "weeks", "month": "months", "year": "years"}
_FREQUENCIES = {"day": "D", "month": "MS", "year": "YS"}

TimezoneLike = Union[str, ZoneInfo]


def _zone(tz: TimezoneLike) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def _local_now(now: datetime, tz: ZoneInfo) -> pd.Timestamp:
    stamp = pd.Timestamp(now)
    if stamp.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return stamp.tz_convert(tz)


def _localize(wall, tz: ZoneInfo):
    # Ambiguous wall times resolve to the first occurrence; nonexistent ones
    # (spring-forward gap) move to the first valid instant after the gap.
    if isinstance(wall, pd.DatetimeIndex):
        return wall.tz_localize(
            tz, ambiguous=np.ones(len(wall), dtype=bool), nonexistent="shift_forward"
        )
    return wall.tz_localize(tz, ambiguous=True, nonexistent="shift_forward")


def _span_start_wall(range_spec: RangeSpec, now_wall: pd.Timestamp) -> pd.Timestamp:
    offset = pd.DateOffset(**{_OFFSET_UNITS[range_spec.unit]: range_spec.count})
    return now_wall - offset


def span_start(range_spec: RangeSpec, now: datetime, tz: TimezoneLike = "UTC") -> datetime:
    """Start of "the last ``count`` ``unit``s" before ``now`` in ``tz``."""
    zone = _zone(tz)
    now_wall = _local_now(now, zone).tz_localize(None)
    return _localize(_span_start_wall(range_spec, now_wall), zone).to_pydatetime()


def bucket_edges(
    range_spec: RangeSpec,
    now: datetime,
    tz: TimezoneLike = "UTC",
    week_start: str = "monday",
) -> list[datetime]:
    """Ordered bucket boundaries from the span start to ``now``.

    Parameters
    ----------
    range_spec : RangeSpec
        Unit and number of units to cover.
    now : datetime
        Timezone-aware end of the span (exclusive).
    tz : str or ZoneInfo
        Zone in which calendar boundaries are computed.
    week_start : str
        Weekday name on which weekly buckets begin.

    Returns
    -------
    list of datetime
        ``[span_start, *calendar boundaries in (span_start, now), now]``,
        all aware in ``tz``.
    """
    if week_start not in WEEKDAYS:
        raise ValueError(f"week_start must be one of {WEEKDAYS}, got {week_start!r}")

    zone = _zone(tz)
    local_now = _local_now(now, zone)
    now_wall = local_now.tz_localize(None)
    start_wall = _span_start_wall(range_spec, now_wall)

    if range_spec.unit == "week":
        freq = f"W-{week_start[:3].upper()}"
    else:
        freq = _FREQUENCIES[range_spec.unit]

    candidates = pd.date_range(start=start_wall.normalize(), end=now_wall, freq=freq)
    inner = candidates[(candidates > start_wall) & (candidates < now_wall)]

    edges = [_localize(start_wall, zone), *_localize(inner, zone), local_now]
    return [edge.to_pydatetime() for edge in edges]


def _to_ns(values: Sequence[datetime]) -> np.ndarray:
    if len(values) == 0:
        return np.empty(0, dtype=np.int64)
    return pd.to_datetime(list(values), utc=True).as_unit("ns").asi8


def assign_to_buckets(timestamps: Sequence[datetime], edges: Sequence[datetime]) -> np.ndarray:
    """Bucket index for every timestamp, or -1 when outside the span.

    Intervals are half-open: a timestamp equal to an inner edge belongs to
    the later bucket, one equal to the final edge is excluded.
    """
    edges_ns = _to_ns(edges)
    ts_ns = _to_ns(timestamps)

    slots = np.searchsorted(edges_ns, ts_ns, side="right") - 1
    inside = (ts_ns >= edges_ns[0]) & (ts_ns < edges_ns[-1])
    return np.where(inside, slots, -1)


def build_trend(
    scans: Iterable[ScanRecord],
    range_spec: RangeSpec,
    now: datetime,
    week_start: str = "monday",
    tz: TimezoneLike = "UTC",
    categories: Optional[Sequence[Category]] = None,
) -> list[TrendBucket]:
    """Bucket scans over the last ``range_spec`` units before ``now``.

    Parameters
    ----------
    scans : iterable of ScanRecord
        Scans to consider; those outside ``[span_start, now)`` are ignored.
    range_spec : RangeSpec
        Span length and bucket granularity.
    now : datetime
        Timezone-aware reference instant. The clock is never read here.
    week_start : str
        Weekday name on which weekly buckets begin.
    tz : str or ZoneInfo
        Zone in which calendar boundaries are computed.
    categories : sequence of Category, optional
        Categories to report. Defaults to every category seen in the
        included scans, in category order.

    Returns
    -------
    list of TrendBucket
        Oldest first. Buckets without scans carry zero sums.

    Examples
    --------
    >>> now = datetime(2024, 1, 8, tzinfo=timezone.utc)
    >>> buckets = build_trend(scans, RangeSpec(unit="day", count=7), now)
    >>> [b.window_start.day for b in buckets]
    [1, 2, 3, 4, 5, 6, 7]
    """
    edges = bucket_edges(range_spec, now, tz=tz, week_start=week_start)
    n_buckets = len(edges) - 1

    scans = list(scans)
    slots = assign_to_buckets([scan.timestamp for scan in scans], edges)
    included = [(int(slot), scan) for slot, scan in zip(slots, scans) if slot >= 0]

    if categories is None:
        seen = {c.category for _, scan in included for c in scan.aggregated_counts}
        categories = [category for category in Category if category in seen]
    else:
        categories = list(dict.fromkeys(Category(c) for c in categories))

    column = {category: j for j, category in enumerate(categories)}
    sums = np.zeros((n_buckets, len(categories)), dtype=np.int64)
    for slot, scan in included:
        for aggregated in scan.aggregated_counts:
            j = column.get(aggregated.category)
            if j is not None:
                sums[slot, j] += aggregated.count

    scan_counts = np.bincount(slots[slots >= 0].astype(np.int64), minlength=n_buckets)

    buckets = [
        TrendBucket(
            window_start=edges[i],
            window_end=edges[i + 1],
            per_category_sums={category: int(sums[i, j]) for category, j in column.items()},
            total=int(sums[i].sum()),
            scan_count=int(scan_counts[i]),
        )
        for i in range(n_buckets)
    ]

    assert_trend_partition(buckets, edges[0], edges[-1])
    require(
        sum(b.scan_count for b in buckets) == len(included),
        "Trend contract violated: scan counts do not match included scans"
    )

    logger.debug(
        "Trend %s x%d: %d buckets, %d of %d scans included",
        range_spec.unit, range_spec.count, n_buckets, len(included), len(scans),
    )
    return buckets


def trend_frame(buckets: Sequence[TrendBucket]) -> pd.DataFrame:
    """Buckets as a DataFrame indexed by ``window_start``.

    One column per category (by value), then ``total``, ``scan_count`` and
    ``window_end``.
    """
    rows = []
    for bucket in buckets:
        row = {"window_start": bucket.window_start}
        row.update({category.value: n for category, n in bucket.per_category_sums.items()})
        row["total"] = bucket.total
        row["scan_count"] = bucket.scan_count
        row["window_end"] = bucket.window_end
        rows.append(row)

    frame = pd.DataFrame(rows)
    if frame.empty:
        return frame
    return frame.set_index("window_start")


def summarize_scans(
    scans: Iterable[ScanRecord],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """Headline numbers for the scans in ``[start, end)``.

    Returns
    -------
    dict
        ``total_scans``, ``total_count``, ``avg_per_scan`` (rounded half up)
        and ``peak_total`` (largest single-scan total).
    """
    totals = [
        scan.total_count for scan in scans
        if (start is None or scan.timestamp >= start) and (end is None or scan.timestamp < end)
    ]
    if not totals:
        return {"total_scans": 0, "total_count": 0, "avg_per_scan": 0, "peak_total": 0}

    total = sum(totals)
    return {
        "total_scans": len(totals),
        "total_count": total,
        "avg_per_scan": (2 * total + len(totals)) // (2 * len(totals)),
        "peak_total": max(totals),
    }

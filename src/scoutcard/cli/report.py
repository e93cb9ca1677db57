"""Report commands over the scan record store.

This module contains the command implementations, separated from argument
parsing so they can be called directly. ``main()`` is the console entry
point.

Usage
-----
::

    scoutcard --config scripts/user_config.py trend --unit week --count 8
    scoutcard reclassify --subject trap-3
    scoutcard thresholds --set whitefly 3 10 20
    scoutcard lots --active
    scoutcard stats
"""

import argparse
import importlib.util
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from scoutcard.analysis.classifier import highest_alert, reclassify
from scoutcard.analysis.germination import germ_status, germination_rate
from scoutcard.analysis.models import Category, InvalidThresholdConfig, RangeSpec
from scoutcard.analysis.trends import build_trend, span_start, summarize_scans
from scoutcard.pipeline.record_store import RecordStore
from scoutcard.pipeline.scan_pipeline import current_thresholds
from scoutcard.schemas import CLIConfig, InternalConfig, ParamConfig, UserConfig, resolve_config

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("scoutcard_user_config", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def build_config(user_config_path: Optional[str] = None,
                 cli_args: Optional[Dict[str, Any]] = None) -> InternalConfig:
    """Resolve Param < User < CLI into an InternalConfig."""
    param_cfg = ParamConfig()

    user_dict = load_user_config_dict(user_config_path) if user_config_path else {}
    user_cfg = UserConfig.model_validate(user_dict)

    cli_dict = {k: v for k, v in (cli_args or {}).items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    return resolve_config(param_cfg, user_cfg, cli_cfg)


def setup_logging(config: InternalConfig, log_file: Optional[str] = None) -> None:
    """Configure the root logger with a console and optional file handler."""
    level = getattr(logging, config.logging.level, logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file)
        fh.setLevel(level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    logger.debug("Logging: level=%s, file=%s", config.logging.level, log_file)


def run_trend(config: InternalConfig, store: RecordStore, range_spec: Optional[RangeSpec] = None,
              now: Optional[datetime] = None, subject_id: Optional[str] = None,
              categories: Optional[Sequence[Category]] = None) -> dict:
    """Trend buckets and headline summary for the stored scans.

    ``now`` defaults to the current UTC time; it is resolved here, once,
    and passed explicitly to the trend builder.
    """
    range_spec = range_spec or config.trends.default_range()
    now = now or datetime.now(timezone.utc)
    tz = config.trends.timezone

    start = span_start(range_spec, now, tz=tz)
    scans = store.list_scans(subject_id=subject_id, start=start, end=now)

    buckets = build_trend(
        scans, range_spec, now,
        week_start=config.trends.week_start, tz=tz, categories=categories,
    )
    logger.info("Trend: %d scans in %d buckets since %s", len(scans), len(buckets), start)

    return {
        "range": range_spec.model_dump(),
        "now": now.isoformat(),
        "summary": summarize_scans(scans, start, now),
        "buckets": [bucket.model_dump(mode="json") for bucket in buckets],
    }


def run_lots(config: InternalConfig, store: RecordStore, now: Optional[datetime] = None,
             active_only: bool = False) -> List[dict]:
    """Germination status of each seed lot from its latest scan.

    A lot without a scan, or whose latest scan lost a cell class, has
    ``rate`` and ``status`` set to None.
    """
    now = now or datetime.now(timezone.utc)
    local_now = now.astimezone(ZoneInfo(config.trends.timezone))
    cutoffs = config.germination.cutoffs

    rows = []
    for lot in store.list_lots(active_only=active_only):
        latest = store.latest_scan(lot.id)
        rate = germination_rate(latest.aggregated_counts) if latest else None
        status = germ_status(rate, cutoffs) if rate is not None else None
        rows.append({
            "id": lot.id,
            "name": lot.name,
            "days_after_seeding": lot.days_after_seeding(local_now),
            "expected_cells": lot.cells_per_tray * lot.tray_count,
            "counts": {c.category.label: c.count for c in latest.aggregated_counts} if latest else {},
            "rate": rate,
            "status": status.value if status else None,
            "meets_target": rate >= lot.germ_target if rate is not None else None,
        })

    logger.info("Germination report: %d lot(s)", len(rows))
    return rows


def run_stats(store: RecordStore) -> dict:
    """Record counts plus the highest alert across every subject's latest scan."""
    stats = store.get_statistics()
    stats["highest_alert"] = highest_alert(store.list_scans()).value
    return stats


def run_reclassify(config: InternalConfig, store: RecordStore,
                   subject_id: Optional[str] = None) -> List[dict]:
    """Stored alert vs. the alert under current thresholds, per scan."""
    thresholds = current_thresholds(config, store)

    rows = []
    for scan in store.list_scans(subject_id=subject_id):
        current = reclassify(scan, thresholds).scan_alert_level
        rows.append({
            "id": scan.id,
            "subject_id": scan.subject_id,
            "timestamp": scan.timestamp.isoformat(),
            "stored": scan.alert_level.value,
            "current": current.value,
            "current_label": current.label,
            "changed": current != scan.alert_level,
        })
    return rows


def run_thresholds(config: InternalConfig, store: RecordStore,
                   set_values: Optional[Sequence[str]] = None) -> List[dict]:
    """List thresholds, optionally after setting one category.

    Raises
    ------
    InvalidThresholdConfig
        If the new values are rejected; nothing is written.
    """
    if store.seed_thresholds(config.alerts.default_thresholds):
        logger.info("Seeded thresholds from configuration defaults")

    if set_values:
        category, watch, action, critical = set_values
        store.put_threshold({
            "category": category, "watch": watch, "action": action, "critical": critical,
        })

    return [cfg.model_dump(mode="json") for cfg in store.get_thresholds()]


def _parse_now(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise argparse.ArgumentTypeError("--now must include a UTC offset")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scoutcard", description="Scan record reports")
    parser.add_argument("--config", help="Path to user config file (Python, CONFIG dict)")
    parser.add_argument("--base-dir", help="Override data directory")
    parser.add_argument("--timezone", help="Override trend timezone")
    parser.add_argument("--week-start", help="Override first day of week")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG logging")

    sub = parser.add_subparsers(dest="command", required=True)

    trend = sub.add_parser("trend", help="Calendar-aligned trend buckets")
    trend.add_argument("--unit", choices=["day", "week", "month", "year"])
    trend.add_argument("--count", type=int)
    trend.add_argument("--subject", help="Only scans of this trap or lot id")
    trend.add_argument("--now", type=_parse_now, help="Reference instant (ISO 8601 with offset)")
    trend.add_argument("--categories", nargs="+", choices=[c.value for c in Category])

    recl = sub.add_parser("reclassify", help="Stored vs. current-threshold alerts")
    recl.add_argument("--subject", help="Only scans of this trap or lot id")

    thr = sub.add_parser("thresholds", help="List or set alert thresholds")
    thr.add_argument("--set", nargs=4, metavar=("CATEGORY", "WATCH", "ACTION", "CRITICAL"))

    lots = sub.add_parser("lots", help="Germination status per seed lot")
    lots.add_argument("--active", action="store_true", help="Only active lots")
    lots.add_argument("--now", type=_parse_now, help="Reference instant (ISO 8601 with offset)")

    sub.add_parser("stats", help="Record counts and highest current alert")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entry point. Returns a process exit code."""
    args = build_parser().parse_args(argv)

    cli_args = {
        "base_dir": args.base_dir,
        "timezone": args.timezone,
        "week_start": args.week_start,
        "log_level": "DEBUG" if args.verbose else args.log_level,
    }
    try:
        config = build_config(args.config, cli_args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config, args.log_file)

    range_spec = None
    if args.command == "trend" and (args.unit is not None or args.count is not None):
        default = config.trends.default_range()
        try:
            range_spec = RangeSpec(
                unit=args.unit or default.unit,
                count=args.count if args.count is not None else default.count,
            )
        except ValidationError as e:
            print(f"Invalid trend range: {e}", file=sys.stderr)
            return 2

    with RecordStore(config.store.db_path) as store:
        if args.command == "trend":
            categories = [Category(c) for c in args.categories] if args.categories else None
            result = run_trend(config, store, range_spec, args.now, args.subject, categories)
        elif args.command == "reclassify":
            result = run_reclassify(config, store, args.subject)
        elif args.command == "thresholds":
            try:
                result = run_thresholds(config, store, args.set)
            except InvalidThresholdConfig as e:
                logger.error("Threshold rejected: %s", e)
                return 2
        elif args.command == "lots":
            result = run_lots(config, store, args.now, args.active)
        else:
            result = run_stats(store)

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Tests for the report commands and the console entry point."""

import json
import logging
from datetime import date, datetime, timezone

import pytest

from scoutcard.analysis.models import AlertLevel, Category, RangeSpec, SeedLot
from scoutcard.cli.report import (
    build_config,
    load_user_config_dict,
    main,
    run_lots,
    run_reclassify,
    run_stats,
    run_thresholds,
    run_trend,
    setup_logging,
)
from scoutcard.pipeline.record_store import RecordStore
from tests.helpers.records import make_scan

pytestmark = pytest.mark.unit

NOW = datetime(2024, 1, 8, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def config(temp_dir):
    return build_config(cli_args={"base_dir": str(temp_dir)})


@pytest.fixture
def store(config):
    with RecordStore(config.store.db_path) as s:
        yield s


@pytest.fixture
def user_config_file(temp_dir):
    path = temp_dir / "my_config.py"
    path.write_text(
        "CONFIG = {\n"
        "    'PASSES': 5,\n"
        "    'WEEK_START': 'sun',\n"
        "    'TIMEZONE': 'America/Chicago',\n"
        f"    'BASE_DIR': {str(temp_dir)!r},\n"
        "}\n"
    )
    return path


def run_main(capsys, *argv):
    code = main(list(argv))
    out = capsys.readouterr().out
    return code, (json.loads(out) if code == 0 else None)


class TestConfigLoading:

    def test_load_user_config_dict(self, user_config_file):
        assert load_user_config_dict(str(user_config_file))["PASSES"] == 5

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            load_user_config_dict(str(temp_dir / "nope.py"))

    def test_file_without_config(self, temp_dir):
        path = temp_dir / "empty.py"
        path.write_text("SETTINGS = 1\n")
        with pytest.raises(ValueError, match="No CONFIG dict"):
            load_user_config_dict(str(path))

    def test_cli_overrides_file(self, user_config_file):
        config = build_config(str(user_config_file), {"week_start": "wednesday", "timezone": None})

        assert config.aggregator.passes_per_category == 5
        assert config.trends.week_start == "wednesday"
        assert config.trends.timezone == "America/Chicago"


class TestSetupLogging:

    def test_file_handler(self, config, temp_dir):
        log_file = temp_dir / "logs" / "scoutcard.log"
        setup_logging(config, str(log_file))

        logging.getLogger("scoutcard.test").info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = log_file.read_text()
        assert "scoutcard.test - INFO - hello from the test" in text


class TestRunTrend:

    def test_buckets_and_summary(self, config, store):
        store.add_scan(make_scan({"whitefly": 3}, datetime(2024, 1, 2, 10, tzinfo=timezone.utc)))
        store.add_scan(make_scan({"whitefly": 4}, datetime(2024, 1, 2, 12, tzinfo=timezone.utc)))
        store.add_scan(make_scan({"whitefly": 50}, datetime(2023, 11, 1, tzinfo=timezone.utc)))

        result = run_trend(config, store, RangeSpec(unit="day", count=7), now=NOW)

        assert result["range"] == {"unit": "day", "count": 7}
        assert len(result["buckets"]) == 7
        assert result["buckets"][1]["per_category_sums"] == {"whitefly": 7}
        assert result["summary"] == {"total_scans": 2, "total_count": 7, "avg_per_scan": 4, "peak_total": 4}

    def test_default_range_from_config(self, config, store):
        result = run_trend(config, store, now=NOW)
        assert result["range"] == {"unit": "week", "count": 8}

    def test_subject_filter(self, config, store):
        store.add_scan(make_scan({"thrips": 2}, datetime(2024, 1, 3, tzinfo=timezone.utc), subject_id="a"))
        store.add_scan(make_scan({"thrips": 5}, datetime(2024, 1, 3, tzinfo=timezone.utc), subject_id="b"))

        result = run_trend(config, store, RangeSpec(unit="week", count=1), now=NOW, subject_id="b")
        assert result["summary"]["total_count"] == 5


class TestRunReclassify:

    def test_reports_changed_alerts(self, config, store):
        old = make_scan({"whitefly": 12}, NOW, alert_level=AlertLevel.SAFE, scan_id="old")
        same = make_scan({"whitefly": 1}, NOW, alert_level=AlertLevel.SAFE, scan_id="same")
        store.add_scan(old)
        store.add_scan(same)

        rows = {row["id"]: row for row in run_reclassify(config, store)}

        assert rows["old"]["stored"] == "safe"
        assert rows["old"]["current"] == "watch"
        assert rows["old"]["changed"] is True
        assert rows["old"]["current_label"] == "Watch"
        assert rows["same"]["changed"] is False
        # Stored snapshot untouched
        assert store.get_scan("old").alert_level == AlertLevel.SAFE


class TestRunThresholds:

    def test_seeds_defaults(self, config, store):
        rows = run_thresholds(config, store)
        assert len(rows) == len(config.alerts.default_thresholds)

    def test_set_one_category(self, config, store):
        rows = run_thresholds(config, store, ["thrips", "5", "10", "20"])

        thrips = next(row for row in rows if row["category"] == "thrips")
        assert (thrips["watch"], thrips["action"], thrips["critical"]) == (5, 10, 20)
        assert store.get_thresholds()[1].category == Category.THRIPS


class TestMain:

    def test_thresholds_command(self, temp_dir, capsys):
        code, rows = run_main(capsys, "--base-dir", str(temp_dir), "thresholds",
                              "--set", "whitefly", "1", "2", "3")

        assert code == 0
        assert rows[0] == {"category": "whitefly", "watch": 1, "action": 2, "critical": 3}

    def test_invalid_threshold_exit_code(self, temp_dir, capsys):
        code, _ = run_main(capsys, "--base-dir", str(temp_dir), "thresholds",
                           "--set", "whitefly", "30", "2", "3")
        assert code == 2

        with RecordStore(temp_dir / "scoutcard.db") as s:
            whitefly = s.get_thresholds()[0]
        assert whitefly.watch != 30

    def test_trend_command(self, temp_dir, capsys):
        with RecordStore(temp_dir / "scoutcard.db") as s:
            s.add_scan(make_scan({"whitefly": 3, "thrips": 1}, datetime(2024, 1, 5, tzinfo=timezone.utc)))

        code, result = run_main(
            capsys, "--base-dir", str(temp_dir), "trend",
            "--unit", "day", "--count", "7", "--now", "2024-01-08T00:00:00Z",
            "--categories", "thrips",
        )

        assert code == 0
        assert [b["total"] for b in result["buckets"]] == [0, 0, 0, 0, 1, 0, 0]
        assert result["now"] == "2024-01-08T00:00:00+00:00"

    def test_stats_command(self, temp_dir, capsys):
        code, stats = run_main(capsys, "--base-dir", str(temp_dir), "stats")

        assert code == 0
        assert stats["scans"] == 0
        assert stats["alert_safe"] == 0
        assert stats["highest_alert"] == "safe"

    def test_missing_config_file(self, temp_dir, capsys):
        code = main(["--config", str(temp_dir / "missing.py"), "stats"])

        assert code == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_bad_timezone_is_config_error(self, temp_dir, capsys):
        code = main(["--base-dir", str(temp_dir), "--timezone", "Nowhere/Land", "stats"])
        assert code == 2

    @pytest.mark.parametrize("count", ["0", "-3"])
    def test_non_positive_count_is_usage_error(self, temp_dir, capsys, count):
        code = main(["--base-dir", str(temp_dir), "trend", "--count", count,
                     "--now", "2024-01-08T00:00:00Z"])

        assert code == 2
        assert "Invalid trend range" in capsys.readouterr().err

    def test_count_without_unit_uses_default_unit(self, temp_dir, capsys):
        code, result = run_main(capsys, "--base-dir", str(temp_dir), "trend", "--count", "3",
                                "--now", "2024-01-08T00:00:00Z")

        assert code == 0
        assert result["range"] == {"unit": "week", "count": 3}
        assert len(result["buckets"]) == 3

    def test_naive_now_rejected(self, temp_dir):
        with pytest.raises(SystemExit):
            main(["--base-dir", str(temp_dir), "trend", "--now", "2024-01-08T00:00:00"])


class TestRunLots:

    def test_latest_scan_status(self, config, store):
        lot = SeedLot(name="Basil", seed_date=date(2024, 1, 1), tray_size="128", tray_count=2,
                      germ_target=85)
        store.put_lot(lot)
        store.add_scan(make_scan({"germinated": 100, "empty": 20, "abnormal": 8},
                                 datetime(2024, 1, 5, tzinfo=timezone.utc), subject_id=lot.id))
        store.add_scan(make_scan({"germinated": 120, "empty": 6, "abnormal": 2},
                                 datetime(2024, 1, 7, tzinfo=timezone.utc), subject_id=lot.id))

        (row,) = run_lots(config, store, now=NOW)

        assert row["days_after_seeding"] == 7
        assert row["expected_cells"] == 256
        assert row["counts"] == {"Germinated": 120, "Empty": 6, "Abnormal": 2}
        assert row["rate"] == 93.8
        assert row["status"] == "excellent"
        assert row["meets_target"] is True

    def test_lot_without_scans(self, config, store):
        store.put_lot(SeedLot(name="Kale", seed_date=date(2024, 1, 1)))

        (row,) = run_lots(config, store, now=NOW)
        assert row["rate"] is None
        assert row["status"] is None
        assert row["meets_target"] is None

    def test_configured_cutoffs_apply(self, temp_dir, store):
        strict = build_config(cli_args={"base_dir": str(temp_dir)})
        strict = strict.model_copy(update={
            "germination": strict.germination.model_copy(update={"excellent": 99.0}),
        })
        lot = SeedLot(name="Chard", seed_date=date(2024, 1, 1))
        store.put_lot(lot)
        store.add_scan(make_scan({"germinated": 95, "empty": 5, "abnormal": 0}, NOW, subject_id=lot.id))

        (row,) = run_lots(strict, store, now=NOW)
        assert row["status"] == "good"

    def test_active_filter(self, config, store):
        store.put_lot(SeedLot(name="Old", seed_date=date(2023, 1, 1), active=False))
        assert run_lots(config, store, now=NOW, active_only=True) == []


class TestRunStats:

    def test_highest_alert_uses_latest_scan_per_subject(self, store):
        store.add_scan(make_scan({"whitefly": 40}, datetime(2024, 1, 1, tzinfo=timezone.utc),
                                 subject_id="a", alert_level=AlertLevel.CRITICAL))
        store.add_scan(make_scan({"whitefly": 6}, datetime(2024, 1, 2, tzinfo=timezone.utc),
                                 subject_id="a", alert_level=AlertLevel.WATCH))
        store.add_scan(make_scan({"whitefly": 1}, datetime(2024, 1, 2, tzinfo=timezone.utc),
                                 subject_id="b", alert_level=AlertLevel.SAFE))

        stats = run_stats(store)

        assert stats["scans"] == 3
        assert stats["alert_critical"] == 1
        assert stats["highest_alert"] == "watch"

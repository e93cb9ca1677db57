"""SQLite-backed record store for scans, thresholds, traps and seed lots.

Persists what the analysis core produces and consumes. Scans are stored with
their aggregated counts and the alert level snapshot taken at save time;
nothing here recomputes alerts.
"""

import json
import logging
import sqlite3
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from scoutcard.analysis.classifier import validate_thresholds
from scoutcard.analysis.models import (
    AlertLevel,
    Category,
    ScanRecord,
    SeedLot,
    ThresholdConfig,
    Trap,
)

logger = logging.getLogger(__name__)


def _iso(ts: datetime) -> str:
    # Fixed-width UTC text so lexical order matches time order
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordStore:
    """Persistent collections behind the scan pipeline and reports.

    **Tables:**

    - ``scans``: one row per saved :class:`ScanRecord`; aggregated counts are
      kept as JSON, ``timestamp`` as fixed-width UTC ISO text.
    - ``thresholds``: one row per category.
    - ``traps`` and ``lots``: the subjects scans belong to. Deleting a subject
      deletes its scans.

    **Thread Safety:**

    All methods are thread-safe via internal locking.

    **Typical Usage:**

    ::

        with RecordStore(config.store.db_path) as store:
            store.seed_thresholds(config.alerts.default_thresholds)
            store.add_scan(record)
            recent = store.list_scans(subject_id=trap.id, start=week_ago)

    Writes are last-write-wins per record.
    """

    def __init__(self, db_path: Union[Path, str]):
        """Initialize store.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file, or ``":memory:"``. Created if it
            doesn't exist.
        """
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._lock = threading.Lock()

        self._init_database()
        logger.info(f"Record store initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scans (
                    id TEXT PRIMARY KEY,
                    subject_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    total_count INTEGER NOT NULL,
                    alert_level TEXT NOT NULL,
                    notes TEXT DEFAULT '',
                    counts_json TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS thresholds (
                    category TEXT PRIMARY KEY,
                    watch INTEGER NOT NULL,
                    action INTEGER NOT NULL,
                    critical INTEGER NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS traps (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    zone TEXT DEFAULT '',
                    greenhouse TEXT DEFAULT '',
                    card_color TEXT DEFAULT 'yellow'
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS lots (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    crop TEXT DEFAULT '',
                    variety TEXT DEFAULT '',
                    supplier TEXT DEFAULT '',
                    seed_date TEXT NOT NULL,
                    tray_size TEXT NOT NULL,
                    custom_tray_size INTEGER,
                    tray_count INTEGER NOT NULL,
                    expected_germ_days INTEGER NOT NULL,
                    germ_target REAL NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    notes TEXT DEFAULT ''
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_scans_subject ON scans(subject_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_scans_timestamp ON scans(timestamp)")

            conn.commit()

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def add_scan(self, record: ScanRecord) -> ScanRecord:
        """Persist a scan exactly as given, including its alert snapshot."""
        counts_json = json.dumps([c.model_dump(mode="json") for c in record.aggregated_counts])
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                INSERT OR REPLACE INTO scans
                    (id, subject_id, timestamp, total_count, alert_level, notes, counts_json)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                record.id, record.subject_id, _iso(record.timestamp), record.total_count,
                record.alert_level.value, record.notes, counts_json,
            ))
            conn.commit()

        logger.debug(f"Saved scan {record.id} for {record.subject_id} ({record.alert_level.value})")
        return record

    @staticmethod
    def _row_to_scan(row: sqlite3.Row) -> ScanRecord:
        return ScanRecord.model_validate({
            "id": row["id"],
            "subject_id": row["subject_id"],
            "timestamp": datetime.fromisoformat(row["timestamp"]),
            "aggregated_counts": json.loads(row["counts_json"]),
            "total_count": row["total_count"],
            "alert_level": row["alert_level"],
            "notes": row["notes"] or "",
        })

    def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        """Scan by id, or None."""
        conn = self._get_connection()

        with self._lock:
            row = conn.execute("SELECT * FROM scans WHERE id = ?", (scan_id,)).fetchone()

        return self._row_to_scan(row) if row else None

    def list_scans(self, subject_id: Optional[str] = None,
                   start: Optional[datetime] = None,
                   end: Optional[datetime] = None,
                   limit: Optional[int] = None) -> List[ScanRecord]:
        """Scans matching the filters, oldest first.

        Parameters
        ----------
        subject_id : str, optional
            Only scans of this trap or lot.
        start, end : datetime, optional
            Half-open time window ``[start, end)``.
        limit : int, optional
            Keep only the newest ``limit`` scans (still returned oldest first).
        """
        query = "SELECT * FROM scans WHERE 1 = 1"
        params = []

        if subject_id:
            query += " AND subject_id = ?"
            params.append(subject_id)
        if start is not None:
            query += " AND timestamp >= ?"
            params.append(_iso(start))
        if end is not None:
            query += " AND timestamp < ?"
            params.append(_iso(end))

        query += " ORDER BY timestamp DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._get_connection()
        with self._lock:
            rows = conn.execute(query, params).fetchall()

        return [self._row_to_scan(row) for row in reversed(rows)]

    def latest_scan(self, subject_id: str) -> Optional[ScanRecord]:
        """Most recent scan for a subject, or None."""
        scans = self.list_scans(subject_id=subject_id, limit=1)
        return scans[0] if scans else None

    def update_scan_notes(self, scan_id: str, notes: str) -> Optional[ScanRecord]:
        """Replace a scan's notes, the only field that may change after save."""
        conn = self._get_connection()
        with self._lock:
            row = conn.execute("SELECT * FROM scans WHERE id = ?", (scan_id,)).fetchone()
            if row is None:
                return None

            updated = self._row_to_scan(row).with_notes(notes)
            conn.execute("UPDATE scans SET notes = ? WHERE id = ?", (updated.notes, scan_id))
            conn.commit()
        return updated

    def delete_scan(self, scan_id: str) -> bool:
        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute("DELETE FROM scans WHERE id = ?", (scan_id,))
            conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    def put_threshold(self, cfg: Union[ThresholdConfig, Mapping]) -> ThresholdConfig:
        """Validate and upsert one category's thresholds.

        Raises
        ------
        InvalidThresholdConfig
            If the config is malformed or violates ``watch <= action <= critical``.
            Nothing is written in that case.
        """
        (validated,) = validate_thresholds([cfg])
        conn = self._get_connection()

        with self._lock:
            self._upsert_threshold(conn, validated)
            conn.commit()

        logger.info(
            f"Thresholds for {validated.category.value}: "
            f"{validated.watch}/{validated.action}/{validated.critical}"
        )
        return validated

    def get_thresholds(self) -> List[ThresholdConfig]:
        """Current threshold snapshot in category order."""
        conn = self._get_connection()
        with self._lock:
            rows = conn.execute("SELECT category, watch, action, critical FROM thresholds").fetchall()

        order = list(Category)
        configs = [ThresholdConfig.model_validate(dict(row)) for row in rows]
        return sorted(configs, key=lambda cfg: order.index(cfg.category))

    def seed_thresholds(self, defaults: Iterable[ThresholdConfig]) -> int:
        """Write ``defaults`` when no thresholds are stored yet.

        Returns
        -------
        int
            Number of configs written (0 when thresholds already existed).
        """
        validated = validate_thresholds(defaults)
        conn = self._get_connection()

        # One lock hold covers the emptiness check and the writes
        with self._lock:
            if conn.execute("SELECT 1 FROM thresholds LIMIT 1").fetchone():
                return 0
            for cfg in validated:
                self._upsert_threshold(conn, cfg)
            conn.commit()

        logger.info(f"Seeded {len(validated)} threshold config(s)")
        return len(validated)

    @staticmethod
    def _upsert_threshold(conn: sqlite3.Connection, cfg: ThresholdConfig) -> None:
        # Caller holds the lock and commits
        conn.execute("""
            INSERT INTO thresholds (category, watch, action, critical, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(category) DO UPDATE SET
                watch = excluded.watch,
                action = excluded.action,
                critical = excluded.critical,
                updated_at = excluded.updated_at
        """, (cfg.category.value, cfg.watch, cfg.action, cfg.critical, _now()))

    def delete_threshold(self, category: Union[Category, str]) -> bool:
        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute(
                "DELETE FROM thresholds WHERE category = ?", (Category(category).value,)
            )
            conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Traps and lots
    # ------------------------------------------------------------------

    def _upsert(self, table: str, data: Dict):
        columns = ", ".join(data)
        placeholders = ", ".join("?" * len(data))
        conn = self._get_connection()
        with self._lock:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} ({columns}) VALUES ({placeholders})",
                list(data.values()),
            )
            conn.commit()

    def _delete_subject(self, table: str, subject_id: str) -> bool:
        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (subject_id,))
            removed = conn.execute("DELETE FROM scans WHERE subject_id = ?", (subject_id,))
            conn.commit()

        if cursor.rowcount:
            logger.info(f"Deleted {table[:-1]} {subject_id} and {removed.rowcount} scan(s)")
        return cursor.rowcount > 0

    def put_trap(self, trap: Trap) -> Trap:
        self._upsert("traps", trap.model_dump(mode="json"))
        return trap

    def get_trap(self, trap_id: str) -> Optional[Trap]:
        conn = self._get_connection()
        with self._lock:
            row = conn.execute("SELECT * FROM traps WHERE id = ?", (trap_id,)).fetchone()
        return Trap.model_validate(dict(row)) if row else None

    def list_traps(self) -> List[Trap]:
        conn = self._get_connection()
        with self._lock:
            rows = conn.execute("SELECT * FROM traps ORDER BY name").fetchall()
        return [Trap.model_validate(dict(row)) for row in rows]

    def delete_trap(self, trap_id: str) -> bool:
        """Delete a trap and every scan of it."""
        return self._delete_subject("traps", trap_id)

    def put_lot(self, lot: SeedLot) -> SeedLot:
        data = lot.model_dump(mode="json")
        data["active"] = int(lot.active)
        self._upsert("lots", data)
        return lot

    @staticmethod
    def _row_to_lot(row: sqlite3.Row) -> SeedLot:
        data = dict(row)
        data["seed_date"] = date.fromisoformat(data["seed_date"])
        data["active"] = bool(data["active"])
        return SeedLot.model_validate(data)

    def get_lot(self, lot_id: str) -> Optional[SeedLot]:
        conn = self._get_connection()
        with self._lock:
            row = conn.execute("SELECT * FROM lots WHERE id = ?", (lot_id,)).fetchone()
        return self._row_to_lot(row) if row else None

    def list_lots(self, active_only: bool = False) -> List[SeedLot]:
        query = "SELECT * FROM lots"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY seed_date DESC, name"

        conn = self._get_connection()
        with self._lock:
            rows = conn.execute(query).fetchall()
        return [self._row_to_lot(row) for row in rows]

    def delete_lot(self, lot_id: str) -> bool:
        """Delete a seed lot and every scan of it."""
        return self._delete_subject("lots", lot_id)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def get_statistics(self) -> Dict:
        """Record counts and scans per alert level.

        Returns
        -------
        dict
            ``scans``, ``traps``, ``lots``, ``thresholds`` and one
            ``alert_<level>`` key per alert level.
        """
        conn = self._get_connection()

        with self._lock:
            stats = dict(conn.execute("""
                SELECT
                    (SELECT COUNT(*) FROM scans) AS scans,
                    (SELECT COUNT(*) FROM traps) AS traps,
                    (SELECT COUNT(*) FROM lots) AS lots,
                    (SELECT COUNT(*) FROM thresholds) AS thresholds
            """).fetchone())
            per_level = {
                row["alert_level"]: row["n"]
                for row in conn.execute(
                    "SELECT alert_level, COUNT(*) AS n FROM scans GROUP BY alert_level"
                )
            }

        for level in AlertLevel:
            stats[f"alert_{level.value}"] = per_level.get(level.value, 0)
        return stats

    def close(self):
        """Close database connection. Safe to call multiple times."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

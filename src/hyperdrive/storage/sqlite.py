import datetime
import json
import sqlite3
import threading
import time
from typing import List, Dict, Any, Optional

from .base import BaseStorage
from ..core.history import MetricReport
from ..core.trial import Trial, TrialStatus


def _iso(dt: Optional[datetime.datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse(value: Optional[str]) -> Optional[datetime.datetime]:
    return datetime.datetime.fromisoformat(value) if value else None


class SQLiteStorage(BaseStorage):
    """
    A storage backend that uses SQLite for persistence.

    This class implements the BaseStorage interface to provide a durable, file-based
    record of tuning runs. ``":memory:"`` keeps everything in a single shared
    in-memory connection.

    Args:
        database_url (str): The path to the SQLite database file.
    """
    def __init__(self, database_url: str):
        if database_url.startswith("sqlite:///"):
            self.database_url = database_url[len("sqlite:///"):]
        else:
            self.database_url = database_url
        self._local = threading.local()
        self._lock = threading.Lock()
        self._shared_conn = None
        if self.database_url == ":memory:":
            self._shared_conn = sqlite3.connect(self.database_url, check_same_thread=False)
            self._shared_conn.row_factory = sqlite3.Row
        self._init_db()

    def _get_conn(self):
        """Establishes and returns a database connection."""
        if self._shared_conn is not None:
            return self._shared_conn
        if not hasattr(self._local, 'conn'):
            self._local.conn = sqlite3.connect(self.database_url, timeout=10)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    def _init_db(self):
        """Initializes the database schema if it doesn't exist."""
        conn = self._get_conn()
        with self._lock, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS runs (
                    run_id TEXT PRIMARY KEY,
                    primary_metric TEXT NOT NULL,
                    goal TEXT NOT NULL,
                    declaration TEXT, -- Stored as JSON string
                    state TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS trials (
                    run_id TEXT NOT NULL,
                    trial_id INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    params TEXT NOT NULL, -- Stored as JSON string
                    start_time TEXT,
                    end_time TEXT,
                    completion_order INTEGER,
                    error TEXT,
                    PRIMARY KEY (run_id, trial_id),
                    FOREIGN KEY (run_id) REFERENCES runs (run_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS metrics (
                    run_id TEXT NOT NULL,
                    trial_id INTEGER NOT NULL,
                    interval INTEGER NOT NULL,
                    value REAL NOT NULL,
                    timestamp REAL NOT NULL,
                    PRIMARY KEY (run_id, trial_id, interval)
                )
            """)

    def create_run(self, run_id: str, primary_metric_name: str, goal: str,
                   declaration: Optional[Dict[str, Any]] = None) -> None:
        conn = self._get_conn()
        with self._lock, conn:
            conn.execute(
                "INSERT INTO runs (run_id, primary_metric, goal, declaration, state, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (run_id, primary_metric_name, goal, json.dumps(declaration, default=str), "NOT_STARTED", time.time()),
            )

    def update_run(self, run_id: str, state: str) -> None:
        conn = self._get_conn()
        with self._lock, conn:
            conn.execute("UPDATE runs SET state = ? WHERE run_id = ?", (state, run_id))

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        conn = self._get_conn()
        with self._lock:
            row = conn.execute("SELECT * FROM runs WHERE run_id = ?", (run_id,)).fetchone()
        if row is None:
            return None
        run = dict(row)
        run["declaration"] = json.loads(run["declaration"]) if run["declaration"] else None
        return run

    def create_trial(self, run_id: str, trial: Trial) -> None:
        conn = self._get_conn()
        with self._lock, conn:
            conn.execute(
                "INSERT INTO trials (run_id, trial_id, status, params, start_time) VALUES (?, ?, ?, ?, ?)",
                (run_id, trial.trial_id, trial.status.value, json.dumps(trial.configuration, default=str),
                 _iso(trial.start_time)),
            )

    def update_trial(self, run_id: str, trial: Trial) -> None:
        conn = self._get_conn()
        with self._lock, conn:
            conn.execute(
                "UPDATE trials SET status = ?, end_time = ?, completion_order = ?, error = ? "
                "WHERE run_id = ? AND trial_id = ?",
                (trial.status.value, _iso(trial.end_time), trial.completion_order, trial.error,
                 run_id, trial.trial_id),
            )

    def add_metric(self, run_id: str, trial_id: int, report: MetricReport) -> None:
        conn = self._get_conn()
        with self._lock, conn:
            conn.execute(
                "INSERT INTO metrics (run_id, trial_id, interval, value, timestamp) VALUES (?, ?, ?, ?, ?)",
                (run_id, trial_id, report.interval, report.value, report.timestamp),
            )

    def get_metric_history(self, run_id: str, trial_id: int) -> List[MetricReport]:
        conn = self._get_conn()
        with self._lock:
            rows = conn.execute(
                "SELECT interval, value, timestamp FROM metrics WHERE run_id = ? AND trial_id = ? "
                "ORDER BY interval",
                (run_id, trial_id),
            ).fetchall()
        return [MetricReport(r["interval"], r["value"], r["timestamp"]) for r in rows]

    def get_all_trials(self, run_id: str) -> List[Trial]:
        conn = self._get_conn()
        with self._lock:
            rows = conn.execute(
                "SELECT * FROM trials WHERE run_id = ? ORDER BY trial_id", (run_id,)
            ).fetchall()

        trials = []
        for row in rows:
            trials.append(Trial(
                trial_id=row["trial_id"],
                configuration=json.loads(row["params"]),
                status=TrialStatus(row["status"]),
                reports=self.get_metric_history(run_id, row["trial_id"]),
                start_time=_parse(row["start_time"]),
                end_time=_parse(row["end_time"]),
                completion_order=row["completion_order"],
                error=row["error"],
            ))
        return trials

"""SQLite-backed store for the cron engine.

4 tables:
    cron_jobs, cron_sessions, notifications, cron_audit_log

Every ``sqlite3.Error`` surfaces as ``StoreError``: if bookkeeping can't be
written the runner must stop rather than guess.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from clawcron.core.cron.types import AuditEntry, CronJob, CronSession, Notification
from clawcron.core.errors import StoreError

# Columns a caller may change through update_job()
_UPDATABLE = frozenset({
    "name", "schedule", "type", "prompt", "command",
    "workspace_path", "model_id", "enabled", "next_run_at",
})


class CronStore:
    """SQLite store — single source of truth for jobs and run sessions."""

    def __init__(self, db_path: str = "data/clawcron.db", max_notifications: int = 100):
        self.db_path = db_path
        self.max_notifications = max_notifications
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"CronStore initialized: {db_path}")

    @contextmanager
    def _get_conn(self):
        try:
            conn = sqlite3.connect(self.db_path, timeout=10)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.executescript(_SCHEMA)
            conn.commit()

    # ════════════════════════════════════════════════════════════
    # CRON JOBS
    # ════════════════════════════════════════════════════════════

    def add_job(self, job: CronJob) -> CronJob:
        """Insert a new job. Returns it with created/updated timestamps set."""
        now = datetime.now()
        job = job.model_copy(update={
            "created_at": job.created_at or now,
            "updated_at": job.updated_at or now,
        })
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO cron_jobs
                   (job_id, name, schedule, type, prompt, command, workspace_path,
                    model_id, enabled, last_run_at, next_run_at, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (job.id, job.name, job.schedule, job.type, job.prompt, job.command,
                 job.workspace_path, job.model_id, int(job.enabled),
                 _ts(job.last_run_at), _ts(job.next_run_at),
                 _ts(job.created_at), _ts(job.updated_at)),
            )
            conn.commit()
        return job

    def get_job(self, job_id: str) -> CronJob | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM cron_jobs WHERE job_id = ?", (job_id,)
            ).fetchone()
        return _job(row) if row else None

    def list_jobs(self) -> list[CronJob]:
        """All jobs, enabled or not, ordered by id."""
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM cron_jobs ORDER BY job_id").fetchall()
        return [_job(r) for r in rows]

    def list_enabled_jobs(self) -> list[CronJob]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM cron_jobs WHERE enabled = 1 ORDER BY job_id"
            ).fetchall()
        return [_job(r) for r in rows]

    def update_job(self, job_id: str, **changes: Any) -> CronJob | None:
        """Update definition fields. Returns the updated job, None if missing."""
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        changes["updated_at"] = datetime.now()
        cols = ", ".join(f"{k} = ?" for k in changes)
        values = [_value(v) for v in changes.values()]
        with self._get_conn() as conn:
            cur = conn.execute(
                f"UPDATE cron_jobs SET {cols} WHERE job_id = ?", (*values, job_id),
            )
            conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_job(job_id)

    def remove_job(self, job_id: str) -> bool:
        """Delete a job. Its sessions are kept. Returns True if it existed."""
        with self._get_conn() as conn:
            cur = conn.execute("DELETE FROM cron_jobs WHERE job_id = ?", (job_id,))
            conn.commit()
        return cur.rowcount > 0

    def update_run_bookkeeping(
        self, job_id: str, last_run_at: datetime, next_run_at: datetime | None
    ) -> None:
        """Record a finished run attempt."""
        with self._get_conn() as conn:
            cur = conn.execute(
                """UPDATE cron_jobs SET last_run_at = ?, next_run_at = ?
                   WHERE job_id = ?""",
                (_ts(last_run_at), _ts(next_run_at), job_id),
            )
            conn.commit()
        if cur.rowcount == 0:
            logger.warning(f"Run bookkeeping for missing cron job {job_id}")

    def set_next_run(self, job_id: str, next_run_at: datetime | None) -> None:
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE cron_jobs SET next_run_at = ? WHERE job_id = ?",
                (_ts(next_run_at), job_id),
            )
            conn.commit()

    # ════════════════════════════════════════════════════════════
    # CRON SESSIONS
    # ════════════════════════════════════════════════════════════

    def create_session(self, session: CronSession) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO cron_sessions
                   (session_id, job_id, title, model_id, workspace_path, prompt,
                    started_at, status)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (session.id, session.cron_id, session.title, session.model_id,
                 session.workspace_path, session.prompt, _ts(session.started_at),
                 session.status),
            )
            conn.commit()

    def finish_session(
        self,
        session_id: str,
        status: str,
        output: str | None = None,
        error: str | None = None,
        finished_at: datetime | None = None,
    ) -> None:
        """Move a running session to its terminal state. Only allowed once."""
        with self._get_conn() as conn:
            cur = conn.execute(
                """UPDATE cron_sessions
                   SET status = ?, output = ?, error = ?, finished_at = ?
                   WHERE session_id = ? AND status = 'running'""",
                (status, output, error, _ts(finished_at or datetime.now()), session_id),
            )
            conn.commit()
        if cur.rowcount == 0:
            raise StoreError(
                f"Cron session {session_id} is missing or already finished",
                details={"session_id": session_id},
            )

    def get_session(self, session_id: str) -> CronSession | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM cron_sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
        return _session(row) if row else None

    def list_sessions(
        self, job_id: str | None = None, limit: int | None = None
    ) -> list[CronSession]:
        """Sessions newest first, optionally for a single job."""
        sql = "SELECT * FROM cron_sessions"
        params: list[Any] = []
        if job_id:
            sql += " WHERE job_id = ?"
            params.append(job_id)
        sql += " ORDER BY started_at DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        with self._get_conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_session(r) for r in rows]

    def delete_session(self, session_id: str) -> bool:
        with self._get_conn() as conn:
            cur = conn.execute(
                "DELETE FROM cron_sessions WHERE session_id = ?", (session_id,)
            )
            conn.commit()
        return cur.rowcount > 0

    # ════════════════════════════════════════════════════════════
    # NOTIFICATIONS
    # ════════════════════════════════════════════════════════════

    def add_notification(self, n: Notification) -> None:
        """Insert a notification, keeping only the newest ``max_notifications``."""
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO notifications
                   (notification_id, type, title, message, timestamp, read,
                    cron_job_name, session_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (n.id, n.type, n.title, n.message, _ts(n.timestamp), int(n.read),
                 n.cron_job_name, n.session_id),
            )
            conn.execute(
                """DELETE FROM notifications WHERE notification_id NOT IN (
                       SELECT notification_id FROM notifications
                       ORDER BY timestamp DESC, rowid DESC LIMIT ?)""",
                (self.max_notifications,),
            )
            conn.commit()

    def list_notifications(
        self, since: datetime | None = None, limit: int = 50
    ) -> list[Notification]:
        """Newest first; ``since`` keeps only strictly newer ones.

        Timestamps may carry different offsets, so ``since`` is compared as an
        instant in Python rather than as an ISO string in SQL.
        """
        with self._get_conn() as conn:
            if since is None:
                rows = conn.execute(
                    """SELECT * FROM notifications
                       ORDER BY timestamp DESC, rowid DESC LIMIT ?""",
                    (limit,),
                ).fetchall()
                return [_notification(r) for r in rows]
            rows = conn.execute(
                "SELECT * FROM notifications ORDER BY rowid DESC"
            ).fetchall()
        cutoff = _utc(since)
        newer = [n for n in map(_notification, rows) if _utc(n.timestamp) > cutoff]
        newer.sort(key=lambda n: _utc(n.timestamp), reverse=True)
        return newer[:limit]

    def mark_notification_read(self, notification_id: str) -> bool:
        with self._get_conn() as conn:
            cur = conn.execute(
                "UPDATE notifications SET read = 1 WHERE notification_id = ?",
                (notification_id,),
            )
            conn.commit()
        return cur.rowcount > 0

    def clear_notifications(self) -> int:
        with self._get_conn() as conn:
            cur = conn.execute("DELETE FROM notifications")
            conn.commit()
        return cur.rowcount

    # ════════════════════════════════════════════════════════════
    # AUDIT LOG
    # ════════════════════════════════════════════════════════════

    def add_audit_entry(self, entry: AuditEntry) -> int:
        with self._get_conn() as conn:
            cur = conn.execute(
                """INSERT INTO cron_audit_log
                   (timestamp, job_id, session_id, status, duration_ms, error)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (_ts(entry.timestamp), entry.cron_id, entry.session_id,
                 entry.status, entry.duration_ms, entry.error),
            )
            conn.commit()
        return cur.lastrowid

    def list_audit_entries(
        self, job_id: str | None = None, limit: int = 100
    ) -> list[AuditEntry]:
        with self._get_conn() as conn:
            if job_id:
                rows = conn.execute(
                    """SELECT * FROM cron_audit_log WHERE job_id = ?
                       ORDER BY id DESC LIMIT ?""",
                    (job_id, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM cron_audit_log ORDER BY id DESC LIMIT ?", (limit,)
                ).fetchall()
        return [_audit(r) for r in rows]

    # ════════════════════════════════════════════════════════════
    # STATS
    # ════════════════════════════════════════════════════════════

    def stats(self) -> dict[str, int]:
        """Counts for status displays."""
        with self._get_conn() as conn:
            jobs = conn.execute("SELECT COUNT(*) FROM cron_jobs").fetchone()[0]
            enabled = conn.execute(
                "SELECT COUNT(*) FROM cron_jobs WHERE enabled = 1"
            ).fetchone()[0]
            sessions = conn.execute("SELECT COUNT(*) FROM cron_sessions").fetchone()[0]
            running = conn.execute(
                "SELECT COUNT(*) FROM cron_sessions WHERE status = 'running'"
            ).fetchone()[0]
        return {"jobs": jobs, "enabled": enabled, "sessions": sessions, "running": running}


# ════════════════════════════════════════════════════════════
# ROW MAPPING
# ════════════════════════════════════════════════════════════


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _utc(value: datetime) -> datetime:
    # naive values are local time
    return value.astimezone(timezone.utc)


def _value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _job(row: sqlite3.Row) -> CronJob:
    data = dict(row)
    data["id"] = data.pop("job_id")
    return CronJob(**data)


def _session(row: sqlite3.Row) -> CronSession:
    data = dict(row)
    data["id"] = data.pop("session_id")
    data["cron_id"] = data.pop("job_id")
    return CronSession(**data)


def _notification(row: sqlite3.Row) -> Notification:
    data = dict(row)
    data["id"] = data.pop("notification_id")
    return Notification(**data)


def _audit(row: sqlite3.Row) -> AuditEntry:
    data = dict(row)
    data["cron_id"] = data.pop("job_id")
    return AuditEntry(**data)


# ════════════════════════════════════════════════════════════
# SCHEMA
# ════════════════════════════════════════════════════════════

_SCHEMA = """
-- 1. Cron jobs
CREATE TABLE IF NOT EXISTS cron_jobs (
    job_id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    schedule TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'prompt',
    prompt TEXT,
    command TEXT,
    workspace_path TEXT,
    model_id TEXT,
    enabled INTEGER DEFAULT 1,
    last_run_at TEXT,
    next_run_at TEXT,
    created_at TEXT,
    updated_at TEXT
);

-- 2. Cron sessions (one per execution attempt; outlive their job)
CREATE TABLE IF NOT EXISTS cron_sessions (
    session_id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL,
    title TEXT DEFAULT '',
    model_id TEXT,
    workspace_path TEXT,
    prompt TEXT,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    output TEXT,
    error TEXT
);
CREATE INDEX IF NOT EXISTS idx_cron_sessions_job ON cron_sessions(job_id, started_at DESC);

-- 3. Notifications (bounded, newest kept)
CREATE TABLE IF NOT EXISTS notifications (
    notification_id TEXT PRIMARY KEY,
    type TEXT NOT NULL DEFAULT 'info',
    title TEXT NOT NULL,
    message TEXT DEFAULT '',
    timestamp TEXT NOT NULL,
    read INTEGER DEFAULT 0,
    cron_job_name TEXT,
    session_id TEXT
);

-- 4. Audit log (one row per execution attempt)
CREATE TABLE IF NOT EXISTS cron_audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    job_id TEXT NOT NULL,
    session_id TEXT,
    status TEXT NOT NULL,
    duration_ms INTEGER DEFAULT 0,
    error TEXT
);
CREATE INDEX IF NOT EXISTS idx_cron_audit_job ON cron_audit_log(job_id, id DESC);
"""

"""Persistence — SQLite store for cron jobs, sessions, notifications and audit."""

from clawcron.memory.store import CronStore

__all__ = ["CronStore"]

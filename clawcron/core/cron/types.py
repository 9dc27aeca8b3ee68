"""Cron domain types — jobs, run sessions, results, notifications, audit entries."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

JobType = Literal["prompt", "command"]
SessionStatus = Literal["running", "succeeded", "failed"]
ResultStatus = Literal["succeeded", "failed", "skipped"]
NotificationType = Literal["cron_success", "cron_failure", "info"]


class CamelModel(BaseModel):
    """Snake-case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CronJob(CamelModel):
    """Cron job definition — mirrors the SQLite cron_jobs table."""

    id: str
    name: str = ""
    schedule: str
    type: JobType = "prompt"
    prompt: str | None = None
    command: str | None = None    # shell command for type="command"
    workspace_path: str | None = None
    model_id: str | None = None   # None = config default
    enabled: bool = True
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None  # cache of next_due(schedule, ...)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        payload = self.prompt if self.type == "prompt" else self.command
        return (payload or self.id)[:50].replace("\n", " ").strip()


class CronSession(CamelModel):
    """One execution attempt of a cron job."""

    id: str
    cron_id: str
    title: str = ""
    model_id: str | None = None
    workspace_path: str | None = None
    prompt: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
    status: SessionStatus = "running"
    output: str | None = None
    error: str | None = None


class RunResult(CamelModel):
    """Outcome of one attempted job, returned to the trigger caller."""

    cron_id: str
    name: str = ""
    session_id: str | None = None
    status: ResultStatus
    duration_ms: int = 0
    error: str | None = None


class Notification(CamelModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    type: NotificationType = "info"
    title: str = "Notification"
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    read: bool = False
    cron_job_name: str | None = None
    session_id: str | None = None


class AuditEntry(CamelModel):
    """Audit record of a single execution attempt."""

    id: int | None = None
    timestamp: datetime
    cron_id: str
    session_id: str | None = None
    status: SessionStatus
    duration_ms: int = 0
    error: str | None = None


def new_job_id() -> str:
    return f"cron_{uuid.uuid4().hex[:12]}"


def new_session_id(cron_id: str) -> str:
    return f"{cron_id}_{uuid.uuid4().hex[:8]}"

"""Pydantic API request/response models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from clawcron.core.cron.types import (
    CamelModel,
    CronJob,
    CronSession,
    JobType,
    Notification,
    NotificationType,
    RunResult,
)


# ════════════════════════════════════════════════════════════
# CRON RUNNER / SESSIONS
# ════════════════════════════════════════════════════════════


class RunRequest(CamelModel):
    workspace_path: str | None = None
    id: str | None = None


class RunResponse(CamelModel):
    ran: int
    results: list[RunResult] = Field(default_factory=list)


class SessionsResponse(CamelModel):
    sessions: list[CronSession] = Field(default_factory=list)


class DeleteSessionResponse(CamelModel):
    deleted: bool


# ════════════════════════════════════════════════════════════
# CRON JOBS
# ════════════════════════════════════════════════════════════


class CronJobRequest(CamelModel):
    """Create (no id) or update (with id) a cron job."""

    id: str | None = None
    name: str | None = None
    schedule: str | None = None
    type: JobType | None = None
    prompt: str | None = None
    command: str | None = None
    model_id: str | None = None
    workspace_path: str | None = None
    enabled: bool | None = None


class JobsResponse(CamelModel):
    jobs: list[CronJob] = Field(default_factory=list)


class SuccessResponse(CamelModel):
    success: bool


# ════════════════════════════════════════════════════════════
# NOTIFICATIONS
# ════════════════════════════════════════════════════════════


class NotificationRequest(CamelModel):
    id: str | None = None
    type: NotificationType = "info"
    title: str = "Notification"
    message: str = ""
    timestamp: datetime | None = None
    cron_job_name: str | None = None
    session_id: str | None = None


class NotificationsResponse(CamelModel):
    notifications: list[Notification] = Field(default_factory=list)


class NotificationPosted(CamelModel):
    ok: bool = True
    notification: Notification


class OkResponse(CamelModel):
    ok: bool = True


# ════════════════════════════════════════════════════════════
# HEALTH
# ════════════════════════════════════════════════════════════


class HealthResponse(CamelModel):
    status: str
    scheduler_running: bool = False
    version: str = ""
    running_jobs: list[str] = Field(default_factory=list)

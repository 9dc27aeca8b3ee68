"""Cron job management — validated create/update on top of the store."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from clawcron.core.cron.schedule import next_due, validate_schedule
from clawcron.core.cron.types import CronJob, new_job_id
from clawcron.core.errors import ValidationError

if TYPE_CHECKING:
    from clawcron.memory.store import CronStore


def create_job(
    store: CronStore,
    name: str | None,
    schedule: str | None,
    prompt: str | None = None,
    command: str | None = None,
    type: str | None = None,
    model_id: str | None = None,
    workspace_path: str | None = None,
    enabled: bool = True,
    now: datetime | None = None,
) -> CronJob:
    """Create a cron job.

    ``type`` defaults to "prompt" when a prompt is given, else "command".
    Raises ValidationError (or InvalidScheduleError) for bad input.
    """
    if not name or not schedule:
        raise ValidationError("name and schedule are required", error_code="CRON_FIELDS_MISSING")
    schedule = validate_schedule(schedule)
    job_type = type or ("prompt" if prompt else "command")
    if job_type not in ("prompt", "command"):
        raise ValidationError(f"Unknown cron type {job_type!r}", error_code="CRON_TYPE_INVALID")
    _check_payload(job_type, prompt, command)

    now = now or datetime.now()
    job = CronJob(
        id=new_job_id(),
        name=name,
        schedule=schedule,
        type=job_type,
        prompt=prompt,
        command=command,
        workspace_path=workspace_path or None,
        model_id=model_id or None,
        enabled=enabled,
        next_run_at=next_due(schedule, now) if enabled else None,
    )
    job = store.add_job(job)
    logger.info(f"Cron job added: {job.id} ({schedule})")
    return job


def update_job(
    store: CronStore,
    job_id: str,
    changes: dict[str, Any],
    now: datetime | None = None,
) -> CronJob | None:
    """Apply ``changes`` (None values ignored). Returns None if the job is missing."""
    current = store.get_job(job_id)
    if current is None:
        return None
    changes = {k: v for k, v in changes.items() if v is not None}
    if "schedule" in changes:
        changes["schedule"] = validate_schedule(changes["schedule"])

    merged = current.model_copy(update=changes)
    if merged.type not in ("prompt", "command"):
        raise ValidationError(f"Unknown cron type {merged.type!r}", error_code="CRON_TYPE_INVALID")
    _check_payload(merged.type, merged.prompt, merged.command)

    if "schedule" in changes or "enabled" in changes:
        anchor = now or datetime.now()
        changes["next_run_at"] = next_due(merged.schedule, anchor) if merged.enabled else None

    updated = store.update_job(job_id, **changes)
    logger.info(f"Cron job updated: {job_id} ({', '.join(sorted(changes))})")
    return updated


def _check_payload(job_type: str, prompt: str | None, command: str | None) -> None:
    if job_type == "command" and not command:
        raise ValidationError("command is required for type 'command'", error_code="CRON_COMMAND_MISSING")
    if job_type == "prompt" and not prompt:
        raise ValidationError("prompt is required for type 'prompt'", error_code="CRON_PROMPT_MISSING")

"""Cron job CRUD routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from clawcron.api.deps import get_runner, get_store
from clawcron.core.cron.jobs import create_job, update_job
from clawcron.core.cron.runner import CronRunner
from clawcron.core.cron.types import CronJob
from clawcron.memory.models import CronJobRequest, JobsResponse, SuccessResponse
from clawcron.memory.store import CronStore

router = APIRouter(prefix="/crons", tags=["crons"])


@router.get("", response_model=JobsResponse)
async def list_crons(store: CronStore = Depends(get_store)):
    """List all cron jobs."""
    return JobsResponse(jobs=store.list_jobs())


@router.post("", response_model=CronJob)
async def save_cron(
    body: CronJobRequest,
    store: CronStore = Depends(get_store),
    runner: CronRunner = Depends(get_runner),
):
    """Create a cron job, or update one when ``id`` is given."""
    if body.id:
        changes = body.model_dump(exclude={"id"})
        updated = update_job(store, body.id, changes, now=runner.now())
        if updated is None:
            raise HTTPException(status_code=404, detail="Cron not found")
        return updated

    return create_job(
        store,
        name=body.name,
        schedule=body.schedule,
        prompt=body.prompt,
        command=body.command,
        type=body.type,
        model_id=body.model_id,
        workspace_path=body.workspace_path,
        enabled=True if body.enabled is None else body.enabled,
        now=runner.now(),
    )


@router.delete("", response_model=SuccessResponse)
async def delete_cron(
    job_id: str | None = Query(None, alias="id"),
    store: CronStore = Depends(get_store),
):
    """Delete a cron job by id."""
    if not job_id:
        raise HTTPException(status_code=400, detail="id is required")
    if not store.remove_job(job_id):
        raise HTTPException(status_code=404, detail="Cron not found")
    return SuccessResponse(success=True)

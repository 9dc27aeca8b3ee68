"""Core API routes — cron runner, cron sessions, health."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from loguru import logger

from clawcron import __version__
from clawcron.api.deps import get_runner, get_store
from clawcron.core.cron.runner import CronRunner
from clawcron.memory.models import (
    DeleteSessionResponse,
    HealthResponse,
    RunRequest,
    RunResponse,
    SessionsResponse,
)
from clawcron.memory.store import CronStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Health check."""
    scheduler = getattr(request.app.state, "scheduler", None)
    runner: CronRunner | None = getattr(request.app.state, "runner", None)
    return HealthResponse(
        status="ok",
        scheduler_running=bool(scheduler and scheduler.running),
        version=__version__,
        running_jobs=sorted(runner.guard.running()) if runner else [],
    )


@router.get("/cron-runner", response_model=RunResponse)
async def run_due(runner: CronRunner = Depends(get_runner)):
    """Run all due cron jobs now (for system cron / external timers)."""
    results = await runner.run_due_crons()
    return RunResponse(ran=len(results), results=results)


@router.post("/cron-runner", response_model=RunResponse)
async def run_crons(
    body: RunRequest | None = None,
    runner: CronRunner = Depends(get_runner),
):
    """Force-run one job when ``id`` is given, else run all due jobs."""
    body = body or RunRequest()
    if body.id:
        result = await runner.run_cron_by_id(body.id, body.workspace_path)
        if result is None:
            raise HTTPException(status_code=404, detail="Cron not found")
        if result.status == "skipped":
            raise HTTPException(status_code=409, detail="Cron already running")
        return RunResponse(ran=1, results=[result])

    results = await runner.run_due_crons(body.workspace_path)
    logger.debug(f"Manual cron run: {len(results)} job(s)")
    return RunResponse(ran=len(results), results=results)


@router.get("/cron-sessions", response_model=SessionsResponse)
async def list_cron_sessions(
    cron_id: str | None = Query(None, alias="cronId"),
    store: CronStore = Depends(get_store),
):
    """Sessions created by cron runs, newest first."""
    return SessionsResponse(sessions=store.list_sessions(job_id=cron_id))


@router.delete("/cron-sessions", response_model=DeleteSessionResponse)
async def delete_cron_session(
    session_id: str | None = Query(None, alias="sessionId"),
    store: CronStore = Depends(get_store),
):
    """Remove a cron session."""
    if not session_id:
        raise HTTPException(status_code=400, detail="Missing sessionId")
    return DeleteSessionResponse(deleted=store.delete_session(session_id))

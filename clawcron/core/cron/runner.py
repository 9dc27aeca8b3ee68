"""CronRunner — executes due (or forced) cron jobs and records every attempt."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from clawcron.core.config.schema import Config
from clawcron.core.cron.guard import ExecutionGuard
from clawcron.core.cron.schedule import is_due, next_due
from clawcron.core.cron.sinks import AuditSink, NotificationSink, NullSink
from clawcron.core.cron.types import (
    AuditEntry,
    CronJob,
    CronSession,
    Notification,
    RunResult,
    new_session_id,
)
from clawcron.core.errors import ExecutionError, InvalidScheduleError, ValidationError
from clawcron.core.providers.base import ExecutionOutput, PromptExecutor
from clawcron.core.providers.command import CommandExecutor

if TYPE_CHECKING:
    from clawcron.memory.store import CronStore


class CronRunner:
    """Run orchestrator.

    Flow per job:
        1. guard.try_acquire (skip if held); due runs re-read the job and
           skip it if another pass already ran it this minute
        2. create a ``running`` CronSession
        3. executor call, bounded by ``timeout_s``
        4. finish the session (succeeded / failed)
        5. update last_run_at / next_run_at
        6. release the guard
        7. notification + audit record
        8. RunResult

    Executor failures never escape; StoreError does.
    """

    def __init__(
        self,
        store: CronStore,
        executor: PromptExecutor,
        guard: ExecutionGuard | None = None,
        notifier: NotificationSink | None = None,
        audit: AuditSink | None = None,
        config: Config | None = None,
        commands: CommandExecutor | None = None,
        clock: Callable[[], datetime] | None = None,
        timeout_s: float | None = None,
    ):
        self.store = store
        self.executor = executor
        self.guard = guard or ExecutionGuard()
        self.notifier = notifier or NullSink()
        self.audit = audit or NullSink()
        self.config = config or Config()
        self.commands = commands or CommandExecutor(self.config.cron.command_timeout_s)
        self.timeout_s = timeout_s if timeout_s is not None else self.config.cron.timeout_s
        self._clock = clock or (lambda: datetime.now(self.config.tz))

    def now(self) -> datetime:
        """Current time in the configured schedule timezone."""
        return self._clock()

    # ── Entry points ─────────────────────────────────────────

    async def run_due_crons(
        self,
        workspace_override: str | None = None,
        now: datetime | None = None,
    ) -> list[RunResult]:
        """Run every enabled job that is due at ``now``. Ascending id order."""
        now = now or self._clock()
        due: list[CronJob] = []
        for job in sorted(self.store.list_enabled_jobs(), key=lambda j: j.id):
            if self._is_due(job, now):
                due.append(job)

        if not due:
            logger.debug(f"No cron jobs due at {now:%Y-%m-%d %H:%M}")
            return []
        logger.info(f"{len(due)} cron job(s) due at {now:%Y-%m-%d %H:%M}")

        limit = self.config.cron.max_concurrency
        if limit <= 1:
            outcomes = [await self._run_due_job(job, workspace_override, now) for job in due]
        else:
            sem = asyncio.Semaphore(limit)

            async def bounded(job: CronJob) -> RunResult | None:
                async with sem:
                    return await self._run_due_job(job, workspace_override, now)

            # A StoreError in one job cancels and awaits its siblings
            try:
                async with asyncio.TaskGroup() as tg:
                    tasks = [tg.create_task(bounded(job)) for job in due]
            except BaseExceptionGroup as eg:
                raise eg.exceptions[0] from None
            outcomes = [t.result() for t in tasks]
        return [r for r in outcomes if r is not None]

    async def run_cron_by_id(
        self, cron_id: str, workspace_override: str | None = None
    ) -> RunResult | None:
        """Force-run one job regardless of schedule. None if it doesn't exist."""
        job = self.store.get_job(cron_id)
        if job is None:
            logger.info(f"Cron {cron_id} not found")
            return None
        if not job.enabled and not self.config.cron.allow_forced_disabled:
            raise ValidationError(
                f"Cron {cron_id} is disabled", error_code="CRON_DISABLED",
                details={"cron_id": cron_id},
            )

        with self.guard.hold(job.id) as acquired:
            if not acquired:
                logger.info(f"Cron {cron_id} already running, forced run skipped")
                return RunResult(
                    cron_id=job.id,
                    name=job.display_name,
                    status="skipped",
                    error="Cron job is already running",
                )
            session, duration_ms = await self._run_session(job, workspace_override)
        return self._publish(job, session, duration_ms)

    # ── Per-job execution ────────────────────────────────────

    async def _run_due_job(
        self, job: CronJob, workspace_override: str | None, now: datetime
    ) -> RunResult | None:
        """Execute one due job under its guard. None means it was skipped."""
        with self.guard.hold(job.id) as acquired:
            if not acquired:
                logger.info(f"Cron {job.id} already running, skipped this cycle")
                if self.config.cron.advance_on_skip:
                    self.store.set_next_run(job.id, self._next_due(job, now))
                return None
            # Another pass may have run it since the due list was read
            current = self.store.get_job(job.id)
            if current is None or not current.enabled or not self._is_due(current, now):
                logger.info(f"Cron {job.id} no longer due, skipped this cycle")
                return None
            session, duration_ms = await self._run_session(current, workspace_override)
        return self._publish(current, session, duration_ms)

    async def _run_session(
        self, job: CronJob, workspace_override: str | None
    ) -> tuple[CronSession, int]:
        workspace = self._resolve_workspace(job, workspace_override)
        model_id = job.model_id or self.config.assistant.model
        session = CronSession(
            id=new_session_id(job.id),
            cron_id=job.id,
            title=job.display_name,
            model_id=model_id if job.type == "prompt" else None,
            workspace_path=workspace,
            prompt=job.prompt if job.type == "prompt" else job.command,
            started_at=self._clock(),
        )
        self.store.create_session(session)
        logger.info(f"Cron trigger: {job.id} → session={session.id}")

        start = time.monotonic()
        output: str | None = None
        error: str | None = None
        try:
            result = await asyncio.wait_for(
                self._invoke(job, model_id, workspace), timeout=self.timeout_s
            )
            output = result.output
        except asyncio.TimeoutError:
            error = f"Execution timeout after {self.timeout_s:g}s"
        except ExecutionError as e:
            error = str(e)
        except Exception as e:
            logger.exception(f"Cron {job.id} executor raised unexpectedly")
            error = f"{type(e).__name__}: {e}"
        duration_ms = int((time.monotonic() - start) * 1000)

        status = "failed" if error is not None else "succeeded"
        finished_at = self._clock()
        self.store.finish_session(
            session.id, status, output=output, error=error, finished_at=finished_at,
        )
        self.store.update_run_bookkeeping(
            job.id, finished_at, self._next_due(job, finished_at),
        )
        if error is not None:
            logger.error(f"Cron job {job.id} failed: {error}")
        else:
            logger.info(f"Cron job {job.id} completed in {duration_ms}ms")

        finished = session.model_copy(update={
            "status": status,
            "output": output,
            "error": error,
            "finished_at": finished_at,
        })
        return finished, duration_ms

    async def _invoke(self, job: CronJob, model_id: str, workspace: str) -> ExecutionOutput:
        if job.type == "command":
            command = (job.command or "").strip()
            if not command:
                raise ExecutionError("No command configured")
            return await self.commands.execute(command, workspace)
        prompt = (job.prompt or "").strip()
        if not prompt:
            raise ExecutionError("No prompt configured")
        return await self.executor.execute(prompt, model_id, workspace)

    def _publish(self, job: CronJob, session: CronSession, duration_ms: int) -> RunResult:
        """Emit notification + audit record and build the RunResult."""
        ok = session.status == "succeeded"
        name = job.display_name
        self.notifier.emit(Notification(
            type="cron_success" if ok else "cron_failure",
            title=f"Cron completed: {name}" if ok else f"Cron failed: {name}",
            message=(session.output or "")[:200] if ok else (session.error or ""),
            timestamp=session.finished_at,
            cron_job_name=name,
            session_id=session.id,
        ))
        self.audit.record(AuditEntry(
            timestamp=session.finished_at,
            cron_id=job.id,
            session_id=session.id,
            status=session.status,
            duration_ms=duration_ms,
            error=session.error,
        ))
        return RunResult(
            cron_id=job.id,
            name=name,
            session_id=session.id,
            status=session.status,
            duration_ms=duration_ms,
            error=session.error,
        )

    # ── Helpers ──────────────────────────────────────────────

    def _resolve_workspace(self, job: CronJob, override: str | None) -> str:
        ws = (job.workspace_path or override or "").strip() or self.config.assistant.workspace
        return str(Path(ws).expanduser().resolve())

    def _is_due(self, job: CronJob, now: datetime) -> bool:
        try:
            return is_due(job.schedule, job.last_run_at, now)
        except InvalidScheduleError as e:
            logger.warning(f"Cron {job.id} skipped, invalid schedule: {e}")
            return False

    def _next_due(self, job: CronJob, after: datetime) -> datetime | None:
        try:
            return next_due(job.schedule, after)
        except InvalidScheduleError as e:
            logger.warning(f"Cron {job.id} has no next run, invalid schedule: {e}")
            return None

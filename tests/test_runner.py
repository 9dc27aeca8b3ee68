"""Tests for CronRunner (due runs, forced runs, guard, timeout, bookkeeping)."""

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from clawcron.core.config.schema import Config
from clawcron.core.cron.guard import ExecutionGuard
from clawcron.core.cron.runner import CronRunner
from clawcron.core.cron.schedule import next_due
from clawcron.core.cron.sinks import StoreAuditSink, StoreNotificationSink
from clawcron.core.cron.types import CronJob
from clawcron.core.errors import ExecutionError, StoreError, ValidationError
from clawcron.core.providers.base import ExecutionOutput
from clawcron.memory.store import CronStore

MON_0900 = datetime(2026, 10, 19, 9, 0)
YESTERDAY_0900 = MON_0900 - timedelta(days=1)


class Clock:
    """Settable clock injected into the runner."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def store(tmp_path):
    return CronStore(str(tmp_path / "test.db"))


@pytest.fixture
def config(tmp_path):
    return Config(assistant={"workspace": str(tmp_path / "ws")})


@pytest.fixture
def executor():
    ex = MagicMock()
    ex.execute = AsyncMock(return_value=ExecutionOutput(output="done"))
    return ex


@pytest.fixture
def clock():
    return Clock(MON_0900 + timedelta(seconds=5))


@pytest.fixture
def runner(store, executor, config, clock):
    return CronRunner(
        store,
        executor,
        guard=ExecutionGuard(),
        notifier=StoreNotificationSink(store),
        audit=StoreAuditSink(store),
        config=config,
        clock=clock,
    )


def _add(store, job_id, schedule="0 9 * * *", last_run_at=YESTERDAY_0900, **kw):
    kw.setdefault("prompt", f"prompt for {job_id}")
    return store.add_job(CronJob(
        id=job_id, name=job_id.upper(), schedule=schedule, last_run_at=last_run_at, **kw
    ))


# --- run_due_crons ---


@pytest.mark.asyncio
async def test_runs_due_jobs_in_id_order(runner, store, executor):
    _add(store, "b")
    _add(store, "a")
    _add(store, "c", schedule="30 9 * * *")
    _add(store, "d", enabled=False)

    results = await runner.run_due_crons(now=MON_0900)

    assert [r.cron_id for r in results] == ["a", "b"]
    assert all(r.status == "succeeded" for r in results)
    assert executor.execute.await_count == 2
    assert store.get_job("c").last_run_at == YESTERDAY_0900


@pytest.mark.asyncio
async def test_bookkeeping_after_success(runner, store, clock):
    _add(store, "a")
    [result] = await runner.run_due_crons(now=MON_0900)

    job = store.get_job("a")
    assert job.last_run_at == clock.now
    assert job.next_run_at == next_due("0 9 * * *", clock.now)
    assert job.next_run_at > clock.now

    session = store.get_session(result.session_id)
    assert session.status == "succeeded"
    assert session.output == "done"
    assert session.cron_id == "a"
    assert session.title == "A"
    assert session.finished_at == clock.now
    assert result.session_id.startswith("a_")


@pytest.mark.asyncio
async def test_no_second_run_in_same_minute(runner, store, executor):
    _add(store, "a")
    await runner.run_due_crons(now=MON_0900)
    again = await runner.run_due_crons(now=MON_0900 + timedelta(seconds=30))

    assert again == []
    assert executor.execute.await_count == 1
    assert len(store.list_sessions(job_id="a")) == 1


@pytest.mark.asyncio
async def test_nothing_due(runner, store, executor):
    _add(store, "a", schedule="30 9 * * *")
    assert await runner.run_due_crons(now=MON_0900) == []
    executor.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_failure_does_not_stop_batch(runner, store, executor):
    async def execute(prompt, model_id, workspace_path):
        if prompt == "bad":
            raise ExecutionError("model refused")
        return ExecutionOutput(output="ok")

    executor.execute.side_effect = execute
    _add(store, "a", prompt="bad")
    _add(store, "b", prompt="good")

    results = await runner.run_due_crons(now=MON_0900)

    assert [(r.cron_id, r.status) for r in results] == [("a", "failed"), ("b", "succeeded")]
    assert results[0].error == "model refused"
    assert store.get_session(results[0].session_id).error == "model refused"

    types = sorted(n.type for n in store.list_notifications())
    assert types == ["cron_failure", "cron_success"]
    # failed runs still advance bookkeeping
    assert store.get_job("a").last_run_at is not None
    assert store.get_job("a").last_run_at > YESTERDAY_0900


@pytest.mark.asyncio
async def test_unexpected_exception_recorded(runner, store, executor):
    executor.execute.side_effect = RuntimeError("boom")
    _add(store, "a")

    [result] = await runner.run_due_crons(now=MON_0900)

    assert result.status == "failed"
    assert result.error == "RuntimeError: boom"
    assert not runner.guard.is_running("a")


@pytest.mark.asyncio
async def test_timeout(store, config, clock):
    async def slow(prompt, model_id, workspace_path):
        await asyncio.sleep(5)
        return ExecutionOutput(output="late")

    executor = MagicMock()
    executor.execute = AsyncMock(side_effect=slow)
    runner = CronRunner(
        store, executor,
        notifier=StoreNotificationSink(store),
        config=config, clock=clock, timeout_s=0.05,
    )
    _add(store, "a")

    result = await runner.run_cron_by_id("a")

    assert result.status == "failed"
    assert "timeout" in result.error
    assert not runner.guard.is_running("a")
    assert store.get_session(result.session_id).status == "failed"
    notifications = store.list_notifications()
    assert [n.type for n in notifications] == ["cron_failure"]
    assert notifications[0].title == "Cron failed: A"


@pytest.mark.asyncio
async def test_empty_prompt_fails(runner, store, executor):
    _add(store, "a", prompt="   ")
    result = await runner.run_cron_by_id("a")
    assert result.status == "failed"
    assert result.error == "No prompt configured"
    executor.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_invalid_schedule_skipped(runner, store, executor):
    _add(store, "a", schedule="not a cron")
    _add(store, "b")

    results = await runner.run_due_crons(now=MON_0900)
    assert [r.cron_id for r in results] == ["b"]


@pytest.mark.asyncio
async def test_store_error_propagates(executor, config):
    store = MagicMock()
    store.list_enabled_jobs.side_effect = StoreError("db gone")
    runner = CronRunner(store, executor, config=config)

    with pytest.raises(StoreError):
        await runner.run_due_crons(now=MON_0900)


@pytest.mark.asyncio
async def test_concurrent_batch(store, executor, tmp_path, clock):
    config = Config(
        assistant={"workspace": str(tmp_path)},
        cron={"max_concurrency": 3},
    )
    runner = CronRunner(store, executor, config=config, clock=clock)
    for job_id in ("c", "a", "b"):
        _add(store, job_id)

    results = await runner.run_due_crons(now=MON_0900)
    assert [r.cron_id for r in results] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_concurrent_batch_store_error_cancels_siblings(store, executor, tmp_path, clock):
    config = Config(assistant={"workspace": str(tmp_path)}, cron={"max_concurrency": 2})
    runner = CronRunner(store, executor, config=config, clock=clock)
    _add(store, "a")
    _add(store, "b")

    async def wait_forever(prompt, model_id, workspace_path):
        await asyncio.Event().wait()

    executor.execute.side_effect = wait_forever
    create_session = store.create_session

    def failing_create(session):
        if session.cron_id == "b":
            raise StoreError("db gone")
        return create_session(session)

    store.create_session = failing_create

    with pytest.raises(StoreError, match="db gone"):
        await asyncio.wait_for(runner.run_due_crons(now=MON_0900), timeout=2)
    assert runner.guard.running() == frozenset()


# --- Guard interaction ---


@pytest.mark.asyncio
async def test_overlapping_passes_run_each_job_once(runner, store, executor):
    gate = asyncio.Event()

    async def slow_a(prompt, model_id, workspace_path):
        if prompt == "prompt for a":
            await gate.wait()
        return ExecutionOutput(output="done")

    executor.execute.side_effect = slow_a
    _add(store, "a")
    _add(store, "b")

    first = asyncio.create_task(runner.run_due_crons(now=MON_0900))
    await asyncio.sleep(0.05)
    second = await runner.run_due_crons(now=MON_0900)
    gate.set()
    first_results = await first

    assert [r.cron_id for r in second] == ["b"]
    assert [r.cron_id for r in first_results] == ["a"]
    assert len(store.list_sessions(job_id="a")) == 1
    assert len(store.list_sessions(job_id="b")) == 1


@pytest.mark.asyncio
async def test_due_job_disabled_before_its_turn(runner, store, executor):
    gate = asyncio.Event()

    async def slow_a(prompt, model_id, workspace_path):
        if prompt == "prompt for a":
            await gate.wait()
        return ExecutionOutput(output="done")

    executor.execute.side_effect = slow_a
    _add(store, "a")
    _add(store, "b")

    task = asyncio.create_task(runner.run_due_crons(now=MON_0900))
    await asyncio.sleep(0.05)
    store.update_job("b", enabled=False)
    gate.set()

    assert [r.cron_id for r in await task] == ["a"]
    assert store.list_sessions(job_id="b") == []



@pytest.mark.asyncio
async def test_due_job_skipped_when_running(runner, store):
    _add(store, "a")
    _add(store, "b")
    runner.guard.try_acquire("a")

    results = await runner.run_due_crons(now=MON_0900)

    assert [r.cron_id for r in results] == ["b"]
    assert store.list_sessions(job_id="a") == []
    job = store.get_job("a")
    assert job.last_run_at == YESTERDAY_0900
    assert job.next_run_at is None


@pytest.mark.asyncio
async def test_advance_on_skip(store, executor, tmp_path, clock):
    config = Config(assistant={"workspace": str(tmp_path)}, cron={"advance_on_skip": True})
    runner = CronRunner(store, executor, config=config, clock=clock)
    _add(store, "a")
    runner.guard.try_acquire("a")

    assert await runner.run_due_crons(now=MON_0900) == []
    job = store.get_job("a")
    assert job.next_run_at == next_due("0 9 * * *", MON_0900)
    assert job.last_run_at == YESTERDAY_0900


@pytest.mark.asyncio
async def test_concurrent_forced_runs_single_session(runner, store, executor):
    gate = asyncio.Event()

    async def wait_for_gate(prompt, model_id, workspace_path):
        await gate.wait()
        return ExecutionOutput(output="done")

    executor.execute.side_effect = wait_for_gate
    _add(store, "a")

    tasks = [asyncio.create_task(runner.run_cron_by_id("a")) for _ in range(5)]
    await asyncio.sleep(0.05)
    gate.set()
    results = await asyncio.gather(*tasks)

    statuses = sorted(r.status for r in results)
    assert statuses == ["skipped"] * 4 + ["succeeded"]
    skipped = [r for r in results if r.status == "skipped"]
    assert all(r.error == "Cron job is already running" for r in skipped)
    assert all(r.session_id is None for r in skipped)
    assert len(store.list_sessions(job_id="a")) == 1
    assert not runner.guard.is_running("a")


# --- run_cron_by_id ---


@pytest.mark.asyncio
async def test_forced_run_missing_job(runner, store, executor):
    assert await runner.run_cron_by_id("nope") is None
    assert store.list_sessions() == []
    executor.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_forced_run_ignores_schedule(runner, store, clock):
    clock.now = datetime(2026, 10, 19, 14, 23)
    _add(store, "a")

    result = await runner.run_cron_by_id("a")

    assert result.status == "succeeded"
    job = store.get_job("a")
    assert job.last_run_at == datetime(2026, 10, 19, 14, 23)
    assert job.next_run_at == datetime(2026, 10, 20, 9, 0)


@pytest.mark.asyncio
async def test_forced_run_disabled_allowed_by_default(runner, store):
    _add(store, "a", enabled=False)
    result = await runner.run_cron_by_id("a")
    assert result.status == "succeeded"


@pytest.mark.asyncio
async def test_forced_run_disabled_rejected(store, executor, tmp_path):
    config = Config(
        assistant={"workspace": str(tmp_path)},
        cron={"allow_forced_disabled": False},
    )
    runner = CronRunner(store, executor, config=config)
    _add(store, "a", enabled=False)

    with pytest.raises(ValidationError) as exc_info:
        await runner.run_cron_by_id("a")
    assert exc_info.value.error_code == "CRON_DISABLED"
    assert store.list_sessions() == []


@pytest.mark.asyncio
async def test_audit_entry_written(runner, store):
    _add(store, "a")
    result = await runner.run_cron_by_id("a")
    [entry] = store.list_audit_entries(job_id="a")
    assert entry.session_id == result.session_id
    assert entry.status == "succeeded"


# --- Workspace / model resolution ---


@pytest.mark.asyncio
async def test_workspace_override(runner, store, executor, tmp_path):
    _add(store, "a")
    await runner.run_cron_by_id("a", workspace_override=str(tmp_path / "other"))
    _, model_id, workspace = executor.execute.await_args.args
    assert workspace == str((tmp_path / "other").resolve())
    assert model_id == runner.config.assistant.model


@pytest.mark.asyncio
async def test_job_workspace_and_model_win(runner, store, executor, tmp_path):
    _add(store, "a", workspace_path=str(tmp_path / "job"), model_id="openai/gpt-4o")
    await runner.run_cron_by_id("a", workspace_override=str(tmp_path / "other"))
    _, model_id, workspace = executor.execute.await_args.args
    assert workspace == str((tmp_path / "job").resolve())
    assert model_id == "openai/gpt-4o"


@pytest.mark.asyncio
async def test_default_workspace(runner, store, executor, config):
    _add(store, "a")
    await runner.run_cron_by_id("a")
    _, _, workspace = executor.execute.await_args.args
    assert workspace == str(Path(config.assistant.workspace).resolve())


# --- Command jobs ---


@pytest.mark.asyncio
async def test_command_job(runner, store, executor, tmp_path):
    _add(store, "a", type="command", prompt=None, command="echo hello",
         workspace_path=str(tmp_path))

    result = await runner.run_cron_by_id("a")

    assert result.status == "succeeded"
    assert "hello" in store.get_session(result.session_id).output
    executor.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_command_job_nonzero_exit(runner, store, tmp_path):
    _add(store, "a", type="command", prompt=None, command="exit 3",
         workspace_path=str(tmp_path))

    result = await runner.run_cron_by_id("a")

    assert result.status == "failed"
    assert "[exit code: 3]" in result.error


@pytest.mark.asyncio
async def test_command_job_killed_on_run_timeout(store, executor, config, clock, tmp_path):
    runner = CronRunner(store, executor, config=config, clock=clock, timeout_s=0.3)
    _add(store, "a", type="command", prompt=None, command="sleep 1.5; touch marker",
         workspace_path=str(tmp_path))

    result = await runner.run_cron_by_id("a")

    assert result.status == "failed"
    assert "timeout" in result.error
    await asyncio.sleep(2)
    assert not (tmp_path / "marker").exists()

"""Tests for validated cron job create/update."""

from datetime import datetime

import pytest

from clawcron.core.cron.jobs import create_job, update_job
from clawcron.core.errors import InvalidScheduleError, ValidationError
from clawcron.memory.store import CronStore

NOW = datetime(2026, 10, 19, 8, 0)


@pytest.fixture
def store(tmp_path):
    return CronStore(str(tmp_path / "test.db"))


def test_create_prompt_job(store):
    job = create_job(store, "Digest", "0 9 * * *", prompt="Summarize news", now=NOW)

    assert job.id.startswith("cron_")
    assert job.type == "prompt"
    assert job.next_run_at == datetime(2026, 10, 19, 9, 0)
    assert store.get_job(job.id).name == "Digest"


def test_create_command_job(store):
    job = create_job(store, "Backup", "30 2 * * *", command="tar czf b.tgz .", now=NOW)
    assert job.type == "command"
    assert job.command == "tar czf b.tgz ."


def test_create_disabled_has_no_next_run(store):
    job = create_job(store, "Later", "0 9 * * *", prompt="x", enabled=False, now=NOW)
    assert job.next_run_at is None


@pytest.mark.parametrize("name,schedule", [("", "0 9 * * *"), ("Job", ""), (None, None)])
def test_create_requires_name_and_schedule(store, name, schedule):
    with pytest.raises(ValidationError) as exc_info:
        create_job(store, name, schedule, prompt="x")
    assert exc_info.value.error_code == "CRON_FIELDS_MISSING"


def test_create_invalid_schedule(store):
    with pytest.raises(InvalidScheduleError):
        create_job(store, "Job", "99 * * * *", prompt="x")
    assert store.list_jobs() == []


def test_create_payload_required(store):
    with pytest.raises(ValidationError) as exc_info:
        create_job(store, "Job", "0 9 * * *", type="prompt")
    assert exc_info.value.error_code == "CRON_PROMPT_MISSING"

    with pytest.raises(ValidationError) as exc_info:
        create_job(store, "Job", "0 9 * * *")
    assert exc_info.value.error_code == "CRON_COMMAND_MISSING"


def test_create_unknown_type(store):
    with pytest.raises(ValidationError) as exc_info:
        create_job(store, "Job", "0 9 * * *", prompt="x", type="webhook")
    assert exc_info.value.error_code == "CRON_TYPE_INVALID"


def test_update_schedule_recomputes_next_run(store):
    job = create_job(store, "Digest", "0 9 * * *", prompt="x", now=NOW)
    updated = update_job(store, job.id, {"schedule": "0 18 * * *"}, now=NOW)

    assert updated.schedule == "0 18 * * *"
    assert updated.next_run_at == datetime(2026, 10, 19, 18, 0)


def test_update_disable_clears_next_run(store):
    job = create_job(store, "Digest", "0 9 * * *", prompt="x", now=NOW)
    updated = update_job(store, job.id, {"enabled": False, "name": None})

    assert updated.enabled is False
    assert updated.next_run_at is None
    assert updated.name == "Digest"


def test_update_rejects_invalid(store):
    job = create_job(store, "Digest", "0 9 * * *", prompt="x", now=NOW)
    with pytest.raises(InvalidScheduleError):
        update_job(store, job.id, {"schedule": "bad"})
    with pytest.raises(ValidationError):
        update_job(store, job.id, {"type": "command"})
    assert store.get_job(job.id).schedule == "0 9 * * *"


def test_update_missing(store):
    assert update_job(store, "nope", {"name": "x"}) is None

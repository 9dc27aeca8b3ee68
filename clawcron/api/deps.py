"""FastAPI dependency injection — pull singletons from app.state."""

from __future__ import annotations

from fastapi import Request

from clawcron.core.config.schema import Config
from clawcron.core.cron.runner import CronRunner
from clawcron.memory.store import CronStore


def get_config(request: Request) -> Config:
    """Get Config singleton from app state."""
    return request.app.state.config


def get_store(request: Request) -> CronStore:
    """Get CronStore singleton from app state."""
    return request.app.state.store


def get_runner(request: Request) -> CronRunner:
    """Get CronRunner singleton from app state."""
    return request.app.state.runner

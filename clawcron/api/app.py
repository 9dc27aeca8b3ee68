"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.requests import Request
from starlette.responses import JSONResponse

from clawcron import __version__
from clawcron.api.crons import router as crons_router
from clawcron.api.notifications import router as notifications_router
from clawcron.api.routes import router as core_router
from clawcron.core.config.loader import load_config
from clawcron.core.config.schema import Config
from clawcron.core.cron.guard import ExecutionGuard
from clawcron.core.cron.runner import CronRunner
from clawcron.core.cron.scheduler import CronScheduler
from clawcron.core.cron.sinks import StoreAuditSink, StoreNotificationSink
from clawcron.core.errors import StoreError, ValidationError
from clawcron.core.providers.litellm import LiteLLMExecutor
from clawcron.memory.store import CronStore


def build_runner(config: Config, store: CronStore) -> CronRunner:
    """Wire the runner with one process-wide guard and store-backed sinks."""
    return CronRunner(
        store,
        LiteLLMExecutor(config),
        guard=ExecutionGuard(),
        notifier=StoreNotificationSink(store),
        audit=StoreAuditSink(store),
        config=config,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: Config → CronStore → CronRunner → CronScheduler. Shutdown: stop the tick."""
    config = load_config()
    store = CronStore(str(config.db_path), max_notifications=config.cron.max_notifications)
    runner = build_runner(config, store)
    scheduler = CronScheduler(runner, config)
    await scheduler.start()

    app.state.config = config
    app.state.store = store
    app.state.runner = runner
    app.state.scheduler = scheduler

    logger.info(f"clawcron API started — default model: {config.assistant.model}")
    yield

    await scheduler.stop()
    logger.info("clawcron API shutting down")


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "code": exc.error_code},
    )


async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(f"Store error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "code": exc.error_code},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="clawcron API",
        description="Cron scheduling and execution engine for agent prompts",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(StoreError, _store_error)

    app.include_router(core_router)
    app.include_router(crons_router)
    app.include_router(notifications_router)

    return app


app = create_app()

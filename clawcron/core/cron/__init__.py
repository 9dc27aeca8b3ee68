"""Cron engine — due-time evaluation, execution guard, runner, periodic trigger."""

from clawcron.core.cron.guard import ExecutionGuard
from clawcron.core.cron.runner import CronRunner
from clawcron.core.cron.schedule import CronSchedule, is_due, next_due, parse_schedule
from clawcron.core.cron.scheduler import CronScheduler
from clawcron.core.cron.types import CronJob, CronSession, Notification, RunResult

__all__ = [
    "CronJob",
    "CronRunner",
    "CronSchedule",
    "CronScheduler",
    "CronSession",
    "ExecutionGuard",
    "Notification",
    "RunResult",
    "is_due",
    "next_due",
    "parse_schedule",
]

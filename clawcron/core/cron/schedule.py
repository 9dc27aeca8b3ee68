"""Due-time evaluation for 5-field cron expressions.

Pure functions only: no clock, no I/O. The runner passes ``now`` in, and the
same input always yields the same answer, which is what lets ``next_run_at``
be stored as a cache.

Expressions are expanded by croniter into one value set per field and cached;
matching and the forward scan work on those sets. Day of week is 0-6 with
0 = Sunday (7 is accepted as Sunday too). All five fields must match for a
minute to match, including day-of-month and day-of-week together.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache

from croniter import croniter

from clawcron.core.errors import InvalidScheduleError

# (name, min, max) in expression order
_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day of month", 1, 31),
    ("month", 1, 12),
    ("day of week", 0, 6),
)

MAX_SCAN = timedelta(days=4 * 366)


@dataclass(frozen=True)
class CronSchedule:
    """Parsed cron expression: one constraint set per field."""

    expr: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]

    def matches(self, t: datetime) -> bool:
        return (
            t.minute in self.minutes
            and t.hour in self.hours
            and t.day in self.days
            and t.month in self.months
            and _cron_weekday(t) in self.weekdays
        )


@lru_cache(maxsize=256)
def parse_schedule(expr: str) -> CronSchedule:
    """Parse a cron expression. Raises InvalidScheduleError on bad input."""
    if not isinstance(expr, str) or not expr.strip():
        raise InvalidScheduleError("Schedule is empty", details={"schedule": expr})
    parts = expr.split()
    if len(parts) != 5:
        raise InvalidScheduleError(
            f"Expected 5 fields, got {len(parts)}: {expr!r}",
            details={"schedule": expr},
        )
    try:
        expanded, nth_weekday = croniter.expand(" ".join(parts))
    except Exception as e:
        raise InvalidScheduleError(
            f"Invalid cron expression {expr!r}: {e}", details={"schedule": expr}
        ) from e
    if nth_weekday:
        raise InvalidScheduleError(
            f"Nth-weekday syntax is not supported: {expr!r}", details={"schedule": expr}
        )
    minutes, hours, days, months, weekdays = (
        _field_values(values, name, lo, hi, expr)
        for values, (name, lo, hi) in zip(expanded, _FIELDS)
    )
    return CronSchedule(
        expr=expr,
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        weekdays=weekdays,
    )


def is_due(
    schedule: str | CronSchedule,
    last_run_at: datetime | None,
    now: datetime,
) -> bool:
    """True if ``now`` matches and the job hasn't already run in this minute."""
    sched = _coerce(schedule)
    if not sched.matches(now):
        return False
    if last_run_at is None:
        return True
    last_run_at = _align(last_run_at, now)
    return _truncate(now) > _truncate(last_run_at)


def next_due(schedule: str | CronSchedule, after: datetime) -> datetime | None:
    """Earliest matching minute strictly after ``after``, or None within 4 years."""
    sched = _coerce(schedule)
    t = _truncate(after) + timedelta(minutes=1)
    limit = after + MAX_SCAN
    while t <= limit:
        if t.month not in sched.months:
            t = (t.replace(day=1) + timedelta(days=32)).replace(day=1, hour=0, minute=0)
            continue
        if t.day not in sched.days or _cron_weekday(t) not in sched.weekdays:
            t = (t + timedelta(days=1)).replace(hour=0, minute=0)
            continue
        if t.hour not in sched.hours:
            t = (t + timedelta(hours=1)).replace(minute=0)
            continue
        if t.minute not in sched.minutes:
            t += timedelta(minutes=1)
            continue
        return t
    return None


def validate_schedule(expr: str) -> str:
    """Return the normalized expression, raising InvalidScheduleError if bad."""
    return " ".join(parse_schedule(expr).expr.split())


# ── helpers ─────────────────────────────────────────────────


def _field_values(values: list, name: str, lo: int, hi: int, expr: str) -> frozenset[int]:
    """croniter value list for one field → set of ints. ``['*']`` means every value."""
    if values == ["*"]:
        return frozenset(range(lo, hi + 1))
    if not all(isinstance(v, int) for v in values):
        # "L" and similar specials expand to strings
        raise InvalidScheduleError(
            f"Unsupported {name} value in {expr!r}", details={"schedule": expr}
        )
    if name == "day of week":
        values = [v % 7 for v in values]
    if any(v < lo or v > hi for v in values):
        raise InvalidScheduleError(
            f"Out of range {name} value in {expr!r} (allowed {lo}-{hi})",
            details={"schedule": expr},
        )
    return frozenset(values)


def _coerce(schedule: str | CronSchedule) -> CronSchedule:
    return schedule if isinstance(schedule, CronSchedule) else parse_schedule(schedule)


def _cron_weekday(t: datetime) -> int:
    # datetime: Monday=0 .. Sunday=6; cron: Sunday=0 .. Saturday=6
    return (t.weekday() + 1) % 7


def _truncate(t: datetime) -> datetime:
    return t.replace(second=0, microsecond=0)


def _align(t: datetime, ref: datetime) -> datetime:
    """Make ``t`` comparable with ``ref`` when only one of them is tz-aware."""
    if t.tzinfo is None and ref.tzinfo is not None:
        return t.replace(tzinfo=ref.tzinfo)
    if t.tzinfo is not None and ref.tzinfo is None:
        return t.astimezone().replace(tzinfo=None)
    return t

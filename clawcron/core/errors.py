"""Error hierarchy for the cron engine.

Every custom exception inherits from ``CronError``, which carries an
``error_code`` and an optional ``details`` dict for programmatic handling::

    raise ValidationError("schedule is required", error_code="CRON_SCHEDULE_MISSING")
    raise ExecutionError("model refused", details={"model": "openai/gpt-4o"})

Being "already running" is deliberately not an exception: the runner treats
it as a skip, never as a failure.
"""

from __future__ import annotations


class CronError(Exception):
    """Base exception for all cron engine errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "CRON_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ValidationError(CronError):
    """Malformed trigger request or job definition. Surfaced as a client error."""

    def __init__(
        self,
        message: str,
        error_code: str = "VALIDATION_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class InvalidScheduleError(ValidationError):
    """Cron expression could not be parsed."""

    def __init__(
        self,
        message: str,
        error_code: str = "INVALID_SCHEDULE",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class ExecutionError(CronError):
    """The prompt/command executor failed. Recovered at the job boundary."""

    def __init__(
        self,
        message: str,
        error_code: str = "EXECUTION_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class ExecutionTimeoutError(ExecutionError):
    """The executor did not finish within the configured bound."""

    def __init__(
        self,
        message: str,
        error_code: str = "EXECUTION_TIMEOUT",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class ConfigError(CronError):
    """Config file unreadable or invalid. Raised at startup only."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class StoreError(CronError):
    """Job/session store unreachable or inconsistent. Fatal for the invocation."""

    def __init__(
        self,
        message: str,
        error_code: str = "STORE_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)

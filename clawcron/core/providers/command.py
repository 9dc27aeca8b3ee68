"""Command executor — runs ``command`` cron jobs in the job's workspace."""

from __future__ import annotations

import asyncio
import os
import re

from loguru import logger

from clawcron.core.errors import ExecutionError, ExecutionTimeoutError
from clawcron.core.providers.base import ExecutionOutput

# Block destructive commands
DENY_PATTERNS: list[re.Pattern] = [
    re.compile(r"\brm\s+(-[rR]|-[rR]?f|-f?[rR])\b"),  # rm -rf, rm -r, rm -f
    re.compile(r"\b(format|mkfs|diskpart)\b"),  # Disk format
    re.compile(r"\bdd\s+if="),  # dd disk copy
    re.compile(r">\s*/dev/sd"),  # Write to disk device
    re.compile(r"\b(shutdown|reboot|poweroff|halt)\b"),  # Power commands
    re.compile(r":\(\)\s*\{.*\}"),  # Fork bomb
]

MAX_OUTPUT = 10_000


class CommandExecutor:
    """Run a shell command with a timeout; non-zero exit is a failure."""

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    async def execute(self, command: str, workspace_path: str) -> ExecutionOutput:
        for pattern in DENY_PATTERNS:
            if pattern.search(command):
                raise ExecutionError(
                    f"Command blocked by safety filter: {command}",
                    error_code="COMMAND_BLOCKED",
                )

        env = {**os.environ, "TERM": "dumb"}
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workspace_path,
                env=env,
            )
        except OSError as e:
            raise ExecutionError(f"Cannot start command in {workspace_path}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            raise ExecutionTimeoutError(
                f"Command timeout after {self.timeout:g}s: {command}"
            ) from None
        except asyncio.CancelledError:
            # cancelled by the runner's own timeout
            await _kill(proc)
            raise

        out = _truncate(stdout.decode("utf-8", errors="replace"))
        err = _truncate(stderr.decode("utf-8", errors="replace"))
        if proc.returncode != 0:
            logger.debug(f"Command exited {proc.returncode}: {command}")
            raise ExecutionError(
                f"[exit code: {proc.returncode}]\n{err or out}".rstrip(),
                details={"exit_code": proc.returncode},
            )
        if err:
            out = f"{out}\n[stderr]\n{err}" if out else f"[stderr]\n{err}"
        return ExecutionOutput(output=out)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()
    logger.debug(f"Killed command process {proc.pid}")


def _truncate(text: str) -> str:
    if len(text) > MAX_OUTPUT:
        return text[:MAX_OUTPUT] + f"\n\n... truncated ({len(text)} chars)"
    return text

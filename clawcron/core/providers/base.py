"""Executor contract consumed by the cron runner."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel


class ExecutionOutput(BaseModel):
    output: str
    tokens_used: int = 0


class PromptExecutor(Protocol):
    """Runs a prompt in a fresh session against a workspace.

    Implementations raise ``ExecutionError`` (or any exception) on failure;
    the runner records it rather than propagating it.
    """

    async def execute(
        self, prompt: str, model_id: str, workspace_path: str
    ) -> ExecutionOutput: ...

"""Executors — the collaborators that actually run a cron job's payload."""

from clawcron.core.providers.base import ExecutionOutput, PromptExecutor
from clawcron.core.providers.command import CommandExecutor
from clawcron.core.providers.litellm import LiteLLMExecutor

__all__ = ["CommandExecutor", "ExecutionOutput", "LiteLLMExecutor", "PromptExecutor"]

"""LiteLLM executor — runs a cron prompt as a single blocking chat turn."""

from __future__ import annotations

import os
from typing import Any

import litellm
from loguru import logger

from clawcron.core.config.schema import Config
from clawcron.core.errors import ExecutionError
from clawcron.core.providers.base import ExecutionOutput

# Suppress litellm noise
litellm.suppress_debug_info = True

DEFAULT_SYSTEM_PROMPT = (
    "You are running a scheduled task on behalf of the user. "
    "Complete the task described in the message and reply with the final result only."
)


def setup_provider(config: Config) -> None:
    """Set env vars for LiteLLM from config. Call once at startup."""
    _set_key("ANTHROPIC_API_KEY", config.providers.anthropic.api_key)
    _set_key("OPENAI_API_KEY", config.providers.openai.api_key)
    _set_key("OPENROUTER_API_KEY", config.providers.openrouter.api_key)
    _set_key("DEEPSEEK_API_KEY", config.providers.deepseek.api_key)
    _set_key("GROQ_API_KEY", config.providers.groq.api_key)
    _set_key("GEMINI_API_KEY", config.providers.gemini.api_key)


class LiteLLMExecutor:
    """Default prompt executor backed by ``litellm.acompletion``."""

    def __init__(self, config: Config):
        self.config = config
        setup_provider(config)

    async def execute(
        self, prompt: str, model_id: str, workspace_path: str
    ) -> ExecutionOutput:
        kwargs: dict[str, Any] = {
            "model": model_id,
            "messages": [
                {"role": "system", "content": self._system_prompt(workspace_path)},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.config.assistant.temperature,
            "max_tokens": self.config.assistant.max_tokens,
        }
        api_base = self.config.get_api_base(model_id)
        if api_base:
            kwargs["api_base"] = api_base

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            logger.error(f"LLM error ({model_id}): {e}")
            raise ExecutionError(
                f"Error calling LLM: {e}", details={"model": model_id}
            ) from e

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) or 0
        logger.debug(f"LLM done ({model_id}): {len(content)} chars, {tokens} tokens")
        return ExecutionOutput(output=content, tokens_used=tokens)

    def _system_prompt(self, workspace_path: str) -> str:
        base = self.config.assistant.system_prompt or DEFAULT_SYSTEM_PROMPT
        return f"{base}\n\nWorkspace: {workspace_path}"


def _set_key(env_name: str, value: str) -> None:
    if value:
        os.environ.setdefault(env_name, value)

"""clawcron configuration schema — YAML + Pydantic + env override."""

from __future__ import annotations

from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


# ════════════════════════════════════════════════════════════
# SUB-CONFIGS (nested BaseModel)
# ════════════════════════════════════════════════════════════


class ProviderConfig(BaseModel):
    """Single LLM provider."""

    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """LLM providers (LiteLLM multi-provider)."""

    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)
    deepseek: ProviderConfig = Field(default_factory=ProviderConfig)
    groq: ProviderConfig = Field(default_factory=ProviderConfig)
    gemini: ProviderConfig = Field(default_factory=ProviderConfig)


class AssistantConfig(BaseModel):
    """Defaults for prompt runs (assistant.*)."""

    workspace: str = "./workspace"
    model: str = "anthropic/claude-sonnet-4-5-20250929"
    temperature: float = 0.7
    max_tokens: int = 4096
    system_prompt: str | None = None


class CronConfig(BaseModel):
    """Cron engine (cron.*)."""

    enabled: bool = True
    tick: str = "* * * * *"  # crontab for the periodic trigger
    timeout_s: float = 300.0
    command_timeout_s: float = 60.0
    max_concurrency: int = 1  # 1 = sequential due batches
    advance_on_skip: bool = False
    allow_forced_disabled: bool = True
    timezone: str | None = None  # None → local time
    max_notifications: int = 100


class DatabaseConfig(BaseModel):
    path: str = "data/clawcron.db"


# ════════════════════════════════════════════════════════════
# ROOT CONFIG (BaseSettings, env + .env support)
# ════════════════════════════════════════════════════════════


class Config(BaseSettings):
    """
    Root configuration.

    Priority: env vars > .env > YAML (init kwargs) > defaults.
    Init kwargs are demoted below the environment in
    ``settings_customise_sources`` so a deployment can override the file.

    Env override examples:
        CLAWCRON_ASSISTANT__MODEL=openai/gpt-4o
        CLAWCRON_CRON__TIMEOUT_S=120
        CLAWCRON_DATABASE__PATH=data/prod.db
    """

    model_config = SettingsConfigDict(
        env_prefix="CLAWCRON_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    cron: CronConfig = Field(default_factory=CronConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    # ── Computed properties ─────────────────────────────────

    @property
    def workspace_path(self) -> Path:
        return Path(self.assistant.workspace).expanduser().resolve()

    @property
    def db_path(self) -> Path:
        return Path(self.database.path)

    @property
    def tz(self) -> tzinfo | None:
        """Timezone schedules are evaluated in. None means naive local time."""
        return ZoneInfo(self.cron.timezone) if self.cron.timezone else None

    # ── Provider helpers ────────────────────────────────────

    def get_api_base(self, model: str | None = None) -> str | None:
        """Get API base URL for model name."""
        model_name = (model or self.assistant.model).lower()
        if "openrouter" in model_name:
            return self.providers.openrouter.api_base or "https://openrouter.ai/api/v1"
        for name in ProvidersConfig.model_fields:
            p = getattr(self.providers, name)
            if isinstance(p, ProviderConfig) and name in model_name and p.api_base:
                return p.api_base
        return None

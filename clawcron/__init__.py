"""clawcron — cron scheduling and execution engine for agent prompts."""

__version__ = "0.1.0"

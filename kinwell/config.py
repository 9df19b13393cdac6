"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no API keys in code)
"""

import os
from functools import lru_cache
from typing import Any, Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()


class AIProviderConfig(BaseModel):
    """Model provider used for on-demand summaries, insights and prescription reading."""

    gemini_api_key: str | None = Field(None, description="Gemini API key (optional)")

    summary_model: str = Field(
        default="google:gemini-2.5-flash", description="Model used for health summaries"
    )
    insight_model: str = Field(
        default="google:gemini-2.5-flash", description="Model used for insight generation"
    )
    prescription_model: str = Field(
        default="google:gemini-2.5-flash", description="Model used for prescription images"
    )

    default_temperature: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Default temperature for AI models"
    )
    default_timeout_seconds: float = Field(
        default=30.0, gt=0.0, description="Default timeout for AI models"
    )

    @field_validator("gemini_api_key")
    def validate_api_key(cls, v):
        if v is None or v == "":
            return None
        if v == "your-gemini-api-key-here":
            raise ValueError("GEMINI_API_KEY still holds the placeholder value")
        return v


class ReminderConfig(BaseModel):
    """Reminder and insight engine settings."""

    tick_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Interval between evaluation passes"
    )
    firing_window_minutes: float = Field(
        default=5.0, gt=0.0, description="How long after the reminder time a reminder may fire"
    )
    insight_probability: float = Field(
        default=0.05, ge=0.0, le=1.0, description="Chance per tick of sampling an insight"
    )
    insight_title: str = Field(
        default="New Health Observation", min_length=1, description="Title of sampled insights"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    ai_provider: AIProviderConfig
    reminders: ReminderConfig
    logging: LoggingConfig

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    ai_config = AIProviderConfig(
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        summary_model=os.getenv("SUMMARY_MODEL", "google:gemini-2.5-flash"),
        insight_model=os.getenv("INSIGHT_MODEL", "google:gemini-2.5-flash"),
        prescription_model=os.getenv("PRESCRIPTION_MODEL", "google:gemini-2.5-flash"),
    )

    reminder_config = ReminderConfig(
        tick_interval_seconds=float(os.getenv("REMINDER_TICK_SECONDS", "60.0")),
        firing_window_minutes=float(os.getenv("REMINDER_WINDOW_MINUTES", "5.0")),
        insight_probability=float(os.getenv("INSIGHT_PROBABILITY", "0.05")),
        insight_title=os.getenv("INSIGHT_TITLE", "New Health Observation"),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        ai_provider=ai_config,
        reminders=reminder_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


AITask = Literal["summary", "insights", "prescription"]


def get_model_config(task: AITask, config: AppConfig | None = None) -> dict[str, Any]:
    """Get model configuration for a task, from the given config or the cached one."""
    config = config or get_config()

    if task == "summary":
        model_name = config.ai_provider.summary_model
    elif task == "insights":
        model_name = config.ai_provider.insight_model
    elif task == "prescription":
        model_name = config.ai_provider.prescription_model
    else:
        raise ValueError(f"Unknown task: {task}")

    return {
        "model_name": model_name,
        "temperature": config.ai_provider.default_temperature,
        "timeout_seconds": config.ai_provider.default_timeout_seconds,
        "api_key": config.ai_provider.gemini_api_key,
    }

"""Configuration and settings management using pydantic-settings."""
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="VIBEFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core service settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")

    # LLM collaborator settings
    llm_provider: Literal["echo", "anthropic"] = Field(
        default="echo",
        description="Which LLM collaborator LLM nodes call",
    )
    default_model: str = Field(
        default="gpt-4",
        description="Model used by LLM nodes that do not name one",
    )
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        description="Anthropic API key (required when llm_provider=anthropic)",
    )
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        description="Anthropic API base URL",
    )
    anthropic_version: str = Field(
        default="2023-06-01",
        description="Anthropic API version",
    )
    llm_max_tokens: int = Field(
        default=1024,
        description="max_tokens sent with every LLM call",
    )
    llm_timeout_s: float = Field(
        default=60.0,
        description="Read timeout for a single LLM call in seconds",
    )
    llm_max_retries: int = Field(
        default=2,
        description="Retries on rate limiting or server errors",
    )

    # Tool collaborator settings
    tool_timeout_s: float | None = Field(
        default=30.0,
        description="Per-call tool timeout in seconds (None disables it)",
    )

    # Engine settings
    engine_max_steps: int = Field(
        default=1000,
        description="Maximum node dispatches per execution",
    )
    engine_join_policy: Literal["per_path", "wait_all"] = Field(
        default="per_path",
        description="How nodes with several incoming paths are scheduled",
    )
    engine_run_all_start_nodes: bool = Field(
        default=False,
        description="Visit every start node instead of only the first one",
    )

    # Manager settings
    manager_max_workers: int = Field(
        default=4,
        description="Worker threads for background executions",
    )

    @field_validator("llm_max_tokens", "engine_max_steps", "manager_max_workers")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate that limits are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("llm_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """Validate retry count is not negative."""
        if v < 0:
            raise ValueError("llm_max_retries must not be negative")
        return v


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None

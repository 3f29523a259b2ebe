"""Configuration and settings management using pydantic-settings."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CHAT_MESSAGE = "This is a sample message generated by the flow execution."


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core service settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="json",
        description="Process log format: 'json' or 'text'",
    )

    # Executor settings
    pacing_delay_s: float = Field(
        default=1.0,
        description="Delay between two nodes of a run, in seconds",
    )
    default_chat_message: str = Field(
        default=DEFAULT_CHAT_MESSAGE,
        description="Message sent by a Send Message action with no upstream output",
    )
    run_history_limit: int = Field(
        default=100,
        description="Finished runs kept by the API run store before the oldest are dropped",
    )

    # Connector gateway settings
    gateway_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Base URL of the connector gateway",
    )
    http_timeout_s: float = Field(
        default=30.0,
        description="Timeout for every connector request in seconds",
    )

    @field_validator("pacing_delay_s")
    @classmethod
    def validate_pacing_delay(cls, v: float) -> float:
        """Validate that the pacing delay is not negative."""
        if v < 0:
            raise ValueError("pacing_delay_s must not be negative")
        return v

    @field_validator("run_history_limit")
    @classmethod
    def validate_run_history_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("run_history_limit must be at least 1")
        return v

    @field_validator("http_timeout_s")
    @classmethod
    def validate_http_timeout(cls, v: float) -> float:
        """Validate that the HTTP timeout is positive."""
        if v <= 0:
            raise ValueError("http_timeout_s must be positive")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
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

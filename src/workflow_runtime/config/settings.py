"""Engine configuration using pydantic-settings."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from node_registry.models import Readiness


class Settings(BaseSettings):
    """Engine settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core service settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Scheduling
    default_readiness: Readiness = Field(
        default=Readiness.ANY_INPUT,
        description="Join policy for nodes whose descriptor does not declare one",
    )
    max_node_executions: int = Field(
        default=1000,
        description="Upper bound on node executions per run (cycle guard)",
    )
    propagate_empty_batches: bool = Field(
        default=False,
        description="Deliver empty output batches to downstream nodes",
    )

    # Node I/O
    http_timeout_s: float = Field(
        default=30.0,
        description="Default timeout for node HTTP helpers in seconds",
    )

    # Run store
    run_store_backend: str = Field(
        default="memory",
        description="Run store backend: memory or redis",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the redis run store",
    )
    run_history_limit: int = Field(
        default=50,
        description="Default number of runs returned per workflow lookup",
    )
    retained_runs: int = Field(
        default=100,
        description="Finished runs an engine keeps in memory; older ones are served from the run store",
    )

    @field_validator("max_node_executions", "run_history_limit", "retained_runs")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate that limits are positive."""
        if v <= 0:
            raise ValueError("limit must be positive")
        return v

    @field_validator("http_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Node I/O must always be bounded."""
        if v <= 0:
            raise ValueError("http_timeout_s must be positive")
        return v

    @field_validator("run_store_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate run store backend name."""
        v = v.lower()
        if v not in ("memory", "redis"):
            raise ValueError("run_store_backend must be 'memory' or 'redis'")
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

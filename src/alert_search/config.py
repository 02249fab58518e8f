"""Process-level settings for alert-search using Pydantic Settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Backend definitions live in the deployment JSON file; these settings only
    say where to find it and how the process should log and trace.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    alert_search_config: Path = Field(
        default=Path("deployment.json"), description="Path to the backend deployment JSON file"
    )
    default_backend: str = Field(default="", description="Backend used by saved queries that name none")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Tracing and metrics
    service_name: str = Field(default="alert-search", description="OpenTelemetry service name")
    metrics_port: int = Field(default=0, ge=0, le=65535, description="Prometheus scrape port; 0 disables the endpoint")

    # Scheduler
    evaluation_schedule: str = Field(default="* * * * *", description="Cron schedule for saved-query evaluation")

    def get_default_backend(self) -> str | None:
        """Return the configured default backend, or None when unset."""
        return self.default_backend.strip() or None

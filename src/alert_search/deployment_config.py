"""Backend deployment configuration using Pydantic.

This module defines the schema for the JSON file that lists every search
backend instance saved queries may run against, plus shared logging and
observability settings.

Architecture:
- Each backend instance is addressed by a unique name
- Configuration validates at startup (fail fast)
- The loaded configuration is wrapped by BackendRegistry and passed to
  each pipeline explicitly
"""

import json
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


def _split_csv(raw_value: str | None) -> list[str]:
    """Split comma-separated config strings into trimmed entries."""

    if not raw_value:
        return []
    return [entry.strip() for entry in raw_value.split(",") if entry.strip()]


def _normalize_host_collection(value: object) -> list[str]:
    """Normalize strings or iterables into a trimmed list of hosts."""

    if value is None or value == "":
        return []

    if isinstance(value, str):
        return _split_csv(value)

    if isinstance(value, (list, tuple, set)):
        normalized: list[str] = []
        for item in value:
            if item is None:
                continue
            stripped = str(item).strip()
            if stripped:
                normalized.append(stripped)
        return normalized

    raise ValueError("Expected string, list, tuple, or set when parsing host collections")


class BackendConfig(BaseModel):
    """Connection and index layout for one search backend instance."""

    model_config = {"extra": "forbid", "frozen": True}

    name: Annotated[
        str,
        Field(
            min_length=1,
            pattern=r"^[a-z0-9][a-z0-9_-]*$",
            description="Unique backend name referenced by saved queries",
            examples=["logs", "audit"],
        ),
    ]

    src_url: Annotated[
        str | None,
        Field(
            description="printf-style template (start, end, query) for linking alerts back to a UI",
            examples=["https://kibana.example.com/app/discover#/?from=%s&to=%s&q=%s"],
        ),
    ] = None

    hosts: Annotated[
        list[str],
        Field(
            description="Cluster hosts; one is picked at random for each evaluation",
        ),
    ] = Field(default_factory=list)

    index: Annotated[
        str | None,
        Field(
            description="Index (or index prefix when date_based) to search",
        ),
    ] = None

    date_based: Annotated[
        bool,
        Field(
            description="Whether the index is split per day (<index>-YYYY.MM.DD)",
        ),
    ] = False

    date_field: Annotated[
        str | None,
        Field(
            description="Field carrying the event timestamp",
            examples=["@timestamp"],
        ),
    ] = None

    ingest_date_field: Annotated[
        str | None,
        Field(
            description="Field carrying the ingestion timestamp, used by queries that are not event-time based",
            examples=["index_timestamp"],
        ),
    ] = None

    @field_validator("hosts", mode="before")
    @classmethod
    def _normalize_hosts(cls, value: object) -> list[str]:
        return _normalize_host_collection(value)

    def resolve_date_field(self, event_time_based: bool) -> str | None:
        """Pick the timestamp field for a saved query."""
        if not event_time_based and self.ingest_date_field:
            return self.ingest_date_field
        return self.date_field


class LogProfileConfig(BaseModel):
    """Logging options applied at startup."""

    model_config = {"extra": "forbid"}

    level: Annotated[
        str | None,
        Field(
            pattern=r"^(debug|info|warning|error|critical)$",
            description="Root log level; unset falls back to the LOG_LEVEL setting",
        ),
    ] = None

    json_output: Annotated[
        bool | None,
        Field(
            description="Emit structured JSON logs; unset falls back to the LOG_JSON setting",
        ),
    ] = None

    logger_levels: Annotated[
        dict[str, str],
        Field(
            description="Per-logger level overrides (logger name -> level)",
            examples=[{"alert_search.services": "debug"}],
        ),
    ] = Field(default_factory=dict)

    @field_validator("logger_levels")
    @classmethod
    def validate_logger_levels(cls, value: dict[str, str]) -> dict[str, str]:
        """Validate that all logger_levels values use supported log levels."""
        allowed_levels = {"debug", "info", "warning", "error", "critical"}
        invalid = {name: level for name, level in value.items() if level not in allowed_levels}
        if invalid:
            details = ", ".join(f"{name}={level}" for name, level in invalid.items())
            raise ValueError(
                f"Invalid log level(s) in logger_levels; allowed levels are {sorted(allowed_levels)}; got: {details}"
            )
        return value


class ObservabilityCollectorConfig(BaseModel):
    """Configuration for OTLP trace export."""

    model_config = {"extra": "forbid"}

    enabled: Annotated[
        bool,
        Field(
            description="Enable OTLP trace export to an external collector",
        ),
    ] = False

    otlp_protocol: Annotated[
        Literal["http", "grpc"],
        Field(
            description="OTLP transport protocol",
        ),
    ] = "grpc"

    collector_endpoint: Annotated[
        str,
        Field(
            description="OTLP collector endpoint (HTTP uses /v1/traces)",
            examples=["http://localhost:4317", "http://localhost:4318/v1/traces"],
        ),
    ] = "http://localhost:4317"

    headers: Annotated[
        dict[str, str],
        Field(
            description="Optional headers to include with OTLP requests",
        ),
    ] = Field(default_factory=dict)

    timeout_seconds: Annotated[
        int,
        Field(
            ge=1,
            le=60,
            description="OTLP exporter timeout in seconds",
        ),
    ] = 10

    grpc_insecure: Annotated[
        bool,
        Field(
            description="Allow insecure gRPC (plaintext) connections",
        ),
    ] = True

    resource_attributes: Annotated[
        dict[str, str],
        Field(
            description="Additional OpenTelemetry resource attributes for trace export",
        ),
    ] = Field(default_factory=dict)


class DeploymentConfig(BaseModel):
    """Complete configuration for every search backend.

    Example:
        {
            "backends": [
                {
                    "name": "logs",
                    "hosts": ["es-1:9200", "es-2:9200"],
                    "index": "logstash",
                    "date_based": true,
                    "date_field": "@timestamp"
                }
            ],
            "log_profile": {"level": "info", "json_output": true}
        }
    """

    model_config = {"extra": "forbid"}

    backends: Annotated[
        list[BackendConfig],
        Field(
            min_length=1,
            description="Search backends saved queries may run against",
        ),
    ]

    log_profile: LogProfileConfig = Field(default_factory=LogProfileConfig)
    observability: ObservabilityCollectorConfig = Field(default_factory=ObservabilityCollectorConfig)

    @model_validator(mode="after")
    def validate_unique_names(self) -> "DeploymentConfig":
        """Ensure backend names are unique."""
        names = [backend.name for backend in self.backends]
        if len(names) != len(set(names)):
            duplicates = sorted({name for name in names if names.count(name) > 1})
            raise ValueError(f"Duplicate backend names found: {duplicates}")
        return self

    @classmethod
    def from_json_file(cls, path: Path) -> "DeploymentConfig":
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the config is invalid
        """
        if not path.exists():
            raise FileNotFoundError(f"Deployment config not found: {path}")

        with path.open() as f:
            data = json.load(f)

        return cls.model_validate(data)


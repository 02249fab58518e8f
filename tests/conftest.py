"""Shared test fixtures and configuration."""

from __future__ import annotations

from pathlib import Path
import random
import sys

import pytest

from alert_search.deployment_config import BackendConfig


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


TEST_ENV = {
    "ALERT_SEARCH_CONFIG": "deployment.json",
    "DEFAULT_BACKEND": "",
    "LOG_LEVEL": "info",
    "LOG_JSON": "false",
    "SERVICE_NAME": "alert-search-test",
    "METRICS_PORT": "0",
    "EVALUATION_SCHEDULE": "* * * * *",
}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Pin every setting so a developer's .env or shell cannot leak in."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def backend() -> BackendConfig:
    return BackendConfig(
        name="logs",
        hosts=["es-1:9200", "es-2:9200"],
        index="logstash",
        date_based=True,
        date_field="@timestamp",
    )


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)

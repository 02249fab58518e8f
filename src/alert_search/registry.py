"""Backend registry built once at startup and handed to each pipeline."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from alert_search.deployment_config import BackendConfig, DeploymentConfig
from alert_search.domain.errors import ConfigurationError


if TYPE_CHECKING:
    from alert_search.config import Settings


logger = logging.getLogger(__name__)


class BackendRegistry:
    """Read-only lookup of backend configuration by name."""

    def __init__(self, deployment: DeploymentConfig, *, default_backend: str | None = None) -> None:
        self._backends: dict[str, BackendConfig] = {backend.name: backend for backend in deployment.backends}
        self.deployment = deployment
        if default_backend is not None and default_backend not in self._backends:
            raise ConfigurationError(f"Default backend '{default_backend}' is not configured")
        self.default_backend = default_backend

    @classmethod
    def from_settings(cls, settings: Settings) -> BackendRegistry:
        """Load the deployment file named by ``settings``.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        path = settings.alert_search_config
        try:
            deployment = DeploymentConfig.from_json_file(path)
        except (FileNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unable to load backend configuration from {path}: {exc}") from exc

        registry = cls(deployment, default_backend=settings.get_default_backend())
        logger.info("Loaded %d backend(s) from %s: %s", len(registry), path, ", ".join(registry.names()))
        return registry

    def __len__(self) -> int:
        return len(self._backends)

    def __contains__(self, name: object) -> bool:
        return name in self._backends

    def names(self) -> list[str]:
        return list(self._backends)

    def get(self, name: str | None = None) -> BackendConfig:
        """Return the backend called ``name`` (or the default backend).

        Raises:
            ConfigurationError: If no such backend is configured
        """
        resolved = name or self.default_backend
        if resolved is None:
            raise ConfigurationError("No backend named and no default backend configured")
        try:
            return self._backends[resolved]
        except KeyError:
            raise ConfigurationError(f"Missing configuration for backend '{resolved}'") from None

"""Interface for schedulers that drive periodic saved-query evaluation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class EvaluationSchedulerProtocol(Protocol):
    """Common scheduler surface consumed by workers and status reporting."""

    @property
    def is_initialized(self) -> bool:  # pragma: no cover - Protocol only
        """Return True once the scheduler has been started."""

    @property
    def running(self) -> bool:  # pragma: no cover - Protocol only
        """Return True while a background scheduler loop is active."""

    @property
    def stats(self) -> dict[str, object]:  # pragma: no cover - Protocol only
        """Return scheduler metrics suitable for status reporting."""

    async def initialize(self) -> bool:  # pragma: no cover - Protocol only
        """Start the scheduler."""

    async def stop(self) -> None:  # pragma: no cover - Protocol only
        """Stop the scheduler and release resources."""

    async def trigger_evaluation(self, instant: int | None = None) -> dict:  # pragma: no cover - Protocol only
        """Evaluate immediately and return structured status."""

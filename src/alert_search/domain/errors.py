"""Error taxonomy for saved-query evaluation."""


class AlertSearchError(Exception):
    """Base error for the alert search domain."""


class ConfigurationError(AlertSearchError):
    """Raised when configuration for a named backend is missing or unusable."""


class SearchError(AlertSearchError):
    """Raised when the count or data query fails.

    Wraps whatever the parser or executor raised; the original exception is
    chained as ``__cause__``.
    """

    def __init__(self, message: str, *, backend: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.backend = backend

"""Error taxonomy for the resolution pipeline.

Every error carries a ``kind`` so the HTTP layer can map it to a status code
without knowing the class hierarchy. Only ``ValidationError`` is allowed to
escape ``SearchOrchestrator.search``; everything else degrades.
"""


class ContentResolverError(Exception):
    """Base class for all pipeline errors."""

    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ContentResolverError):
    """Bad query, limit or provider name. Rejected before the pipeline runs."""

    kind = "validation"


class UnknownProviderError(ValidationError):
    """Requested provider name is not registered."""

    kind = "unknown_provider"

    def __init__(self, name: str, available: list[str]) -> None:
        super().__init__(f'Unknown provider "{name}". Available: {", ".join(available) or "none"}')
        self.name = name
        self.available = available


class RateLimitExceeded(ContentResolverError):
    """The hourly provider budget is spent."""

    kind = "rate_limited"


class ProviderError(ContentResolverError):
    """A provider call failed."""

    kind = "provider"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Timeout, 5xx or connection failure that survived all retries."""

    kind = "provider_transient"


class PermanentProviderError(ProviderError):
    """4xx response. Never retried."""

    kind = "provider_permanent"


class PersistenceError(ContentResolverError):
    """A write to (or read from) the persistent store failed."""

    kind = "persistence"


class LoggingError(ContentResolverError):
    """An analytics write failed."""

    kind = "logging"

"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so callers can log it without parsing
    # str(exception). Never raise this directly - always pick a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidStateException(DomainException):
    """Raised when an object is in an invalid state for the requested operation.

    Example: opening a second write batch while one is already open.
    """

    pass


class JobAlreadyRunningError(InvalidStateException):
    """Raised when a batch analysis is started on a runner that is already running.

    Hey future me - two overlapping runs would race on the cancellation token AND on the
    store's write-batch mode (nested batches are not supported). We reject instead of queueing,
    the caller can cancel() the running job and retry.
    """

    def __init__(self, job_name: str) -> None:
        super().__init__(f"Analysis job '{job_name}' is already running")
        self.job_name = job_name


class ValidationError(DomainException):
    """Input validation failed.

    Example:
        raise ValidationError("Unknown completeness kind: podcasts")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid, e.g. the TMDB API key
    is not set. Raised BEFORE any analysis work starts.

    Example:
        raise ConfigurationError("TMDB API key not configured")
    """

    pass


# =============================================================================
# CATALOG ERRORS
# Hey future me - everything a catalog client can raise lives under ExternalServiceError,
# so analyzers can catch one base class and the runner can count the unit as failed.
# =============================================================================


class ExternalServiceError(DomainException):
    """External catalog service (TMDB, MusicBrainz) returned an error.

    Example:
        raise ExternalServiceError("MusicBrainz API error: 503 Service Unavailable")
    """

    def __init__(self, message: str, service: str | None = None) -> None:
        super().__init__(message)
        self.service = service


class CatalogHttpError(ExternalServiceError):
    """Catalog responded with a non-2xx status."""

    def __init__(
        self, status_code: int, message: str, service: str | None = None
    ) -> None:
        super().__init__(f"HTTP {status_code}: {message}", service)
        self.status_code = status_code
        self.remote_message = message


class RateLimitExceededError(CatalogHttpError):
    """Catalog rate limit was exceeded (HTTP 429).

    Example:
        raise RateLimitExceededError("Too Many Requests", retry_after=30.0)
    """

    def __init__(
        self,
        message: str = "Too Many Requests",
        retry_after: float | None = None,
        service: str | None = None,
    ) -> None:
        super().__init__(429, message, service)
        self.retry_after = retry_after


class CatalogTimeoutError(ExternalServiceError):
    """Catalog request exceeded its hard timeout and was aborted."""

    def __init__(
        self, endpoint: str, timeout: float, service: str | None = None
    ) -> None:
        super().__init__(f"Request to {endpoint} timed out after {timeout}s", service)
        self.endpoint = endpoint
        self.timeout = timeout


class CatalogConnectionError(ExternalServiceError):
    """Network-level failure (connection refused/reset, DNS, ...)."""

    pass


class NonRetryableCatalogError(ExternalServiceError):
    """Wraps a catalog error that the retrying client will not retry.

    Hey future me - the original error is kept in .cause (and __cause__), and the HTTP status
    is lifted up so callers can still do "404 means not found" checks without unwrapping.
    """

    def __init__(self, cause: Exception, service: str | None = None) -> None:
        super().__init__(f"Non-retryable catalog error: {cause}", service)
        self.cause = cause
        self.status_code: int | None = getattr(cause, "status_code", None)


# =============================================================================
# Public API - All exceptions that can be imported
# =============================================================================
__all__ = [
    # Base
    "DomainException",
    # Entity exceptions
    "EntityNotFoundException",
    # Validation exceptions
    "ValidationError",
    # State exceptions
    "InvalidStateException",
    "JobAlreadyRunningError",
    # Configuration
    "ConfigurationError",
    # External service exceptions
    "ExternalServiceError",
    "CatalogHttpError",
    "RateLimitExceededError",
    "CatalogTimeoutError",
    "CatalogConnectionError",
    "NonRetryableCatalogError",
]

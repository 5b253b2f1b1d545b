class ServiceError(Exception):
    """Base exception for service layer failures."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class DownstreamServiceError(ServiceError):
    """Raised when the data store is unreachable or returns an error response."""

    def __init__(self, message: str, status_code: int | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class StoreConflictError(ServiceError):
    """Raised when a write is rejected by a uniqueness or exclusion constraint."""


class ResourceNotFoundError(ServiceError):
    """Raised when a salon or service referenced by a read does not exist."""

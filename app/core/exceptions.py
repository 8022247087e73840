"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and get
consistent HTTP status codes everywhere.

Usage:
    from app.core.exceptions import ForbiddenError, NotFoundError

    raise NotFoundError(resource="PendingRegistration", resource_id=reg_id)
    raise ForbiddenError("Registration outside caller scope", target_tag="DJTB-CUB")
"""


class UnauthorizedError(Exception):
    """Raised when the caller identity is missing or cannot be verified.

    Maps to HTTP 401. Never retried by the service layer.
    """

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ForbiddenError(Exception):
    """Raised when a verified identity is denied by scope.

    Maps to HTTP 403 (or to a not-found response when denial shape
    normalization is enabled, see ``SCOPE_DENIAL_AS_NOT_FOUND``).

    Args:
        message: Human-readable reason. Logged, returned only as a generic text.
        target_tag: Organizational tag of the denied record. For logs only.
    """

    def __init__(self, message: str = "Forbidden", target_tag: str | None = None) -> None:
        self.target_tag = target_tag
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "PendingRegistration").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class NotFoundOrAlreadyProcessedError(NotFoundError):
    """The record is missing or no longer accepts the requested transition.

    Terminal, non-retryable client error (e.g. a registration that was already
    reviewed). Shares the 404 shape of ``NotFoundError``.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        super().__init__(resource, resource_id)
        self.args = (f"{resource} id={resource_id} not found or already processed",)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique record.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class HierarchyIntegrityError(Exception):
    """Raised when the organizational chain cycles or exceeds its hop limit."""

    def __init__(self, start_id: str, path: list[str]) -> None:
        self.start_id = start_id
        self.path = path
        super().__init__(f"Hierarchy chain from {start_id!r} is invalid: {' -> '.join(path)}")

"""
Application-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from cadence.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Team", resource_id=team_id)
    raise ValidationError("Title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist or is not visible to the caller.

    Args:
        resource: Human-readable model/entity name (e.g. "Team", "StrategyCycle").
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


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint): the data
    was well-formed but violated a business rule (invalid cycle length,
    missing metrics on commit, unparseable strategy document).

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured breakdown for API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness or state rule.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field (or state) that conflicts.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PermissionDeniedError(Exception):
    """Raised when the authenticated user may not act on a resource.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "Permission denied") -> None:
        self.message = message
        super().__init__(message)


class ConfirmationRequiredError(Exception):
    """Raised when a destructive operation needs explicit caller confirmation.

    Maps to HTTP 409 with code ERR_CONFIRMATION_REQUIRED.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

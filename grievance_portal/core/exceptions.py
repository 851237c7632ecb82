"""
Service-layer exception hierarchy.

Services and the record store raise these; blueprints register handlers
against them once and map them to the standard JSON error envelope.

The rule and analytics engines do not raise for lookup misses, malformed
numeric condition values or empty collections. Those degrade to a no-op or
a documented default instead.

Usage:
    from grievance_portal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Grievance", resource_id="g-42")
    raise ValidationError("status is required", details={"status": None})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist in the store.

    Maps to HTTP 404.

    Args:
        resource: Human-readable record name (e.g. "Grievance", "User").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when a record is well-formed JSON but violates the field contracts.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when creating a record whose id already exists.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)

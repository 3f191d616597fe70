"""
Application-wide exception hierarchy.

Services, the workflow engine and the model gateway raise these types;
blueprints register handlers against them once and get consistent HTTP
status codes everywhere (see ``pacy.utils.errors.register_error_handlers``).

Usage:
    from pacy.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("name is required", details={"name": "missing"})
"""

RAW_PREVIEW_CHARS = 1000


class NotFoundError(Exception):
    """Raised when a requested resource (row or agent) does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Agent").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when a request is missing a required field or violates a precondition.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown (field name -> problem).
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised on a duplicate unique value or an illegal status transition.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} conflicts with current state"
        super().__init__(msg)


class AuthError(Exception):
    """Provider credentials are missing or rejected. Never retried.

    Maps to HTTP 401.
    """

    def __init__(self, message: str, provider: str = "") -> None:
        self.provider = provider
        super().__init__(message)


class TransientProviderError(Exception):
    """Rate limit, upstream 5xx, timeout or connection reset from a model provider.

    The gateway retries these with backoff; once retries are exhausted the
    last one propagates and maps to HTTP 503.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ParseError(Exception):
    """Model output did not match the structured-output grammar of a phase.

    Maps to HTTP 500; ``preview`` carries the truncated raw text for debugging.
    """

    def __init__(self, message: str, raw_text: str = "") -> None:
        self.raw_text = raw_text or ""
        super().__init__(message)

    @property
    def preview(self) -> str:
        return self.raw_text[:RAW_PREVIEW_CHARS]

"""Domain exceptions for the KoiHire backend.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to the JSON error envelope by the API layer's
middleware; ``status_code`` is the HTTP status the middleware uses.
"""


class KoiHireError(Exception):
    """Base exception for all domain errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "KOIHIRE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Auth Errors ---


class UnauthorizedError(KoiHireError):
    """Missing or invalid credentials."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message=message, code="UNAUTHORIZED")


class ForbiddenError(KoiHireError):
    """The caller is authenticated but not allowed to perform the action."""

    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message=message, code="FORBIDDEN")


class NotFoundError(KoiHireError):
    """Raised for missing resources AND for resources owned by someone else.

    The two cases are deliberately indistinguishable to the caller.
    """

    status_code = 404

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        message: str | None = None,
    ) -> None:
        message = message or f"{resource} not found or access denied"
        super().__init__(message=message, code="NOT_FOUND")
        self.resource = resource
        self.resource_id = resource_id


# --- Request Errors ---


class ValidationError(KoiHireError):
    """A request field is missing or malformed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message=message, code="VALIDATION_ERROR")
        self.field = field


class InvalidItemTypeError(KoiHireError):
    """Work-note item type outside {project, service}."""

    def __init__(self, item_type: str) -> None:
        super().__init__(message="Invalid item type", code="INVALID_ITEM_TYPE")
        self.item_type = item_type


# --- State Machine Errors ---


class InvalidStateTransitionError(KoiHireError):
    """Raised when an attempted state transition is not allowed.

    Example: RELEASED -> REFUNDED (RELEASED is terminal).
    """

    status_code = 409

    def __init__(self, current_state: str, attempted: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {current_state} -> {attempted}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted = attempted


# --- Upstream Errors ---


class UpstreamFailureError(KoiHireError):
    """The payment processor or a proxied service call failed."""

    status_code = 502

    def __init__(self, message: str, upstream: str = "upstream") -> None:
        super().__init__(message=message, code="UPSTREAM_FAILURE")
        self.upstream = upstream


# --- Idempotency Errors ---


class DuplicateOperationError(KoiHireError):
    """Raised when an idempotency key (e.g. a payment intent id) was already used."""

    status_code = 409

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
        self.idempotency_key = idempotency_key

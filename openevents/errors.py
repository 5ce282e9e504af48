"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for failures surfaced to the caller as-is."""

    status_code = 500
    reason = "Unexpected error."
    label = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    reason = "The required object was not found."
    label = "NOT_FOUND"


class AccessError(DomainError):
    """Raised when the caller has no rights over the resource."""

    status_code = 403
    reason = "Access denied."
    label = "FORBIDDEN"


class DataIntegrityError(DomainError):
    """Raised when a business rule would be violated."""

    status_code = 409
    reason = "Integrity constraint has been violated."
    label = "CONFLICT"


class InvalidInputError(DomainError):
    """Raised for malformed input, before anything is mutated."""

    status_code = 400
    reason = "Incorrectly made request."
    label = "BAD_REQUEST"

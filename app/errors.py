"""
Domain errors raised by the claim services.
Each carries a stable ErrorKind that the API maps to an HTTP status.
"""

from typing import Optional

from app.models.enums import ErrorKind


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.INTERNAL: 500,
}


class ClaimServiceError(Exception):
    """Base error for claim intake operations."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_body(self) -> dict:
        return {"ok": False, "error": self.kind.value, "message": self.message}


class ValidationFailed(ClaimServiceError):
    kind = ErrorKind.VALIDATION


class NotFound(ClaimServiceError):
    kind = ErrorKind.NOT_FOUND


class VersionConflict(ClaimServiceError):
    """The row changed since the caller read it."""
    kind = ErrorKind.CONFLICT

    def __init__(self, entity: str, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{entity} was modified (expected version {expected}, found {actual})")


class InvalidTransition(ClaimServiceError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"cannot move claim from {current} to {target}")


class TransactionFailed(ClaimServiceError):
    """A database error aborted a transaction. Details stay in the server log."""
    kind = ErrorKind.INTERNAL

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__("server error")

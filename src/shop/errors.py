from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    TRANSPORT = "transport"


class ShopError(Exception):
    """Base for business-rule failures raised by the data layer."""

    kind: ErrorKind = ErrorKind.VALIDATION


class NotFoundError(ShopError):
    kind = ErrorKind.NOT_FOUND


class InvalidTransitionError(ShopError):
    kind = ErrorKind.INVALID_TRANSITION


class UnauthorizedError(ShopError):
    kind = ErrorKind.UNAUTHORIZED


class ValidationError(ShopError):
    kind = ErrorKind.VALIDATION


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an admin operation: ``success`` plus an error message and kind."""

    success: bool
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls) -> "OperationResult":
        return cls(True)

    @classmethod
    def fail(cls, kind: ErrorKind, error: str) -> "OperationResult":
        return cls(False, error, kind)

    def __bool__(self) -> bool:
        return self.success

"""Domain errors and the result object returned across repository boundaries.

Repositories raise these internally and convert them to ``Result`` before
returning, so pages never have to catch business-rule failures.
"""
from dataclasses import dataclass
from typing import Any, Optional


class PosError(Exception):
    """Base class for expected failures surfaced to the user."""

    kind = "PosError"


class ValidationError(PosError):
    kind = "ValidationError"


class NotFoundError(PosError):
    kind = "NotFoundError"


class InsufficientStockError(PosError):
    """Requested quantity exceeds available stock."""

    kind = "InsufficientStockError"

    def __init__(self, product_name: str, available: int, requested: int, label: str = "Requested"):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, {label}: {requested}"
        )


class InvalidStateError(PosError):
    kind = "InvalidStateError"


class InfrastructureError(PosError):
    """Storage failed for reasons unrelated to business rules."""

    kind = "InfrastructureError"


class PrintError(Exception):
    """The native print command crashed."""


@dataclass
class Result:
    """Outcome of a mutating operation: ``success`` plus a value or an error."""

    success: bool
    value: Any = None
    error: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = None) -> "Result":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: PosError) -> "Result":
        return cls(success=False, error=str(error), kind=error.kind)

    @classmethod
    def failed(cls, message: str) -> "Result":
        """Generic infrastructure failure; the message never carries internals."""
        return cls(success=False, error=message, kind=InfrastructureError.kind)

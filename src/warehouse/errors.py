"""Typed errors raised by the allocation and fulfillment engine.

Every error derives from a Protean exception so that the FastAPI integration
maps it onto an HTTP response without extra wiring. Messages follow the
Protean ``{"field": ["message"]}`` shape.
"""

from protean.exceptions import (
    InvalidOperationError,
    ObjectNotFoundError,
    ValidationError,
)

__all__ = [
    "ValidationError",
    "InsufficientStockError",
    "InvalidTransitionError",
    "ConcurrentModificationError",
    "LocationNotFoundError",
    "ProductNotFoundError",
]


class InsufficientStockError(ValidationError):
    """Available stock cannot cover the requested base-unit quantity."""

    def __init__(self, shortage: int, sku: str | None = None, location: str | None = None):
        self.shortage = shortage
        self.sku = sku
        self.location = location
        where = f" at {location}" if location else ""
        super().__init__({"quantity": [f"Insufficient stock for {sku}{where}: short by {shortage}"]})


class InvalidTransitionError(ValidationError):
    """A status change that the fulfillment state machine does not allow."""

    def __init__(self, from_status: str, to_status: str, reason: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        message = f"Cannot transition from {from_status} to {to_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__({"status": [message]})


class ConcurrentModificationError(InvalidOperationError):
    """The entity changed between the caller's read and its write."""

    def __init__(self, expected: str, actual: str, entity_id: str | None = None):
        self.expected = expected
        self.actual = actual
        self.entity_id = entity_id
        super().__init__({"status": [f"Expected status {expected} but found {actual} for {entity_id}"]})


class LocationNotFoundError(ObjectNotFoundError):
    def __init__(self, code: str):
        self.code = code
        super().__init__({"location": [f"Location {code} does not exist"]})


class ProductNotFoundError(ObjectNotFoundError):
    def __init__(self, sku: str):
        self.sku = sku
        super().__init__({"sku": [f"Product {sku} does not exist"]})

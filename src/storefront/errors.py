"""Error taxonomy for order fulfillment.

Business-rule violations (illegal transitions, missing fields) are raised as
Protean's ``ValidationError``. The classes below cover the remaining failure
kinds so that callers can tell "fix the order" apart from "retry later".
"""

from enum import Enum

from protean.exceptions import ValidationError

__all__ = [
    "CommitCancelledError",
    "ConcurrencyConflict",
    "FulfillmentError",
    "InsufficientStockError",
    "LocationError",
    "LocationFailure",
    "TransportError",
    "ValidationError",
    "WorkflowInProgressError",
    "WorkflowStateError",
]


class LocationFailure(Enum):
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"


class FulfillmentError(Exception):
    """Base class for non-validation failures surfaced by the storefront."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InsufficientStockError(FulfillmentError):
    """One or more line items cannot be fulfilled from live inventory."""

    def __init__(self, offending_items: list):
        self.offending_items = list(offending_items)
        names = ", ".join(item.product_name for item in self.offending_items)
        super().__init__(f"Insufficient stock for: {names}")


class LocationError(FulfillmentError):
    """Device geolocation failed. Recoverable by entering the address manually."""

    def __init__(self, reason: LocationFailure, message: str | None = None):
        self.reason = reason
        super().__init__(message or f"Device location failed: {reason.value}")


class TransportError(FulfillmentError):
    """A network or storage call failed before a business decision was made."""

    def __init__(self, message: str, service: str | None = None):
        self.service = service
        super().__init__(message)


class ConcurrencyConflict(FulfillmentError):
    """A conditional write lost a race: the order was modified elsewhere."""

    def __init__(self, order_id: str, expected_status: str | None = None, actual_status: str | None = None):
        self.order_id = order_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        if expected_status and actual_status:
            message = (
                f"Order {order_id} was modified elsewhere: expected status {expected_status}, found {actual_status}"
            )
        else:
            message = f"Order {order_id} was modified elsewhere"
        super().__init__(message)


class WorkflowInProgressError(FulfillmentError):
    """A fulfillment workflow is already active for this order."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} is already being processed")


class WorkflowStateError(FulfillmentError):
    """A workflow step was requested from a state that does not allow it."""

    def __init__(self, current_state, requested: str):
        self.current_state = current_state
        self.requested = requested
        super().__init__(f"Cannot {requested} while workflow is {current_state.value}")


class CommitCancelledError(FulfillmentError):
    """The confirmation write was cancelled before the store acknowledged it.

    The outcome is unknown to the caller; the order must be re-read, and the
    write is never retried automatically.
    """

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Confirmation of order {order_id} was cancelled before it completed; reload the order")

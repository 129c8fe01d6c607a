"""Delivery assignment: binds the vendor's delivery choice to a pickup point."""

from storefront.errors import ValidationError
from storefront.order.order import (
    DELIVERY_LOCKED_STATES,
    DeliveryAssignment,
    OrderStatus,
    PickupLocation,
)


class DeliveryAssignmentResolver:
    """Builds the assignment written when an order is confirmed.

    There is no default delivery type; the vendor has to pick one.
    """

    def resolve(self, order, delivery_type, pickup: PickupLocation | None) -> DeliveryAssignment:
        current = OrderStatus(order.status)
        if current in DELIVERY_LOCKED_STATES:
            raise ValidationError({"delivery_type": [f"Delivery type is locked once an order is {current.value}"]})
        if pickup is None:
            raise ValidationError({"pickup_address": ["A pickup address is required"]})

        return DeliveryAssignment.bind(delivery_type, pickup)

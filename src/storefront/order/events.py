"""Domain events for the Order aggregate.

Events are immutable facts raised by the aggregate and persisted alongside it
on every successful write through the status transition guard.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderReceived:
    """A customer order was placed with a storefront and awaits processing."""

    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    customer_name = String(required=True)
    line_item_count = Integer(required=True)
    total_amount = Float(required=True)
    received_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderConfirmed:
    """Stock was verified and the order was bound to a delivery assignment."""

    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    delivery_type = String(required=True)
    pickup_address = String(required=True)
    pickup_latitude = Float()
    pickup_longitude = Float()
    confirmed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class DeliveryTypeChanged:
    """A confirmed order switched between self-delivery and courier."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_delivery_type = String(required=True)
    delivery_type = String(required=True)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderShipped:
    """The order left the store."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_type = String(required=True)
    tracking_number = String()
    shipped_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDelivered:
    """The order reached the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_type = String(required=True)
    delivered_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before shipment."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)

"""Order aggregate (CQRS) — the vendor's view of a customer purchase.

An Order carries a snapshot of what was bought (line items are copied from
the catalogue at placement and never re-read), the customer's contact and
shipping details, and the delivery assignment chosen when the vendor confirms
the order.

State Machine (5 states):
    RECEIVED → CONFIRMED → SHIPPED → DELIVERED
    RECEIVED | CONFIRMED → CANCELLED

DELIVERED and CANCELLED are terminal. Entering CONFIRMED requires a delivery
assignment; once the order is SHIPPED, DELIVERED or CANCELLED the delivery
type is locked.
"""

import secrets
from datetime import UTC, datetime
from enum import Enum
from urllib.parse import quote

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.order.events import (
    DeliveryTypeChanged,
    OrderCancelled,
    OrderConfirmed,
    OrderDelivered,
    OrderReceived,
    OrderShipped,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    RECEIVED = "received"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryType(Enum):
    SELF_DELIVERY = "self_delivery"
    COURIER = "courier"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.RECEIVED: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

# States in which the delivery assignment can no longer change
DELIVERY_LOCKED_STATES = frozenset(
    {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }
)

_ASSIGNED_STATES = {
    OrderStatus.CONFIRMED.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
}

GPS_ADDRESS_LABEL = "Current GPS Location"


def allowed_transitions(status) -> set:
    """Return the statuses reachable from ``status`` in one step."""
    return set(_VALID_TRANSITIONS.get(OrderStatus(status), set()))


def coerce_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value!r}"]}) from None


def coerce_delivery_type(value) -> DeliveryType:
    if value is None or value == "":
        raise ValidationError({"delivery_type": ["A delivery type must be chosen: self_delivery or courier"]})
    try:
        return DeliveryType(value)
    except ValueError:
        raise ValidationError({"delivery_type": [f"Unknown delivery type: {value!r}"]}) from None


def _generate_delivery_code() -> str:
    return f"{secrets.randbelow(10**6):06d}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class PickupLocation:
    """Where a delivery starts: an address line plus optional coordinates.

    Address text alone is enough. When coordinates are given, both latitude
    and longitude must be present.
    """

    address = String(required=True, max_length=500)
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def address_must_not_be_blank(self):
        if not self.address or not self.address.strip():
            raise ValidationError({"pickup_address": ["Pickup address cannot be blank"]})

    @invariant.post
    def coordinates_come_in_pairs(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError({"pickup_coordinates": ["Both latitude and longitude are required"]})

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def map_links(self) -> dict:
        """Links to open the pickup point in common map apps."""
        if self.has_coordinates:
            query = f"{self.latitude},{self.longitude}"
        else:
            query = quote(self.address)
        return {
            "google": f"https://www.google.com/maps/search/?api=1&query={query}",
            "apple": f"http://maps.apple.com/?q={query}",
        }


@storefront.value_object(part_of="Order")
class DeliveryAssignment:
    """The delivery decision sealed at confirmation.

    Delivery type and pickup location are resolved and written together;
    they are never set one without the other.
    """

    delivery_type = String(required=True, choices=DeliveryType)
    pickup_address = String(required=True, max_length=500)
    pickup_latitude = Float(min_value=-90.0, max_value=90.0)
    pickup_longitude = Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def pickup_address_must_not_be_blank(self):
        if not self.pickup_address or not self.pickup_address.strip():
            raise ValidationError({"pickup_address": ["Pickup address cannot be blank"]})

    @invariant.post
    def pickup_coordinates_come_in_pairs(self):
        if (self.pickup_latitude is None) != (self.pickup_longitude is None):
            raise ValidationError({"pickup_coordinates": ["Both latitude and longitude are required"]})

    @classmethod
    def bind(cls, delivery_type, pickup: PickupLocation):
        return cls(
            delivery_type=coerce_delivery_type(delivery_type).value,
            pickup_address=pickup.address.strip(),
            pickup_latitude=pickup.latitude,
            pickup_longitude=pickup.longitude,
        )

    @property
    def pickup(self) -> PickupLocation:
        return PickupLocation(
            address=self.pickup_address,
            latitude=self.pickup_latitude,
            longitude=self.pickup_longitude,
        )

    def as_fields(self) -> dict:
        return {
            "delivery_type": self.delivery_type,
            "pickup_address": self.pickup_address,
            "pickup_latitude": self.pickup_latitude,
            "pickup_longitude": self.pickup_longitude,
        }


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class LineItem:
    """A snapshot of one product bought in an order.

    ``product_id`` is only a lookup hint into the live catalogue. Name, price
    and image are frozen at placement, so deleting or repricing the product
    leaves the order untouched.
    """

    product_id = Identifier()  # None once the product has been deleted
    product_name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    image_url = String(max_length=1024)
    quantity = Integer(required=True, min_value=1)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    store_id = Identifier(required=True)
    customer_id = Identifier()
    customer_name = String(required=True, max_length=255)
    customer_email = String(required=True, max_length=254)
    customer_phone = String(max_length=30)
    line_items = HasMany(LineItem)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.RECEIVED.value,
    )
    shipping_address = String(required=True, max_length=500)
    shipping_latitude = Float(min_value=-90.0, max_value=90.0)
    shipping_longitude = Float(min_value=-180.0, max_value=180.0)
    billing_address = String(max_length=500)
    payment_method = String(max_length=50)
    delivery_type = String(choices=DeliveryType)
    pickup_address = String(max_length=500)
    pickup_latitude = Float(min_value=-90.0, max_value=90.0)
    pickup_longitude = Float(min_value=-180.0, max_value=180.0)
    tracking_number = String(max_length=255)
    delivery_code = String(max_length=12)
    delivery_cost = Float(default=0.0, min_value=0.0)
    service_fee = Float(default=0.0, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def assigned_orders_carry_delivery_assignment(self):
        if self.status in _ASSIGNED_STATES and (not self.delivery_type or not self.pickup_address):
            raise ValidationError(
                {"delivery_type": [f"A {self.status} order must have a delivery type and pickup address"]}
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        store_id,
        customer_name,
        customer_email,
        line_items_data,
        shipping_address,
        total_amount,
        customer_id=None,
        customer_phone=None,
        billing_address=None,
        shipping_latitude=None,
        shipping_longitude=None,
        payment_method=None,
        delivery_cost=0.0,
        service_fee=0.0,
    ):
        """Record a new order in RECEIVED state.

        Args:
            line_items_data: List of dicts with product_id, product_name,
                             unit_price, quantity and optional image_url.
            total_amount: The amount charged to the customer. It must equal
                          the line items plus delivery cost and service fee;
                          it is stored as given and never recomputed.
        """
        if not line_items_data:
            raise ValidationError({"line_items": ["An order needs at least one line item"]})

        line_items = [
            LineItem(
                product_id=data.get("product_id"),
                product_name=data["product_name"],
                unit_price=data["unit_price"],
                image_url=data.get("image_url"),
                quantity=data["quantity"],
            )
            for data in line_items_data
        ]

        delivery_cost = delivery_cost or 0.0
        service_fee = service_fee or 0.0
        expected_total = round(sum(item.line_total for item in line_items) + delivery_cost + service_fee, 2)
        if abs(round(total_amount, 2) - expected_total) >= 0.005:
            raise ValidationError(
                {
                    "total_amount": [
                        f"Total {total_amount:.2f} does not match line items plus fees ({expected_total:.2f})"
                    ]
                }
            )

        now = datetime.now(UTC)
        order = cls(
            store_id=store_id,
            customer_id=customer_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            line_items=line_items,
            status=OrderStatus.RECEIVED.value,
            shipping_address=shipping_address,
            shipping_latitude=shipping_latitude,
            shipping_longitude=shipping_longitude,
            billing_address=billing_address,
            payment_method=payment_method,
            delivery_code=_generate_delivery_code(),
            delivery_cost=delivery_cost,
            service_fee=service_fee,
            total_amount=total_amount,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderReceived(
                order_id=str(order.id),
                store_id=str(store_id),
                customer_name=customer_name,
                line_item_count=len(line_items),
                total_amount=total_amount,
                received_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def subtotal(self) -> float:
        return sum(item.line_total for item in self.line_items)

    @property
    def is_delivery_locked(self) -> bool:
        return OrderStatus(self.status) in DELIVERY_LOCKED_STATES

    @property
    def delivery_assignment(self):
        """The sealed delivery assignment, or None before confirmation."""
        if not self.delivery_type or not self.pickup_address:
            return None
        return DeliveryAssignment(
            delivery_type=self.delivery_type,
            pickup_address=self.pickup_address,
            pickup_latitude=self.pickup_latitude,
            pickup_longitude=self.pickup_longitude,
        )

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"status": [f"Illegal transition from {current.value} to {target_status.value}"]}
            )

    def transition_to(
        self,
        target_status,
        assignment=None,
        tracking_number=None,
        verification_code=None,
        reason=None,
    ):
        """Move the order to ``target_status``, applying that transition's side effects.

        A delivery assignment is accepted only when confirming; any other
        transition carrying one is rejected rather than silently dropped.
        """
        target = coerce_status(target_status)
        if target != OrderStatus.CONFIRMED and assignment is not None:
            raise ValidationError({"delivery_type": ["Delivery details can only be set when confirming an order"]})

        if target == OrderStatus.CONFIRMED:
            self.confirm(assignment)
        elif target == OrderStatus.SHIPPED:
            self.ship(tracking_number=tracking_number)
        elif target == OrderStatus.DELIVERED:
            self.deliver(verification_code=verification_code)
        elif target == OrderStatus.CANCELLED:
            self.cancel(reason=reason)
        else:
            self._assert_can_transition(target)

    # -------------------------------------------------------------------
    # Order lifecycle transitions
    # -------------------------------------------------------------------
    def confirm(self, assignment):
        """Confirm the order and seal its delivery assignment."""
        self._assert_can_transition(OrderStatus.CONFIRMED)
        if assignment is None:
            raise ValidationError(
                {"delivery_type": ["Confirming an order requires a delivery type and pickup address"]}
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.delivery_type = assignment.delivery_type
            self.pickup_address = assignment.pickup_address
            self.pickup_latitude = assignment.pickup_latitude
            self.pickup_longitude = assignment.pickup_longitude
            self.status = OrderStatus.CONFIRMED.value
            self.updated_at = now

        self.raise_(
            OrderConfirmed(
                order_id=str(self.id),
                store_id=str(self.store_id),
                delivery_type=assignment.delivery_type,
                pickup_address=assignment.pickup_address,
                pickup_latitude=assignment.pickup_latitude,
                pickup_longitude=assignment.pickup_longitude,
                confirmed_at=now,
            )
        )

    def ship(self, tracking_number=None):
        """Record that the order has left the store."""
        self._assert_can_transition(OrderStatus.SHIPPED)

        now = datetime.now(UTC)
        with atomic_change(self):
            if tracking_number:
                self.tracking_number = tracking_number
            self.status = OrderStatus.SHIPPED.value
            self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                delivery_type=self.delivery_type,
                tracking_number=self.tracking_number,
                shipped_at=now,
            )
        )

    def deliver(self, verification_code=None):
        """Record delivery. Self-delivered orders need the customer's delivery code."""
        self._assert_can_transition(OrderStatus.DELIVERED)

        if self.delivery_type == DeliveryType.SELF_DELIVERY.value:
            if not verification_code:
                raise ValidationError(
                    {"verification_code": ["The customer's delivery code is required for self-delivered orders"]}
                )
            if not secrets.compare_digest(str(verification_code), self.delivery_code or ""):
                raise ValidationError({"verification_code": ["Delivery code does not match"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.DELIVERED.value
            self.updated_at = now

        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                delivery_type=self.delivery_type,
                delivered_at=now,
            )
        )

    def cancel(self, reason=None):
        """Cancel the order. Only RECEIVED and CONFIRMED orders can be cancelled."""
        self._assert_can_transition(OrderStatus.CANCELLED)

        previous_status = self.status
        now = datetime.now(UTC)
        with atomic_change(self):
            if reason:
                self.cancellation_reason = reason
            self.status = OrderStatus.CANCELLED.value
            self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous_status,
                reason=reason,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Delivery assignment
    # -------------------------------------------------------------------
    def assert_delivery_type_changeable(self):
        current = OrderStatus(self.status)
        if current in DELIVERY_LOCKED_STATES:
            raise ValidationError({"delivery_type": [f"Delivery type is locked once an order is {current.value}"]})
        if current == OrderStatus.RECEIVED:
            raise ValidationError({"delivery_type": ["Delivery type is chosen when the order is confirmed"]})

    def change_delivery_type(self, delivery_type):
        """Switch a confirmed order between self-delivery and courier.

        Returns False when the requested type is already set.
        """
        new_type = coerce_delivery_type(delivery_type)
        self.assert_delivery_type_changeable()

        if new_type.value == self.delivery_type:
            return False

        previous = self.delivery_type
        now = datetime.now(UTC)
        with atomic_change(self):
            self.delivery_type = new_type.value
            self.updated_at = now

        self.raise_(
            DeliveryTypeChanged(
                order_id=str(self.id),
                previous_delivery_type=previous,
                delivery_type=new_type.value,
                changed_at=now,
            )
        )
        return True

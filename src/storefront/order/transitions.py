"""Status transition guard — commands and handler.

The handler here is the only writer of ``status``, ``delivery_type``, the
pickup fields and ``tracking_number``. Each write re-reads the order inside
the unit of work, scopes it to the calling store, compares the caller's view
of the status with the stored one, and only then applies the transition.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import ConcurrencyConflict
from storefront.order.order import DeliveryAssignment, DeliveryType, Order, OrderStatus, PickupLocation

logger = structlog.get_logger(__name__)

_DELIVERY_FIELDS = ("delivery_type", "pickup_address", "pickup_latitude", "pickup_longitude")


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    """Move an order to a new status.

    ``expected_status`` is the status the caller last saw; when given, the
    write only happens if the stored status still matches. Delivery fields
    accompany the transition to CONFIRMED and nothing else.
    """

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    expected_status = String(choices=OrderStatus)
    delivery_type = String(choices=DeliveryType)
    pickup_address = String(max_length=500)
    pickup_latitude = Float()
    pickup_longitude = Float()
    tracking_number = String(max_length=255)
    verification_code = String(max_length=12)
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class ChangeDeliveryType:
    """Switch a confirmed order between self-delivery and courier."""

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    delivery_type = String(required=True, choices=DeliveryType)
    expected_status = String(choices=OrderStatus)


def load_store_order(order_id, store_id):
    """Fetch an order, treating orders of other stores as missing."""
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    if str(order.store_id) != str(store_id):
        raise ObjectNotFoundError(f"`Order` object with identifier {order_id} does not exist.")
    return repo, order


def _assert_expected_status(order, expected_status):
    if expected_status and order.status != expected_status:
        logger.warning(
            "Rejected stale status write",
            order_id=str(order.id),
            expected_status=expected_status,
            actual_status=order.status,
        )
        raise ConcurrencyConflict(str(order.id), expected_status, order.status)


def _assignment_from(command):
    provided = {name: getattr(command, name) for name in _DELIVERY_FIELDS if getattr(command, name) is not None}
    if not provided:
        return None
    if command.status != OrderStatus.CONFIRMED.value:
        raise ValidationError({"delivery_type": ["Delivery details can only be set when confirming an order"]})
    if not command.delivery_type:
        raise ValidationError({"delivery_type": ["A delivery type must be chosen: self_delivery or courier"]})
    pickup = PickupLocation(
        address=command.pickup_address,
        latitude=command.pickup_latitude,
        longitude=command.pickup_longitude,
    )
    return DeliveryAssignment.bind(command.delivery_type, pickup)


@storefront.command_handler(part_of=Order)
class StatusTransitionHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo, order = load_store_order(command.order_id, command.store_id)
        _assert_expected_status(order, command.expected_status)

        previous_status = order.status
        order.transition_to(
            command.status,
            assignment=_assignment_from(command),
            tracking_number=command.tracking_number,
            verification_code=command.verification_code,
            reason=command.reason,
        )
        repo.add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            store_id=str(order.store_id),
            previous_status=previous_status,
            status=order.status,
            delivery_type=order.delivery_type,
        )
        return str(order.id)

    @handle(ChangeDeliveryType)
    def change_delivery_type(self, command):
        repo, order = load_store_order(command.order_id, command.store_id)
        _assert_expected_status(order, command.expected_status)

        if order.change_delivery_type(command.delivery_type):
            repo.add(order)
            logger.info(
                "Delivery type changed",
                order_id=str(order.id),
                store_id=str(order.store_id),
                delivery_type=order.delivery_type,
            )
        return str(order.id)

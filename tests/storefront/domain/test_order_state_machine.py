"""Tests for the Order state machine — legal moves, illegal moves and side effects."""

import pytest
from factories import advance, courier_assignment, make_order
from protean.exceptions import ValidationError
from storefront.order.events import OrderCancelled, OrderConfirmed, OrderDelivered, OrderShipped
from storefront.order.order import (
    DeliveryAssignment,
    OrderStatus,
    allowed_transitions,
    coerce_status,
)

_LEGAL = {
    (OrderStatus.RECEIVED, OrderStatus.CONFIRMED),
    (OrderStatus.RECEIVED, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.SHIPPED),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
}

_ILLEGAL = [(source, target) for source in OrderStatus for target in OrderStatus if (source, target) not in _LEGAL]


class TestValidTransitions:
    def test_received_to_confirmed(self):
        order = make_order()
        order.confirm(courier_assignment())
        assert order.status == OrderStatus.CONFIRMED.value

    def test_received_to_cancelled(self):
        order = make_order()
        order.cancel(reason="Out of fabric")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Out of fabric"

    def test_confirmed_to_shipped(self):
        order = advance(make_order(), "confirmed")
        order.ship(tracking_number="TRK-9")
        assert order.status == OrderStatus.SHIPPED.value
        assert order.tracking_number == "TRK-9"

    def test_confirmed_to_cancelled(self):
        order = advance(make_order(), "confirmed")
        order.cancel()
        assert order.status == OrderStatus.CANCELLED.value

    def test_shipped_to_delivered(self):
        order = advance(make_order(), "shipped")
        order.deliver()
        assert order.status == OrderStatus.DELIVERED.value

    def test_allowed_transitions_map(self):
        assert allowed_transitions("received") == {OrderStatus.CONFIRMED, OrderStatus.CANCELLED}
        assert allowed_transitions("shipped") == {OrderStatus.DELIVERED}
        assert allowed_transitions("delivered") == set()
        assert allowed_transitions("cancelled") == set()


class TestIllegalTransitions:
    @pytest.mark.parametrize(("source", "target"), _ILLEGAL, ids=lambda s: s.value)
    def test_illegal_transition_is_rejected_and_status_kept(self, source, target):
        order = advance(make_order(), source.value)
        events_before = len(order._events)
        assignment = courier_assignment() if target == OrderStatus.CONFIRMED else None

        with pytest.raises(ValidationError) as exc:
            order.transition_to(target.value, assignment=assignment)

        assert "Illegal transition" in exc.value.messages["status"][0]
        assert order.status == source.value
        assert len(order._events) == events_before

    def test_cancelled_cannot_be_confirmed(self):
        order = advance(make_order(), "cancelled")
        with pytest.raises(ValidationError):
            order.confirm(courier_assignment())
        assert order.delivery_type is None

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            coerce_status("archived")


class TestConfirmation:
    def test_confirm_requires_assignment(self):
        order = make_order()
        with pytest.raises(ValidationError):
            order.confirm(None)
        assert order.status == OrderStatus.RECEIVED.value

    def test_confirm_sets_status_and_assignment_together(self):
        order = make_order()
        order.confirm(courier_assignment(latitude=-15.42, longitude=28.28))
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.delivery_type == "courier"
        assert order.pickup_address == "12 Cairo Rd"
        assert order.pickup_latitude == -15.42
        assert order.pickup_longitude == 28.28

    def test_confirm_without_coordinates(self):
        order = make_order()
        order.confirm(courier_assignment())
        assert order.pickup_latitude is None
        assert order.pickup_longitude is None

    def test_confirm_raises_event(self):
        order = make_order()
        order.confirm(courier_assignment())
        event = order._events[-1]
        assert isinstance(event, OrderConfirmed)
        assert event.delivery_type == "courier"
        assert event.pickup_address == "12 Cairo Rd"

    def test_assignment_rejected_on_other_transitions(self):
        order = make_order()
        with pytest.raises(ValidationError) as exc:
            order.transition_to("cancelled", assignment=courier_assignment())
        assert "delivery_type" in exc.value.messages
        assert order.status == OrderStatus.RECEIVED.value

    def test_delivery_assignment_read_back(self):
        order = advance(make_order(), "confirmed")
        assignment = order.delivery_assignment
        assert assignment.delivery_type == "courier"
        assert assignment.pickup.address == "12 Cairo Rd"


class TestShippingAndDelivery:
    def test_ship_raises_event(self):
        order = advance(make_order(), "shipped")
        assert isinstance(order._events[-1], OrderShipped)

    def test_ship_without_tracking_number(self):
        order = advance(make_order(), "confirmed")
        order.ship()
        assert order.tracking_number is None

    def test_self_delivery_requires_code(self):
        order = advance(make_order(), "shipped", delivery_type="self_delivery")
        with pytest.raises(ValidationError) as exc:
            order.deliver()
        assert "verification_code" in exc.value.messages
        assert order.status == OrderStatus.SHIPPED.value

    def test_self_delivery_rejects_wrong_code(self):
        order = advance(make_order(), "shipped", delivery_type="self_delivery")
        wrong = "000000" if order.delivery_code != "000000" else "111111"
        with pytest.raises(ValidationError):
            order.deliver(verification_code=wrong)
        assert order.status == OrderStatus.SHIPPED.value

    def test_self_delivery_with_matching_code(self):
        order = advance(make_order(), "shipped", delivery_type="self_delivery")
        order.deliver(verification_code=order.delivery_code)
        assert order.status == OrderStatus.DELIVERED.value
        assert isinstance(order._events[-1], OrderDelivered)

    def test_courier_delivery_needs_no_code(self):
        order = advance(make_order(), "shipped")
        order.deliver()
        assert order.status == OrderStatus.DELIVERED.value

    def test_cancel_records_previous_status(self):
        order = advance(make_order(), "confirmed")
        order.cancel(reason="Customer request")
        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == "confirmed"
        assert event.reason == "Customer request"


class TestAssignedStatesInvariant:
    def test_confirmed_order_cannot_drop_pickup_address(self):
        order = advance(make_order(), "confirmed")
        with pytest.raises(ValidationError):
            order.pickup_address = None

    def test_assignment_requires_pickup_address(self):
        with pytest.raises(ValidationError):
            DeliveryAssignment(delivery_type="courier", pickup_address=None)

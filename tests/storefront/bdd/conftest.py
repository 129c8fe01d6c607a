"""Shared BDD fixtures and step definitions for order fulfillment."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then
from storefront.catalog.fake_adapter import FakeCatalog
from storefront.fulfillment.coordinator import FulfillmentCoordinator, WorkflowRegistry
from storefront.order.order import Order
from storefront.order.placement import PlaceOrder
from storefront.stores.fake_adapter import FakeStoreProfiles

STORE_ID = "store-001"


@pytest.fixture()
def fake_catalog():
    return FakeCatalog()


@pytest.fixture()
def coordinator(fake_catalog):
    return FulfillmentCoordinator(
        STORE_ID,
        catalog=fake_catalog,
        store_profiles=FakeStoreProfiles(),
        registry=WorkflowRegistry(),
    )


@pytest.fixture()
def context():
    """Mutable holder for what the When steps produce."""
    return {"order_id": None, "workflow": None, "error": None}

# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the catalog has {qty_a:d} of "{product_a}" and {qty_b:d} of "{product_b}"'))
def _(fake_catalog, qty_a, product_a, qty_b, product_b):
    fake_catalog.set_stock(product_a, qty_a)
    fake_catalog.set_stock(product_b, qty_b)


@given(parsers.cfparse('a received order for {qty_a:d} of "{product_a}" and {qty_b:d} of "{product_b}"'))
def _(context, qty_a, product_a, qty_b, product_b):
    items = [
        {"product_id": product_a, "product_name": product_a, "unit_price": 10.0, "quantity": qty_a},
        {"product_id": product_b, "product_name": product_b, "unit_price": 20.0, "quantity": qty_b},
    ]
    context["order_id"] = current_domain.process(
        PlaceOrder(
            store_id=STORE_ID,
            customer_name="Mwila Banda",
            customer_email="mwila@example.com",
            line_items=json.dumps(items),
            shipping_address="45 Independence Ave, Lusaka",
            total_amount=10.0 * qty_a + 20.0 * qty_b,
        ),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
def _order(context):
    return current_domain.repository_for(Order).get(context["order_id"])


@then(parsers.cfparse('the workflow is "{state}"'))
def _(context, state):
    assert context["workflow"].state.value == state


@then(parsers.cfparse('the order status is "{status}"'))
def _(context, status):
    assert _order(context).status == status


@then(parsers.cfparse('the order delivery type is "{delivery_type}"'))
def _(context, delivery_type):
    assert _order(context).delivery_type == delivery_type


@then(parsers.cfparse('the order pickup address is "{address}"'))
def _(context, address):
    assert _order(context).pickup_address == address


@then("the order has no pickup coordinates")
def _(context):
    order = _order(context)
    assert order.pickup_latitude is None
    assert order.pickup_longitude is None


@then("the request is rejected as invalid")
def _(context):
    assert isinstance(context["error"], ValidationError)

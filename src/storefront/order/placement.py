"""Order placement — command and handler.

Orders arrive from the storefront checkout already priced. Placement records
the snapshot as given and opens the order in RECEIVED state.
"""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order


@storefront.command(part_of="Order")
class PlaceOrder:
    store_id = Identifier(required=True)
    customer_id = Identifier()
    customer_name = String(required=True, max_length=255)
    customer_email = String(required=True, max_length=254)
    customer_phone = String(max_length=30)
    line_items = Text(required=True)  # JSON: list of line item dicts
    shipping_address = String(required=True, max_length=500)
    shipping_latitude = Float()
    shipping_longitude = Float()
    billing_address = String(max_length=500)
    payment_method = String(max_length=50)
    delivery_cost = Float(default=0.0)
    service_fee = Float(default=0.0)
    total_amount = Float(required=True)


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        line_items = json.loads(command.line_items) if isinstance(command.line_items, str) else command.line_items

        order = Order.place(
            store_id=command.store_id,
            customer_id=command.customer_id,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            customer_phone=command.customer_phone,
            line_items_data=line_items,
            shipping_address=command.shipping_address,
            shipping_latitude=command.shipping_latitude,
            shipping_longitude=command.shipping_longitude,
            billing_address=command.billing_address,
            payment_method=command.payment_method,
            delivery_cost=command.delivery_cost,
            service_fee=command.service_fee,
            total_amount=command.total_amount,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

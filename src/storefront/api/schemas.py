"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the Protean commands and
from the fulfillment workflow objects they are translated into.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class LineItemSchema(BaseModel):
    product_id: str | None = None
    product_name: str
    unit_price: float = Field(ge=0)
    image_url: str | None = None
    quantity: int = Field(ge=1)


class LineItemResponse(LineItemSchema):
    line_item_id: str


class PickupSchema(BaseModel):
    source: str
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    map_links: dict | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    customer_id: str | None = None
    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    line_items: list[LineItemSchema]
    shipping_address: str
    shipping_latitude: float | None = None
    shipping_longitude: float | None = None
    billing_address: str | None = None
    payment_method: str | None = None
    delivery_cost: float = Field(ge=0, default=0.0)
    service_fee: float = Field(ge=0, default=0.0)
    total_amount: float = Field(ge=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_name": "Mwila Banda",
                    "customer_email": "mwila@example.com",
                    "line_items": [
                        {"product_id": "prod-001", "product_name": "Chitenge", "unit_price": 120.0, "quantity": 2}
                    ],
                    "shipping_address": "45 Independence Ave, Lusaka",
                    "delivery_cost": 25.0,
                    "total_amount": 265.0,
                }
            ]
        }
    }


class UpdateStatusRequest(BaseModel):
    status: str
    expected_status: str | None = None
    tracking_number: str | None = None
    verification_code: str | None = None
    reason: str | None = None


class PickupRequest(BaseModel):
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    coordinates_text: str | None = None
    confirm: bool = True


class DevicePositionRequest(BaseModel):
    """What the vendor's device reported: a position, or a failure code."""

    latitude: float | None = None
    longitude: float | None = None
    error: str | None = None


class ChooseDeliveryRequest(BaseModel):
    delivery_type: str | None = None


class ChangeDeliveryTypeRequest(BaseModel):
    delivery_type: str
    expected_status: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class OrderResponse(BaseModel):
    order_id: str
    store_id: str
    status: str
    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    line_items: list[LineItemResponse]
    shipping_address: str
    delivery_type: str | None = None
    pickup_address: str | None = None
    pickup_latitude: float | None = None
    pickup_longitude: float | None = None
    tracking_number: str | None = None
    cancellation_reason: str | None = None
    subtotal: float
    delivery_cost: float
    service_fee: float
    total_amount: float


class WorkflowResponse(BaseModel):
    workflow_id: str
    order_id: str
    store_id: str
    state: str
    active: bool
    aborted: bool
    order_status: str
    stock: dict | None = None
    offending_items: list[dict] = []
    pickup: PickupSchema
    delivery_assignment: dict | None = None
    error: dict | None = None
    history: list[dict] = []


class StatusUpdateResponse(BaseModel):
    """A direct transition returns the stored order; confirmation returns the workflow it started."""

    order: OrderResponse | None = None
    workflow: WorkflowResponse | None = None

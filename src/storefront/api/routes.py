"""FastAPI routes for the Storefront domain — vendor order management."""

import json

from fastapi import APIRouter
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    ChangeDeliveryTypeRequest,
    ChooseDeliveryRequest,
    DevicePositionRequest,
    LineItemResponse,
    OrderIdResponse,
    OrderResponse,
    PickupRequest,
    PlaceOrderRequest,
    StatusUpdateResponse,
    UpdateStatusRequest,
    WorkflowResponse,
)
from storefront.fulfillment.coordinator import FulfillmentCoordinator
from storefront.fulfillment.workflow import FulfillmentWorkflow
from storefront.geolocation.reported import ReportedPosition
from storefront.order.placement import PlaceOrder
from storefront.persistence import get_order_store

order_router = APIRouter(prefix="/stores/{store_id}/orders", tags=["orders"])


def _order_response(order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        store_id=str(order.store_id),
        status=order.status,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        line_items=[
            LineItemResponse(
                line_item_id=str(item.id),
                product_id=str(item.product_id) if item.product_id else None,
                product_name=item.product_name,
                unit_price=item.unit_price,
                image_url=item.image_url,
                quantity=item.quantity,
            )
            for item in order.line_items
        ],
        shipping_address=order.shipping_address,
        delivery_type=order.delivery_type,
        pickup_address=order.pickup_address,
        pickup_latitude=order.pickup_latitude,
        pickup_longitude=order.pickup_longitude,
        tracking_number=order.tracking_number,
        cancellation_reason=order.cancellation_reason,
        subtotal=order.subtotal,
        delivery_cost=order.delivery_cost,
        service_fee=order.service_fee,
        total_amount=order.total_amount,
    )


def _workflow_response(workflow: FulfillmentWorkflow) -> WorkflowResponse:
    return WorkflowResponse(**workflow.progress())


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(store_id: str, body: PlaceOrderRequest) -> OrderIdResponse:
    command = PlaceOrder(
        store_id=store_id,
        customer_id=body.customer_id,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
        line_items=json.dumps([item.model_dump() for item in body.line_items]),
        shipping_address=body.shipping_address,
        shipping_latitude=body.shipping_latitude,
        shipping_longitude=body.shipping_longitude,
        billing_address=body.billing_address,
        payment_method=body.payment_method,
        delivery_cost=body.delivery_cost,
        service_fee=body.service_fee,
        total_amount=body.total_amount,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(store_id: str, order_id: str) -> OrderResponse:
    order = await get_order_store().get_order(order_id, store_id)
    return _order_response(order)


@order_router.put("/{order_id}/status", response_model=StatusUpdateResponse)
async def update_status(store_id: str, order_id: str, body: UpdateStatusRequest) -> StatusUpdateResponse:
    """Apply a direct status transition. Confirming starts the fulfillment workflow instead."""
    result = await FulfillmentCoordinator(store_id).update_status(
        order_id,
        body.status,
        expected_status=body.expected_status,
        tracking_number=body.tracking_number,
        verification_code=body.verification_code,
        reason=body.reason,
    )
    if isinstance(result, FulfillmentWorkflow):
        return StatusUpdateResponse(workflow=_workflow_response(result))
    return StatusUpdateResponse(order=_order_response(result))


@order_router.put("/{order_id}/delivery-type", response_model=OrderResponse)
async def change_delivery_type(store_id: str, order_id: str, body: ChangeDeliveryTypeRequest) -> OrderResponse:
    order = await FulfillmentCoordinator(store_id).change_delivery_type(
        order_id,
        body.delivery_type,
        expected_status=body.expected_status,
    )
    return _order_response(order)


# ---------------------------------------------------------------------------
# Fulfillment workflow
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/process", response_model=WorkflowResponse)
async def process_order(store_id: str, order_id: str) -> WorkflowResponse:
    workflow = await FulfillmentCoordinator(store_id).process_order(order_id)
    return _workflow_response(workflow)


@order_router.get("/{order_id}/workflow", response_model=WorkflowResponse)
async def get_workflow(store_id: str, order_id: str) -> WorkflowResponse:
    workflow = FulfillmentCoordinator(store_id).workflow_for(order_id)
    if workflow is None:
        raise ObjectNotFoundError(f"No fulfillment workflow for order {order_id}")
    return _workflow_response(workflow)


@order_router.put("/{order_id}/workflow/pickup", response_model=WorkflowResponse)
async def edit_pickup(store_id: str, order_id: str, body: PickupRequest) -> WorkflowResponse:
    """Edit the pickup point; with ``confirm`` set, also move on to the delivery choice."""
    coordinator = FulfillmentCoordinator(store_id)
    edits = body.model_dump(exclude={"confirm"}, exclude_none=True)
    if body.confirm:
        workflow = coordinator.confirm_pickup(order_id, **edits)
    else:
        workflow = coordinator.edit_pickup(order_id, **edits)
    return _workflow_response(workflow)


@order_router.post("/{order_id}/workflow/device-location", response_model=WorkflowResponse)
async def report_device_location(store_id: str, order_id: str, body: DevicePositionRequest) -> WorkflowResponse:
    position = ReportedPosition(latitude=body.latitude, longitude=body.longitude, error=body.error)
    workflow = await FulfillmentCoordinator(store_id).use_device_location(order_id, position)
    return _workflow_response(workflow)


@order_router.put("/{order_id}/workflow/delivery", response_model=WorkflowResponse)
async def choose_delivery(store_id: str, order_id: str, body: ChooseDeliveryRequest) -> WorkflowResponse:
    workflow = await FulfillmentCoordinator(store_id).choose_delivery(order_id, body.delivery_type)
    return _workflow_response(workflow)


@order_router.post("/{order_id}/workflow/abort", response_model=WorkflowResponse)
async def abort_workflow(store_id: str, order_id: str) -> WorkflowResponse:
    workflow = FulfillmentCoordinator(store_id).abort(order_id)
    return _workflow_response(workflow)

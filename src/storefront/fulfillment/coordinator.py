"""Fulfillment coordinator — the entry point for vendor actions on orders.

The coordinator owns the re-entrancy guard: at most one active workflow per
order id. A second request while one is active is rejected immediately
rather than queued.
"""

import structlog
from protean.exceptions import ObjectNotFoundError

from storefront.catalog import get_catalog
from storefront.catalog.port import CatalogPort
from storefront.errors import WorkflowInProgressError
from storefront.fulfillment.delivery import DeliveryAssignmentResolver
from storefront.fulfillment.pickup import PickupLocationResolver
from storefront.fulfillment.stock import StockVerifier
from storefront.fulfillment.workflow import FulfillmentWorkflow
from storefront.geolocation import get_geolocation
from storefront.geolocation.port import GeolocationPort
from storefront.order.order import OrderStatus, coerce_status
from storefront.persistence import get_order_store
from storefront.persistence.port import OrderStorePort
from storefront.stores import get_store_profiles
from storefront.stores.port import StoreProfilePort

logger = structlog.get_logger(__name__)


class WorkflowRegistry:
    """In-memory map of order id to its active workflow.

    Finished workflows are kept as the latest run for display until the next
    run of the same order replaces them.
    """

    def __init__(self):
        self._active: dict[str, FulfillmentWorkflow | None] = {}
        self._latest: dict[str, FulfillmentWorkflow] = {}

    def reserve(self, order_id: str) -> None:
        order_id = str(order_id)
        if order_id in self._active:
            logger.warning("Fulfillment already in progress", order_id=order_id)
            raise WorkflowInProgressError(order_id)
        self._active[order_id] = None

    def attach(self, workflow: FulfillmentWorkflow) -> None:
        self._active[workflow.order_id] = workflow
        self._latest[workflow.order_id] = workflow

    def release(self, order_id: str) -> None:
        self._active.pop(str(order_id), None)

    def is_active(self, order_id: str) -> bool:
        return str(order_id) in self._active

    def active(self, order_id: str) -> FulfillmentWorkflow | None:
        return self._active.get(str(order_id))

    def latest(self, order_id: str) -> FulfillmentWorkflow | None:
        return self._latest.get(str(order_id))

    def clear(self) -> None:
        self._active.clear()
        self._latest.clear()


active_workflows = WorkflowRegistry()


class FulfillmentCoordinator:
    """Vendor-facing operations for the orders of one store."""

    def __init__(
        self,
        store_id: str,
        catalog: CatalogPort | None = None,
        store_profiles: StoreProfilePort | None = None,
        geolocation: GeolocationPort | None = None,
        order_store: OrderStorePort | None = None,
        registry: WorkflowRegistry | None = None,
    ):
        self.store_id = str(store_id)
        self.catalog = catalog or get_catalog()
        self.store_profiles = store_profiles or get_store_profiles()
        self.geolocation = geolocation or get_geolocation()
        self.order_store = order_store or get_order_store()
        self.registry = registry if registry is not None else active_workflows
        self.delivery = DeliveryAssignmentResolver()

    async def process_order(self, order_id: str) -> FulfillmentWorkflow:
        """Start a confirmation run for a received order.

        Returns the workflow once stock has been checked: BLOCKED, FAILED or
        AWAITING_PICKUP_LOCATION.

        Raises:
            WorkflowInProgressError: a run for this order is already active.
            ValidationError: the order is not in ``received``.
            ObjectNotFoundError: no such order in this store.
        """
        order_id = str(order_id)
        # Reserve before the first await so a concurrent call sees the lock
        self.registry.reserve(order_id)
        try:
            order = await self.order_store.get_order(order_id, self.store_id)
        except Exception:
            self.registry.release(order_id)
            raise

        workflow = FulfillmentWorkflow(
            order,
            order_store=self.order_store,
            verifier=StockVerifier(self.catalog),
            pickup=PickupLocationResolver(self.store_id, self.store_profiles, self.geolocation),
            delivery=self.delivery,
            on_release=lambda wf: self.registry.release(wf.order_id),
        )
        self.registry.attach(workflow)
        logger.info("Fulfillment started", order_id=order_id, store_id=self.store_id, workflow_id=workflow.workflow_id)
        return await workflow.start()

    def workflow_for(self, order_id: str) -> FulfillmentWorkflow | None:
        """The active run for an order, else its most recent finished one."""
        workflow = self.registry.active(order_id) or self.registry.latest(order_id)
        if workflow is not None and workflow.store_id != self.store_id:
            return None
        return workflow

    def _active_workflow(self, order_id: str) -> FulfillmentWorkflow:
        workflow = self.registry.active(order_id)
        if workflow is None or workflow.store_id != self.store_id:
            raise ObjectNotFoundError(f"No active fulfillment for order {order_id}")
        return workflow

    def edit_pickup(self, order_id: str, **edits) -> FulfillmentWorkflow:
        workflow = self._active_workflow(order_id)
        workflow.edit_pickup(**edits)
        return workflow

    async def use_device_location(self, order_id: str, geolocation: GeolocationPort | None = None):
        workflow = self._active_workflow(order_id)
        await workflow.use_device_location(geolocation)
        return workflow

    def confirm_pickup(self, order_id: str, **edits) -> FulfillmentWorkflow:
        return self._active_workflow(order_id).confirm_pickup(**edits)

    async def choose_delivery(self, order_id: str, delivery_type) -> FulfillmentWorkflow:
        return await self._active_workflow(order_id).choose_delivery(delivery_type)

    def abort(self, order_id: str) -> FulfillmentWorkflow:
        return self._active_workflow(order_id).abort()

    async def update_status(
        self,
        order_id: str,
        new_status,
        expected_status: str | None = None,
        tracking_number: str | None = None,
        verification_code: str | None = None,
        reason: str | None = None,
    ):
        """Apply a direct status transition.

        Confirmation needs stock, pickup and delivery decisions, so a request
        for ``confirmed`` starts a workflow and returns it. Every other target
        goes straight to the order store and returns the stored order.
        """
        target = coerce_status(new_status)
        if target == OrderStatus.CONFIRMED:
            return await self.process_order(order_id)

        order = await self.order_store.update_order_status(
            str(order_id),
            self.store_id,
            target.value,
            expected_status=expected_status,
            tracking_number=tracking_number,
            verification_code=verification_code,
            reason=reason,
        )
        logger.info("Order status updated", order_id=str(order_id), store_id=self.store_id, status=order.status)
        return order

    async def change_delivery_type(self, order_id: str, delivery_type, expected_status: str | None = None):
        return await self.order_store.change_delivery_type(
            str(order_id),
            self.store_id,
            delivery_type,
            expected_status=expected_status,
        )

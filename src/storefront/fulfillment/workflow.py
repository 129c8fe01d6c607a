"""Fulfillment workflow — takes one received order through to confirmation.

State Machine (8 states):
    IDLE → CHECKING_STOCK → AWAITING_PICKUP_LOCATION → AWAITING_DELIVERY_CHOICE
         → COMMITTING → DONE
    CHECKING_STOCK → BLOCKED | FAILED
    COMMITTING → FAILED
    any non-final state → IDLE on abort

BLOCKED, DONE and FAILED end the run. Nothing is written to the order store
before COMMITTING, so aborting or blocking leaves the order as it was.
"""

import asyncio
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

import structlog

from storefront.errors import (
    CommitCancelledError,
    InsufficientStockError,
    TransportError,
    ValidationError,
    WorkflowStateError,
)
from storefront.fulfillment.delivery import DeliveryAssignmentResolver
from storefront.fulfillment.pickup import PickupLocationResolver
from storefront.fulfillment.stock import StockVerifier
from storefront.order.order import OrderStatus

logger = structlog.get_logger(__name__)


class WorkflowState(Enum):
    IDLE = "idle"
    CHECKING_STOCK = "checking_stock"
    BLOCKED = "blocked"
    AWAITING_PICKUP_LOCATION = "awaiting_pickup_location"
    AWAITING_DELIVERY_CHOICE = "awaiting_delivery_choice"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    WorkflowState.IDLE: {WorkflowState.CHECKING_STOCK},
    WorkflowState.CHECKING_STOCK: {
        WorkflowState.BLOCKED,
        WorkflowState.AWAITING_PICKUP_LOCATION,
        WorkflowState.FAILED,
        WorkflowState.IDLE,
    },
    WorkflowState.AWAITING_PICKUP_LOCATION: {
        WorkflowState.AWAITING_DELIVERY_CHOICE,
        WorkflowState.IDLE,
    },
    WorkflowState.AWAITING_DELIVERY_CHOICE: {
        WorkflowState.COMMITTING,
        WorkflowState.IDLE,
    },
    WorkflowState.COMMITTING: {WorkflowState.DONE, WorkflowState.FAILED},
    WorkflowState.BLOCKED: set(),  # Terminal
    WorkflowState.DONE: set(),  # Terminal
    WorkflowState.FAILED: set(),  # Terminal
}

FINAL_STATES = frozenset({WorkflowState.BLOCKED, WorkflowState.DONE, WorkflowState.FAILED})


class FulfillmentWorkflow:
    """One run of the confirmation flow for one order.

    Collaborator errors are never hidden: insufficiency and failures end the
    run in BLOCKED or FAILED with the error kept on ``error`` for display.
    Misuse (a step requested in the wrong state) raises ``WorkflowStateError``.
    """

    def __init__(
        self,
        order,
        order_store,
        verifier: StockVerifier,
        pickup: PickupLocationResolver,
        delivery: DeliveryAssignmentResolver | None = None,
        on_release=None,
    ):
        self.workflow_id = str(uuid4())
        self.order = order
        self.order_id = str(order.id)
        self.store_id = str(order.store_id)
        self.order_store = order_store
        self.verifier = verifier
        self.pickup = pickup
        self.delivery = delivery or DeliveryAssignmentResolver()

        self.state = WorkflowState.IDLE
        self.aborted = False
        self.stock = None
        self.pickup_location = None
        self.assignment = None
        self.error: Exception | None = None
        self.history: list[dict] = [{"state": self.state.value, "at": datetime.now(UTC)}]

        self._on_release = on_release
        self._released = False
        self._commit_task: asyncio.Task | None = None

    # -------------------------------------------------------------------
    # State helpers
    # -------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return not self._released

    @property
    def is_final(self) -> bool:
        return self.state in FINAL_STATES

    def _require(self, state: WorkflowState, action: str) -> None:
        if self.state != state:
            raise WorkflowStateError(self.state, action)

    def _transition(self, target: WorkflowState) -> None:
        if target not in _VALID_TRANSITIONS[self.state]:
            raise WorkflowStateError(self.state, f"move to {target.value}")

        previous = self.state
        self.state = target
        self.history.append({"state": target.value, "at": datetime.now(UTC)})
        logger.info(
            "Fulfillment workflow transition",
            workflow_id=self.workflow_id,
            order_id=self.order_id,
            store_id=self.store_id,
            from_state=previous.value,
            to_state=target.value,
        )

        if target in FINAL_STATES or target == WorkflowState.IDLE:
            self._release()

    def _fail(self, error: Exception) -> None:
        self.error = error
        logger.error(
            "Fulfillment workflow failed",
            workflow_id=self.workflow_id,
            order_id=self.order_id,
            error_type=type(error).__name__,
            error=str(error),
        )
        self._transition(WorkflowState.FAILED)

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._on_release is not None:
            self._on_release(self)

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    async def start(self) -> "FulfillmentWorkflow":
        """Check stock and, if every line item can be served, open pickup editing."""
        self._require(WorkflowState.IDLE, "check stock")
        if self.aborted:
            raise WorkflowStateError(self.state, "restart an aborted run")
        if self.order.status != OrderStatus.RECEIVED.value:
            self._release()
            raise ValidationError(
                {"status": [f"Only received orders can be processed; order is {self.order.status}"]}
            )

        self._transition(WorkflowState.CHECKING_STOCK)
        try:
            snapshot = await self.verifier.verify(self.order.line_items)
            if snapshot.fulfillable:
                await self.pickup.load_default()
        except TransportError as exc:
            if self.state == WorkflowState.CHECKING_STOCK:
                self._fail(exc)
            return self
        except (Exception, asyncio.CancelledError) as exc:
            if self.state == WorkflowState.CHECKING_STOCK:
                self._fail(exc)
            raise

        # Aborted while a lookup was in flight
        if self.state != WorkflowState.CHECKING_STOCK:
            return self

        self.stock = snapshot
        if not snapshot.fulfillable:
            self.error = InsufficientStockError(snapshot.offending)
            logger.info(
                "Order blocked on stock",
                order_id=self.order_id,
                offending=[line.product_name for line in snapshot.offending],
            )
            self._transition(WorkflowState.BLOCKED)
            return self

        self._transition(WorkflowState.AWAITING_PICKUP_LOCATION)
        return self

    def edit_pickup(
        self,
        address: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        coordinates_text: str | None = None,
    ) -> None:
        """Apply manual edits to the pickup point. Omitted arguments are left as they are."""
        self._require(WorkflowState.AWAITING_PICKUP_LOCATION, "edit the pickup location")
        if address is not None:
            self.pickup.edit_address(address)
        if coordinates_text is not None:
            self.pickup.edit_coordinates_text(coordinates_text)
        elif latitude is not None or longitude is not None:
            self.pickup.edit_coordinates(latitude, longitude)

    async def use_device_location(self, geolocation=None):
        """Fill the pickup point from the device. A ``LocationError`` leaves the state unchanged."""
        self._require(WorkflowState.AWAITING_PICKUP_LOCATION, "use the device location")
        return await self.pickup.use_device_location(geolocation)

    def confirm_pickup(self, **edits) -> "FulfillmentWorkflow":
        self.edit_pickup(**edits)
        self.pickup_location = self.pickup.resolve()
        self._transition(WorkflowState.AWAITING_DELIVERY_CHOICE)
        return self

    async def choose_delivery(self, delivery_type) -> "FulfillmentWorkflow":
        """Seal the delivery assignment and commit the confirmation.

        An invalid choice raises ``ValidationError`` and leaves the workflow
        waiting for a valid one. Once committing, the outcome is DONE or FAILED.
        """
        self._require(WorkflowState.AWAITING_DELIVERY_CHOICE, "choose a delivery type")
        assignment = self.delivery.resolve(self.order, delivery_type, self.pickup_location)

        self.assignment = assignment
        self._transition(WorkflowState.COMMITTING)
        self._commit_task = asyncio.ensure_future(
            self.order_store.update_order_status(
                self.order_id,
                self.store_id,
                OrderStatus.CONFIRMED.value,
                expected_status=OrderStatus.RECEIVED.value,
                delivery_fields=assignment.as_fields(),
            )
        )
        try:
            order = await self._commit_task
        except asyncio.CancelledError:
            self._fail(CommitCancelledError(self.order_id))
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            return self
        except Exception as exc:
            self._fail(exc)
            return self
        finally:
            self._commit_task = None

        self.order = order
        self._transition(WorkflowState.DONE)
        return self

    def abort(self) -> "FulfillmentWorkflow":
        """Abandon the run.

        Before committing this returns the workflow to IDLE without any write.
        While committing, the in-flight write is cancelled and the run ends in
        FAILED, since the store may or may not have applied it.
        """
        if self.is_final:
            raise WorkflowStateError(self.state, "abort")

        if self.state == WorkflowState.COMMITTING:
            if self._commit_task is not None:
                self._commit_task.cancel()
            return self

        self.aborted = True
        logger.info("Fulfillment workflow aborted", workflow_id=self.workflow_id, order_id=self.order_id)
        if self.state == WorkflowState.IDLE:
            self._release()
        else:
            self._transition(WorkflowState.IDLE)
        return self

    # -------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------
    def progress(self) -> dict:
        error = None
        if self.error is not None:
            error = {"type": type(self.error).__name__, "message": str(self.error)}
        return {
            "workflow_id": self.workflow_id,
            "order_id": self.order_id,
            "store_id": self.store_id,
            "state": self.state.value,
            "active": self.is_active,
            "aborted": self.aborted,
            "order_status": self.order.status,
            "stock": self.stock.to_dict() if self.stock else None,
            "offending_items": [line.to_dict() for line in self.stock.offending] if self.stock else [],
            "pickup": self.pickup.to_dict(),
            "delivery_assignment": self.assignment.as_fields() if self.assignment else None,
            "error": error,
            "history": [{"state": entry["state"], "at": entry["at"].isoformat()} for entry in self.history],
        }

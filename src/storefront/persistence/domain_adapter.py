"""Order store backed by the storefront domain.

Writes are dispatched as guard commands and processed synchronously inside a
Protean unit of work; the order is then re-read so the caller always gets the
stored record back.
"""

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from storefront.errors import ConcurrencyConflict
from storefront.order.transitions import ChangeDeliveryType, UpdateOrderStatus, load_store_order
from storefront.persistence.port import OrderStorePort

logger = structlog.get_logger(__name__)


class DomainOrderStore(OrderStorePort):
    async def get_order(self, order_id: str, store_id: str):
        _, order = load_store_order(order_id, store_id)
        return order

    async def update_order_status(
        self,
        order_id: str,
        store_id: str,
        new_status: str,
        expected_status: str | None = None,
        delivery_fields: dict | None = None,
        tracking_number: str | None = None,
        verification_code: str | None = None,
        reason: str | None = None,
    ):
        command = UpdateOrderStatus(
            order_id=order_id,
            store_id=store_id,
            status=new_status,
            expected_status=expected_status,
            tracking_number=tracking_number,
            verification_code=verification_code,
            reason=reason,
            **(delivery_fields or {}),
        )
        self._dispatch(command)
        return await self.get_order(order_id, store_id)

    async def change_delivery_type(
        self,
        order_id: str,
        store_id: str,
        delivery_type: str,
        expected_status: str | None = None,
    ):
        command = ChangeDeliveryType(
            order_id=order_id,
            store_id=store_id,
            delivery_type=delivery_type,
            expected_status=expected_status,
        )
        self._dispatch(command)
        return await self.get_order(order_id, store_id)

    def _dispatch(self, command):
        try:
            current_domain.process(command, asynchronous=False)
        except ExpectedVersionError as exc:
            logger.warning(
                "Concurrent write detected on order",
                order_id=str(command.order_id),
                error=str(exc),
            )
            raise ConcurrencyConflict(str(command.order_id)) from exc

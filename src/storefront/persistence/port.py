"""Order store port — the single write path for order status and delivery fields."""

from abc import ABC, abstractmethod


class OrderStorePort(ABC):
    """Abstract interface for order persistence adapters.

    Every write returns the authoritative order as stored; callers replace
    their copy with it instead of patching.
    """

    @abstractmethod
    async def get_order(self, order_id: str, store_id: str):
        """Read one order of the given store.

        Raises:
            ObjectNotFoundError: no such order for this store.
        """
        ...

    @abstractmethod
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
        """Conditionally move an order to ``new_status``.

        Raises:
            ValidationError: illegal transition or missing field.
            ConcurrencyConflict: the stored status no longer matches
                ``expected_status`` or a concurrent write won.
            TransportError: the store could not be reached.
        """
        ...

    @abstractmethod
    async def change_delivery_type(
        self,
        order_id: str,
        store_id: str,
        delivery_type: str,
        expected_status: str | None = None,
    ):
        """Switch the delivery type of a confirmed order."""
        ...

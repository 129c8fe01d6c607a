"""Store profile port — abstract interface for a store's saved pickup point."""

from abc import ABC, abstractmethod


class StoreProfilePort(ABC):
    """Abstract interface for store profile adapters."""

    @abstractmethod
    async def get_default_pickup_location(self, store_id: str) -> dict | None:
        """Fetch the pickup location saved on the store profile.

        Returns:
            dict with keys: address, latitude (optional), longitude (optional),
            or None when the store has not saved one.

        Raises:
            TransportError: the lookup itself failed.
        """
        ...

"""Catalog port — abstract interface for live stock lookups.

The fulfillment code programs against the port; adapters are swapped via
configuration.
"""

from abc import ABC, abstractmethod


class CatalogPort(ABC):
    """Abstract interface for catalog adapters."""

    @abstractmethod
    async def get_stock_levels(self, product_ids: list[str]) -> dict[str, int]:
        """Fetch current stock for a batch of products in one call.

        Returns:
            dict mapping product id to available quantity. Products that no
            longer exist are absent from the result.

        Raises:
            TransportError: the lookup itself failed.
        """
        ...

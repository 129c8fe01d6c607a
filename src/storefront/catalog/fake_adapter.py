"""Fake catalog adapter — in-memory stock levels for testing and development."""

from storefront.catalog.port import CatalogPort
from storefront.errors import TransportError


class FakeCatalog(CatalogPort):
    """Catalog backed by a dict. Succeeds by default."""

    def __init__(self, stock: dict | None = None):
        self.stock = dict(stock or {})
        self.should_succeed = True
        self.failure_reason = "Catalog unavailable"
        self.requests: list[list[str]] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Catalog unavailable"):
        """Configure the fake catalog behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def set_stock(self, product_id: str, quantity: int):
        self.stock[str(product_id)] = quantity

    def remove_product(self, product_id: str):
        self.stock.pop(str(product_id), None)

    async def get_stock_levels(self, product_ids: list[str]) -> dict[str, int]:
        self.requests.append(list(product_ids))
        if not self.should_succeed:
            raise TransportError(self.failure_reason, service="catalog")
        return {pid: self.stock[pid] for pid in product_ids if pid in self.stock}

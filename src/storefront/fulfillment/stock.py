"""Stock verification — checks an order's line items against live inventory.

Read-only: one batched catalog lookup per verification, nothing written.
The result is an ephemeral snapshot that is never persisted.
"""

from dataclasses import dataclass

import structlog

from storefront.catalog import get_catalog
from storefront.catalog.port import CatalogPort
from storefront.errors import InsufficientStockError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    """Stock position of one line item at verification time.

    ``requested`` is what the whole order asks of the product, so two line
    items for the same product are judged together.
    """

    line_item_id: str
    product_id: str | None
    product_name: str
    quantity: int
    requested: int
    available: int
    product_exists: bool

    @property
    def sufficient(self) -> bool:
        return self.product_exists and self.requested <= self.available

    def to_dict(self) -> dict:
        return {
            "line_item_id": self.line_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "available": self.available,
            "sufficient": self.sufficient,
        }


@dataclass(frozen=True)
class StockSnapshot:
    lines: tuple[StockLine, ...]

    @property
    def fulfillable(self) -> bool:
        return all(line.sufficient for line in self.lines)

    @property
    def offending(self) -> list[StockLine]:
        return [line for line in self.lines if not line.sufficient]

    def raise_for_insufficiency(self) -> None:
        if not self.fulfillable:
            raise InsufficientStockError(self.offending)

    def to_dict(self) -> dict:
        return {
            "fulfillable": self.fulfillable,
            "lines": [line.to_dict() for line in self.lines],
        }


class StockVerifier:
    """Decides whether every line item of an order can be served from stock.

    A line item whose product is gone from the catalogue fails closed. Lookup
    failures propagate as ``TransportError`` and are never read as "out of
    stock".
    """

    def __init__(self, catalog: CatalogPort | None = None):
        self.catalog = catalog or get_catalog()

    async def verify(self, line_items) -> StockSnapshot:
        product_ids = []
        requested_by_product: dict[str, int] = {}
        for item in line_items:
            if item.product_id is None:
                continue
            product_id = str(item.product_id)
            if product_id not in requested_by_product:
                product_ids.append(product_id)
                requested_by_product[product_id] = 0
            requested_by_product[product_id] += item.quantity

        levels = await self.catalog.get_stock_levels(product_ids) if product_ids else {}

        lines = []
        for item in line_items:
            product_id = str(item.product_id) if item.product_id is not None else None
            exists = product_id is not None and product_id in levels
            lines.append(
                StockLine(
                    line_item_id=str(item.id),
                    product_id=product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    requested=requested_by_product.get(product_id, item.quantity),
                    available=levels.get(product_id, 0) if exists else 0,
                    product_exists=exists,
                )
            )

        snapshot = StockSnapshot(lines=tuple(lines))
        logger.info(
            "Stock verified",
            line_count=len(lines),
            fulfillable=snapshot.fulfillable,
            offending=[line.product_name for line in snapshot.offending],
        )
        return snapshot

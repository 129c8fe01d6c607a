"""HTTP catalog adapter — batched stock lookup against the catalog service.

Expects ``GET /products/stock?ids=a,b,c`` to answer with
``{"stock": {"<product_id>": <available quantity>, ...}}``.
"""

import httpx

from storefront.catalog.port import CatalogPort
from storefront.utils.http import build_client, fetch_json


class HttpCatalog(CatalogPort):
    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url
        self._transport = transport

    async def get_stock_levels(self, product_ids: list[str]) -> dict[str, int]:
        if not product_ids:
            return {}

        async with build_client(self.base_url, self._transport) as client:
            payload = await fetch_json(
                client,
                "/products/stock",
                service="catalog",
                params={"ids": ",".join(product_ids)},
            )

        levels = (payload or {}).get("stock") or {}
        return {pid: int(levels[pid]) for pid in product_ids if levels.get(pid) is not None}

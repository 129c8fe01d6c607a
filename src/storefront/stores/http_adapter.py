"""HTTP store profile adapter.

Expects ``GET /stores/<store_id>/pickup-location`` to answer with
``{"address": ..., "latitude": ..., "longitude": ...}``; a 404 means the
store has no saved pickup location.
"""

import httpx

from storefront.stores.port import StoreProfilePort
from storefront.utils.http import build_client, fetch_json


class HttpStoreProfiles(StoreProfilePort):
    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url
        self._transport = transport

    async def get_default_pickup_location(self, store_id: str) -> dict | None:
        async with build_client(self.base_url, self._transport) as client:
            payload = await fetch_json(
                client,
                f"/stores/{store_id}/pickup-location",
                service="store_profile",
                allow_missing=True,
            )

        if not payload or not payload.get("address"):
            return None
        return {
            "address": payload["address"],
            "latitude": payload.get("latitude"),
            "longitude": payload.get("longitude"),
        }

"""Fake store profile adapter — in-memory pickup defaults for testing and development."""

from storefront.errors import TransportError
from storefront.stores.port import StoreProfilePort


class FakeStoreProfiles(StoreProfilePort):
    def __init__(self):
        self.pickup_locations: dict[str, dict] = {}
        self.should_succeed = True
        self.failure_reason = "Store profile service unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Store profile service unavailable"):
        """Configure the fake store profile behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def set_default_pickup_location(self, store_id, address, latitude=None, longitude=None):
        self.pickup_locations[str(store_id)] = {
            "address": address,
            "latitude": latitude,
            "longitude": longitude,
        }

    async def get_default_pickup_location(self, store_id: str) -> dict | None:
        if not self.should_succeed:
            raise TransportError(self.failure_reason, service="store_profile")
        location = self.pickup_locations.get(str(store_id))
        return dict(location) if location else None

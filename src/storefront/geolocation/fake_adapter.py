"""Fake geolocation adapter — a fixed position or a scripted failure."""

from storefront.errors import LocationError, LocationFailure
from storefront.geolocation.port import GeolocationPort


class FakeGeolocation(GeolocationPort):
    def __init__(self, latitude: float = -15.4167, longitude: float = 28.2833):
        self.latitude = latitude
        self.longitude = longitude
        self.failure: LocationFailure | None = None
        self.request_count = 0

    def configure(self, latitude=None, longitude=None, failure: LocationFailure | None = None):
        """Configure the position returned, or the failure raised, by the next requests."""
        if latitude is not None:
            self.latitude = latitude
        if longitude is not None:
            self.longitude = longitude
        self.failure = failure

    async def request_current_position(self) -> dict:
        self.request_count += 1
        if self.failure is not None:
            raise LocationError(self.failure)
        return {"latitude": self.latitude, "longitude": self.longitude}

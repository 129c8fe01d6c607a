"""Client-reported geolocation adapter.

The position is taken by the vendor's device and sent along with the request.
This adapter replays what the device reported: a position, or the failure
code the device's location API gave back.
"""

from storefront.errors import LocationError, LocationFailure, ValidationError
from storefront.geolocation.port import GeolocationPort


class ReportedPosition(GeolocationPort):
    def __init__(self, latitude: float | None = None, longitude: float | None = None, error: str | None = None):
        if error is None and (latitude is None or longitude is None):
            raise ValidationError({"position": ["A reported position needs latitude and longitude, or an error code"]})
        if error is not None:
            try:
                LocationFailure(error)
            except ValueError:
                raise ValidationError({"error": [f"Unknown geolocation error: {error!r}"]}) from None
        self.latitude = latitude
        self.longitude = longitude
        self.error = error

    async def request_current_position(self) -> dict:
        if self.error is not None:
            raise LocationError(LocationFailure(self.error))
        return {"latitude": self.latitude, "longitude": self.longitude}

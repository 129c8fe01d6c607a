"""Pickup location resolution for one fulfillment session.

The pickup point shown to the vendor starts from the store's saved default.
Asking the device for its position replaces that suggestion, and anything the
vendor types by hand overrides both. The device is only asked on an explicit
request; a failed request leaves the current value untouched.
"""

from enum import Enum

import structlog

from storefront.errors import LocationError, LocationFailure, TransportError, ValidationError
from storefront.geolocation import get_geolocation
from storefront.geolocation.port import GeolocationPort
from storefront.order.order import GPS_ADDRESS_LABEL, PickupLocation
from storefront.stores import get_store_profiles
from storefront.stores.port import StoreProfilePort

logger = structlog.get_logger(__name__)

MAX_ADDRESS_LENGTH = 500


class PickupSource(Enum):
    NONE = "none"
    STORE_DEFAULT = "store_default"
    DEVICE = "device"
    MANUAL = "manual"


def _check_range(latitude: float, longitude: float) -> bool:
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def _coordinate_pair(latitude, longitude) -> tuple[float, float] | None:
    """Both values as floats when they form a valid pair, else None."""
    if latitude is None or longitude is None:
        return None
    try:
        latitude, longitude = float(latitude), float(longitude)
    except (TypeError, ValueError):
        return None
    if not _check_range(latitude, longitude):
        return None
    return latitude, longitude


def parse_coordinates(text: str | None) -> tuple[float, float] | None:
    """Parse ``"lat, lng"`` into a coordinate pair.

    Returns None for blank, malformed or out-of-range input.
    """
    if not text or not text.strip():
        return None
    parts = [part.strip() for part in text.split(",")]
    if len(parts) != 2:
        return None
    try:
        latitude, longitude = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if not _check_range(latitude, longitude):
        return None
    return latitude, longitude


class PickupLocationResolver:
    """Holds the pickup point being edited during one workflow.

    Resolution order, per field:
        address:     manual edit, then device label, then store default
        coordinates: manual edit, then device fix, then store default
    """

    def __init__(
        self,
        store_id: str,
        store_profiles: StoreProfilePort | None = None,
        geolocation: GeolocationPort | None = None,
    ):
        self.store_id = str(store_id)
        self.store_profiles = store_profiles or get_store_profiles()
        self.geolocation = geolocation or get_geolocation()

        self._default: dict | None = None
        self._device: dict | None = None
        self._manual_address: str | None = None
        self._manual_coordinates: tuple[float, float] | None = None
        self._coordinates_edited = False
        self.last_error: Exception | None = None

    async def load_default(self) -> PickupLocation | None:
        """Seed the session from the store's saved pickup point.

        A failed lookup is recorded on ``last_error`` and leaves the session
        empty; the vendor can still enter the address by hand.
        """
        try:
            record = await self.store_profiles.get_default_pickup_location(self.store_id)
        except TransportError as exc:
            self.last_error = exc
            logger.warning(
                "Store default pickup location unavailable",
                store_id=self.store_id,
                error=str(exc),
            )
            return self.current()

        self._default = self._usable_default(record)
        logger.debug("Store default pickup location loaded", store_id=self.store_id, found=self._default is not None)
        return self.current()

    def _usable_default(self, record: dict | None) -> dict | None:
        """Keep the parts of a saved default that make a valid pickup point.

        Invalid coordinates are dropped and an unusable address is ignored;
        either is recorded on ``last_error``.
        """
        if not record:
            return None

        address = (record.get("address") or "").strip() or None
        if address is not None and len(address) > MAX_ADDRESS_LENGTH:
            self._reject_default("Saved store address is too long and was ignored")
            address = None

        latitude, longitude = record.get("latitude"), record.get("longitude")
        coordinates = _coordinate_pair(latitude, longitude)
        if coordinates is None and (latitude is not None or longitude is not None):
            self._reject_default("Saved store coordinates are invalid and were ignored")

        if address is None and coordinates is None:
            return None
        latitude, longitude = coordinates if coordinates else (None, None)
        return {"address": address, "latitude": latitude, "longitude": longitude}

    def _reject_default(self, message: str) -> None:
        self.last_error = ValidationError({"pickup_location": [message]})
        logger.warning("Store default pickup location rejected", store_id=self.store_id, reason=message)

    def edit_address(self, address: str | None) -> None:
        if address and len(address.strip()) > MAX_ADDRESS_LENGTH:
            raise ValidationError({"pickup_address": [f"Pickup address is limited to {MAX_ADDRESS_LENGTH} characters"]})
        self._manual_address = address.strip() if address and address.strip() else None

    def edit_coordinates(self, latitude: float | None = None, longitude: float | None = None) -> None:
        """Set coordinates by hand. Passing neither clears them."""
        if (latitude is None) != (longitude is None):
            raise ValidationError({"pickup_coordinates": ["Both latitude and longitude are required"]})
        if latitude is not None and not _check_range(latitude, longitude):
            raise ValidationError({"pickup_coordinates": ["Coordinates are out of range"]})
        self._coordinates_edited = True
        self._manual_coordinates = (latitude, longitude) if latitude is not None else None

    def edit_coordinates_text(self, text: str | None) -> None:
        """Set coordinates from free text. Unparsable text clears them."""
        self._coordinates_edited = True
        self._manual_coordinates = parse_coordinates(text)

    async def use_device_location(self, geolocation: GeolocationPort | None = None) -> PickupLocation | None:
        """Ask the device for its position and use it for the pickup point.

        Raises:
            LocationError: the device could not provide a position. The
                previous pickup value is kept.
        """
        adapter = geolocation or self.geolocation
        try:
            position = await adapter.request_current_position()
        except LocationError as exc:
            self.last_error = exc
            logger.warning(
                "Device location request failed",
                store_id=self.store_id,
                reason=exc.reason.value,
            )
            raise

        coordinates = _coordinate_pair(position.get("latitude"), position.get("longitude"))
        if coordinates is None:
            exc = LocationError(LocationFailure.UNAVAILABLE, "Device reported an invalid position")
            self.last_error = exc
            logger.warning(
                "Device reported an invalid position",
                store_id=self.store_id,
                latitude=position.get("latitude"),
                longitude=position.get("longitude"),
            )
            raise exc

        self._device = {"latitude": coordinates[0], "longitude": coordinates[1]}
        # A fresh fix supersedes coordinates typed earlier
        self._coordinates_edited = False
        self._manual_coordinates = None
        self.last_error = None
        return self.current()

    @property
    def source(self) -> PickupSource:
        if self._manual_address or self._coordinates_edited:
            return PickupSource.MANUAL
        if self._device is not None:
            return PickupSource.DEVICE
        if self._default is not None:
            return PickupSource.STORE_DEFAULT
        return PickupSource.NONE

    def _address(self) -> str | None:
        if self._manual_address:
            return self._manual_address
        if self._device is not None:
            return GPS_ADDRESS_LABEL
        if self._default and self._default.get("address"):
            return self._default["address"]
        return None

    def _coordinates(self) -> tuple[float, float] | None:
        if self._coordinates_edited:
            return self._manual_coordinates
        if self._device is not None:
            return self._device["latitude"], self._device["longitude"]
        if self._default and self._default.get("latitude") is not None and self._default.get("longitude") is not None:
            return self._default["latitude"], self._default["longitude"]
        return None

    def current(self) -> PickupLocation | None:
        """The pickup point as it stands, or None while no address is known."""
        address = self._address()
        if not address:
            return None
        coordinates = self._coordinates()
        latitude, longitude = coordinates if coordinates else (None, None)
        return PickupLocation(address=address, latitude=latitude, longitude=longitude)

    def resolve(self) -> PickupLocation:
        location = self.current()
        if location is None:
            raise ValidationError({"pickup_address": ["A pickup address is required"]})
        return location

    def to_dict(self) -> dict:
        location = self.current()
        return {
            "source": self.source.value,
            "address": location.address if location else None,
            "latitude": location.latitude if location else None,
            "longitude": location.longitude if location else None,
            "map_links": location.map_links() if location else None,
            "error": str(self.last_error) if self.last_error else None,
        }

"""Geolocation port — the device's current position, requested on demand."""

from abc import ABC, abstractmethod


class GeolocationPort(ABC):
    """Abstract interface for device geolocation adapters."""

    @abstractmethod
    async def request_current_position(self) -> dict:
        """Ask the device for its current position.

        Returns:
            dict with keys: latitude, longitude

        Raises:
            LocationError: permission denied, position unavailable, or timeout.
        """
        ...

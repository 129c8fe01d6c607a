"""Geolocation adapter abstraction — device position lookups."""

import os

from storefront.geolocation.port import GeolocationPort

_geolocation_instance: GeolocationPort | None = None


def get_geolocation() -> GeolocationPort:
    """Return the configured geolocation adapter (singleton).

    Uses FakeGeolocation by default. Requests that carry a device-reported
    position pass a ReportedPosition adapter explicitly instead.
    """
    global _geolocation_instance
    if _geolocation_instance is None:
        adapter = os.environ.get("GEOLOCATION_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.geolocation.fake_adapter import FakeGeolocation

            _geolocation_instance = FakeGeolocation()
        else:
            raise ValueError(f"Unknown geolocation adapter: {adapter}")
    return _geolocation_instance


def set_geolocation(geolocation: GeolocationPort) -> None:
    """Override the active geolocation adapter (useful for tests)."""
    global _geolocation_instance
    _geolocation_instance = geolocation


def reset_geolocation() -> None:
    """Reset the geolocation singleton."""
    global _geolocation_instance
    _geolocation_instance = None

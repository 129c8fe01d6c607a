"""Tests for pickup location resolution within one fulfillment session."""

import asyncio

import pytest
from protean.exceptions import ValidationError
from storefront.errors import LocationError, LocationFailure
from storefront.fulfillment.pickup import PickupLocationResolver, PickupSource, parse_coordinates
from storefront.geolocation.fake_adapter import FakeGeolocation
from storefront.geolocation.reported import ReportedPosition
from storefront.order.order import GPS_ADDRESS_LABEL
from storefront.stores.fake_adapter import FakeStoreProfiles

STORE_ID = "store-001"


@pytest.fixture()
def profiles():
    fake = FakeStoreProfiles()
    fake.set_default_pickup_location(STORE_ID, "Shop 4, Kamwala Market", -15.43, 28.29)
    return fake


@pytest.fixture()
def device():
    return FakeGeolocation(latitude=-15.40, longitude=28.30)


@pytest.fixture()
def resolver(profiles, device):
    return PickupLocationResolver(STORE_ID, store_profiles=profiles, geolocation=device)


class TestParseCoordinates:
    def test_parses_pair(self):
        assert parse_coordinates("-15.4167, 28.2833") == (-15.4167, 28.2833)

    def test_blank_is_none(self):
        assert parse_coordinates("  ") is None

    def test_garbage_is_none(self):
        assert parse_coordinates("near the market") is None

    def test_out_of_range_is_none(self):
        assert parse_coordinates("120, 28") is None

    def test_three_parts_is_none(self):
        assert parse_coordinates("1, 2, 3") is None


class TestStoreDefault:
    def test_seeded_from_store_default(self, resolver):
        asyncio.run(resolver.load_default())
        location = resolver.resolve()
        assert location.address == "Shop 4, Kamwala Market"
        assert location.latitude == -15.43
        assert resolver.source == PickupSource.STORE_DEFAULT

    def test_no_default_leaves_session_empty(self, device):
        resolver = PickupLocationResolver(STORE_ID, store_profiles=FakeStoreProfiles(), geolocation=device)
        asyncio.run(resolver.load_default())
        assert resolver.current() is None
        with pytest.raises(ValidationError):
            resolver.resolve()

    def test_profile_outage_is_recorded_not_raised(self, profiles, device):
        profiles.configure(should_succeed=False)
        resolver = PickupLocationResolver(STORE_ID, store_profiles=profiles, geolocation=device)
        assert asyncio.run(resolver.load_default()) is None
        assert resolver.last_error is not None
        assert resolver.to_dict()["error"] == "Store profile service unavailable"

    def test_invalid_saved_coordinates_are_dropped(self, profiles, device):
        profiles.set_default_pickup_location(STORE_ID, "Shop 4, Kamwala Market", 95.0, 28.29)
        resolver = PickupLocationResolver(STORE_ID, store_profiles=profiles, geolocation=device)
        location = asyncio.run(resolver.load_default())
        assert location.address == "Shop 4, Kamwala Market"
        assert location.has_coordinates is False
        assert resolver.to_dict()["error"] is not None

    def test_half_saved_pair_is_dropped(self, profiles, device):
        profiles.set_default_pickup_location(STORE_ID, "Shop 4, Kamwala Market", -15.43, None)
        resolver = PickupLocationResolver(STORE_ID, store_profiles=profiles, geolocation=device)
        assert asyncio.run(resolver.load_default()).has_coordinates is False

    def test_blank_saved_address_leaves_manual_entry_open(self, profiles, device):
        profiles.set_default_pickup_location(STORE_ID, "   ", -15.43, 28.29)
        resolver = PickupLocationResolver(STORE_ID, store_profiles=profiles, geolocation=device)
        assert asyncio.run(resolver.load_default()) is None
        resolver.edit_address("12 Cairo Rd")
        location = resolver.resolve()
        assert location.address == "12 Cairo Rd"
        assert location.latitude == -15.43

    def test_device_is_not_asked_automatically(self, resolver, device):
        asyncio.run(resolver.load_default())
        resolver.resolve()
        assert device.request_count == 0


class TestManualEdits:
    def test_manual_address_overrides_default(self, resolver):
        asyncio.run(resolver.load_default())
        resolver.edit_address("12 Cairo Rd")
        location = resolver.resolve()
        assert location.address == "12 Cairo Rd"
        assert location.latitude == -15.43
        assert resolver.source == PickupSource.MANUAL

    def test_coordinates_from_text(self, resolver):
        resolver.edit_address("12 Cairo Rd")
        resolver.edit_coordinates_text("-15.41, 28.28")
        location = resolver.resolve()
        assert (location.latitude, location.longitude) == (-15.41, 28.28)

    def test_unparsable_text_clears_coordinates(self, resolver):
        asyncio.run(resolver.load_default())
        resolver.edit_coordinates_text("somewhere")
        location = resolver.resolve()
        assert location.address == "Shop 4, Kamwala Market"
        assert location.latitude is None
        assert location.longitude is None

    def test_half_pair_rejected(self, resolver):
        with pytest.raises(ValidationError):
            resolver.edit_coordinates(latitude=-15.4)

    def test_out_of_range_rejected(self, resolver):
        with pytest.raises(ValidationError):
            resolver.edit_coordinates(latitude=-15.4, longitude=200.0)

    def test_clearing_coordinates(self, resolver):
        asyncio.run(resolver.load_default())
        resolver.edit_coordinates()
        assert resolver.resolve().has_coordinates is False


class TestDeviceLocation:
    def test_device_fix_uses_gps_label(self, resolver):
        asyncio.run(resolver.use_device_location())
        location = resolver.resolve()
        assert location.address == GPS_ADDRESS_LABEL
        assert (location.latitude, location.longitude) == (-15.40, 28.30)
        assert resolver.source == PickupSource.DEVICE

    def test_device_fix_keeps_manual_address(self, resolver):
        resolver.edit_address("12 Cairo Rd")
        asyncio.run(resolver.use_device_location())
        location = resolver.resolve()
        assert location.address == "12 Cairo Rd"
        assert location.latitude == -15.40

    def test_manual_coordinates_after_device_win(self, resolver):
        asyncio.run(resolver.use_device_location())
        resolver.edit_coordinates(latitude=-15.0, longitude=28.0)
        assert resolver.resolve().latitude == -15.0

    @pytest.mark.parametrize("failure", list(LocationFailure))
    def test_failure_keeps_previous_value(self, resolver, device, failure):
        asyncio.run(resolver.load_default())
        device.configure(failure=failure)
        with pytest.raises(LocationError) as exc:
            asyncio.run(resolver.use_device_location())
        assert exc.value.reason == failure
        location = resolver.resolve()
        assert location.address == "Shop 4, Kamwala Market"
        assert location.latitude == -15.43

    def test_reported_position(self, resolver):
        asyncio.run(resolver.use_device_location(ReportedPosition(latitude=-12.8, longitude=28.2)))
        assert resolver.resolve().latitude == -12.8

    def test_reported_permission_denied(self, resolver):
        with pytest.raises(LocationError) as exc:
            asyncio.run(resolver.use_device_location(ReportedPosition(error="permission_denied")))
        assert exc.value.reason == LocationFailure.PERMISSION_DENIED
        assert resolver.current() is None

    def test_out_of_range_fix_keeps_previous_value(self, resolver):
        asyncio.run(resolver.load_default())
        with pytest.raises(LocationError) as exc:
            asyncio.run(resolver.use_device_location(ReportedPosition(latitude=123.0, longitude=28.0)))
        assert exc.value.reason == LocationFailure.UNAVAILABLE
        assert resolver.source == PickupSource.STORE_DEFAULT
        assert resolver.to_dict()["error"] == "Device reported an invalid position"

        resolver.edit_address("12 Cairo Rd")
        location = resolver.resolve()
        assert location.address == "12 Cairo Rd"
        assert location.latitude == -15.43

    def test_reported_position_needs_both_coordinates(self):
        with pytest.raises(ValidationError):
            ReportedPosition(latitude=-12.8)

    def test_reported_unknown_error_code(self):
        with pytest.raises(ValidationError):
            ReportedPosition(error="gps_on_fire")

    def test_map_links_in_display(self, resolver):
        asyncio.run(resolver.load_default())
        data = resolver.to_dict()
        assert data["source"] == "store_default"
        assert data["map_links"]["google"].endswith("query=-15.43,28.29")

import pytest
from protean.integrations.pytest import DomainFixture

STORE_ID = "store-001"
OTHER_STORE_ID = "store-002"


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _adapters():
    """Fresh adapters and an empty workflow registry for every test."""
    from storefront.catalog import reset_catalog
    from storefront.fulfillment.coordinator import active_workflows
    from storefront.geolocation import reset_geolocation
    from storefront.persistence import reset_order_store
    from storefront.stores import reset_store_profiles

    yield

    reset_catalog()
    reset_store_profiles()
    reset_geolocation()
    reset_order_store()
    active_workflows.clear()


@pytest.fixture()
def store_id():
    return STORE_ID


@pytest.fixture()
def catalog():
    from storefront.catalog import set_catalog
    from storefront.catalog.fake_adapter import FakeCatalog

    fake = FakeCatalog()
    set_catalog(fake)
    return fake


@pytest.fixture()
def store_profiles():
    from storefront.stores import set_store_profiles
    from storefront.stores.fake_adapter import FakeStoreProfiles

    fake = FakeStoreProfiles()
    set_store_profiles(fake)
    return fake


@pytest.fixture()
def geolocation():
    from storefront.geolocation import set_geolocation
    from storefront.geolocation.fake_adapter import FakeGeolocation

    fake = FakeGeolocation()
    set_geolocation(fake)
    return fake

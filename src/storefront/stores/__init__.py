"""Store profile adapter abstraction — where a store's saved pickup point comes from."""

import os

from storefront.stores.port import StoreProfilePort

_store_profiles_instance: StoreProfilePort | None = None


def get_store_profiles() -> StoreProfilePort:
    """Return the configured store profile adapter (singleton).

    Uses FakeStoreProfiles by default. In production, set
    STORE_PROFILE_ADAPTER=http and STORE_PROFILE_BASE_URL.
    """
    global _store_profiles_instance
    if _store_profiles_instance is None:
        adapter = os.environ.get("STORE_PROFILE_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.stores.fake_adapter import FakeStoreProfiles

            _store_profiles_instance = FakeStoreProfiles()
        elif adapter == "http":
            from storefront.stores.http_adapter import HttpStoreProfiles

            _store_profiles_instance = HttpStoreProfiles(base_url=os.environ["STORE_PROFILE_BASE_URL"])
        else:
            raise ValueError(f"Unknown store profile adapter: {adapter}")
    return _store_profiles_instance


def set_store_profiles(store_profiles: StoreProfilePort) -> None:
    """Override the active store profile adapter (useful for tests)."""
    global _store_profiles_instance
    _store_profiles_instance = store_profiles


def reset_store_profiles() -> None:
    """Reset the store profile singleton."""
    global _store_profiles_instance
    _store_profiles_instance = None

"""Catalog adapter abstraction — pluggable live stock lookups."""

import os

from storefront.catalog.port import CatalogPort

_catalog_instance: CatalogPort | None = None


def get_catalog() -> CatalogPort:
    """Return the configured catalog adapter (singleton).

    Uses FakeCatalog by default. In production, set CATALOG_ADAPTER=http and
    CATALOG_BASE_URL.
    """
    global _catalog_instance
    if _catalog_instance is None:
        adapter = os.environ.get("CATALOG_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.catalog.fake_adapter import FakeCatalog

            _catalog_instance = FakeCatalog()
        elif adapter == "http":
            from storefront.catalog.http_adapter import HttpCatalog

            _catalog_instance = HttpCatalog(base_url=os.environ["CATALOG_BASE_URL"])
        else:
            raise ValueError(f"Unknown catalog adapter: {adapter}")
    return _catalog_instance


def set_catalog(catalog: CatalogPort) -> None:
    """Override the active catalog adapter (useful for tests)."""
    global _catalog_instance
    _catalog_instance = catalog


def reset_catalog() -> None:
    """Reset the catalog singleton."""
    global _catalog_instance
    _catalog_instance = None

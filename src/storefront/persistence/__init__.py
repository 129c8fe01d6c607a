"""Order store abstraction — the persistence service behind the status guard."""

from storefront.persistence.port import OrderStorePort

_order_store_instance: OrderStorePort | None = None


def get_order_store() -> OrderStorePort:
    """Return the active order store. Defaults to the domain-backed store."""
    global _order_store_instance
    if _order_store_instance is None:
        from storefront.persistence.domain_adapter import DomainOrderStore

        _order_store_instance = DomainOrderStore()
    return _order_store_instance


def set_order_store(order_store: OrderStorePort) -> None:
    """Override the active order store (useful for tests)."""
    global _order_store_instance
    _order_store_instance = order_store


def reset_order_store() -> None:
    """Reset to the default order store."""
    global _order_store_instance
    _order_store_instance = None

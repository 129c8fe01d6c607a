"""Storefront bounded context — vendor order lifecycle and fulfillment.

Handles the order aggregate (CQRS, not event sourced), the status
transition guard, and the fulfillment coordinator that gates confirmation
behind stock verification, pickup location capture, and delivery assignment.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")

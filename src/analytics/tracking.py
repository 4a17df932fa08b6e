"""
Tracking Writes

Storefront-facing inserts for store visits, product views and conversion
events. Store visit and conversion tracking never block the storefront: an
unknown tenant is logged and the call returns ``None``. A product view for a
product the tenant does not own is a caller bug and raises.
"""

from typing import Any, Dict, Optional

import structlog

from src.analytics.exceptions import EntityNotFoundError
from src.analytics.store import ADD_TO_CART, EventStoreReader

logger = structlog.get_logger(__name__)


async def _no_check() -> bool:
    return True


async def track_store_visit(
    store: EventStoreReader,
    tenant_id: str,
    session_id: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
    landing_page: Optional[str] = None,
) -> Optional[str]:
    """
    Record a storefront session entry.

    Returns:
        The new visit id, or None when the tenant does not exist
    """
    if not await store.company_exists(tenant_id):
        logger.warning("Store visit for unknown company dropped", tenant_id=tenant_id, session_id=session_id)
        return None

    visit_id = await store.add_store_visit(
        tenant_id,
        session_id,
        ip_address=ip_address,
        user_agent=user_agent,
        referrer=referrer,
        landing_page=landing_page,
    )
    logger.info("Store visit tracked", tenant_id=tenant_id, session_id=session_id)
    return visit_id


async def track_product_visit(
    store: EventStoreReader,
    tenant_id: str,
    product_id: str,
    session_id: str,
    source: Optional[str] = None,
) -> str:
    """
    Record a product page view.

    Raises:
        EntityNotFoundError: if the product does not belong to the tenant
    """
    product = await store.get_product(tenant_id, product_id)
    if product is None:
        logger.warning("Product view for foreign or missing product", tenant_id=tenant_id, product_id=product_id)
        raise EntityNotFoundError("Product", product_id, tenant_id)

    visit_id = await store.add_product_visit(tenant_id, product_id, session_id, source=source)
    logger.info("Product view tracked", tenant_id=tenant_id, product_id=product_id, session_id=session_id)
    return visit_id


async def track_conversion_event(
    store: EventStoreReader,
    tenant_id: str,
    session_id: str,
    event_type: str,
    product_id: Optional[str] = None,
    order_id: Optional[str] = None,
    value: Optional[float] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Record a funnel event.

    An ``add_to_cart`` for a product outside the tenant is only logged. An
    ``order_id`` that does not resolve to one of the tenant's orders is
    stored as null.

    Returns:
        The new event id, or None when the tenant does not exist
    """
    if not await store.company_exists(tenant_id):
        logger.warning(
            "Conversion event for unknown company dropped",
            tenant_id=tenant_id,
            session_id=session_id,
            event_type=event_type,
        )
        return None

    check_product = event_type == ADD_TO_CART and bool(product_id)
    product, order_owned = await store.gather(
        store.get_product(tenant_id, product_id) if check_product else _no_check(),
        store.order_exists(tenant_id, order_id) if order_id else _no_check(),
    )

    if check_product and product is None:
        logger.warning(
            "add_to_cart references a product outside the company",
            tenant_id=tenant_id,
            product_id=product_id,
        )

    if order_id and not order_owned:
        logger.info("Conversion order reference dropped", tenant_id=tenant_id, order_id=order_id)
        order_id = None

    event_id = await store.add_conversion_event(
        tenant_id,
        session_id,
        event_type,
        product_id=product_id,
        order_id=order_id,
        value=value,
        metadata=metadata,
    )
    logger.info("Conversion event tracked", tenant_id=tenant_id, event_type=event_type, value=value)
    return event_id

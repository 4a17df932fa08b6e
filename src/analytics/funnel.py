"""
Funnel Engine

Store and product conversion funnels built from the tracking tables and the
order log:

- store overview and conversion rates (visit -> view -> cart -> checkout -> purchase)
- per-product conversion
- six-stage funnel with biggest drop-off
- top performing products by conversion rate
- per-product activity table
"""

from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from src.analytics.exceptions import EntityNotFoundError
from src.analytics.metrics import round2, safe_divide, safe_ratio
from src.analytics.records import EventCounts, ProductEventCounts, ProductRecord
from src.analytics.store import EventStoreReader
from src.analytics.windows import TimeWindow
from src.database.models import OrderStatus

logger = structlog.get_logger(__name__)

FUNNEL_STAGES = (
    "store_visit",
    "product_view",
    "add_to_cart",
    "checkout",
    "order_placed",
    "delivered",
)


# =============================================================================
# PURE FOLDS
# =============================================================================

def purchase_rate(counts: EventCounts) -> float:
    """Purchases over checkouts, or over add-to-carts when no checkout was tracked."""
    if counts.checkouts > 0:
        return safe_ratio(counts.purchases, counts.checkouts)
    return safe_ratio(counts.purchases, counts.add_to_carts)


def conversion_rates(counts: EventCounts) -> Dict[str, float]:
    return {
        "store_conversion_rate": safe_ratio(counts.purchases, counts.total_visits),
        "product_engagement_rate": safe_ratio(counts.purchases, counts.product_views),
        "add_to_cart_rate": safe_ratio(counts.add_to_carts, counts.product_views),
        "checkout_rate": safe_ratio(counts.checkouts, counts.add_to_carts),
        "purchase_rate": purchase_rate(counts),
    }


def store_overview(counts: EventCounts) -> Dict:
    return {
        "total_visits": counts.total_visits,
        "unique_visitors": counts.unique_visitors,
        "total_product_views": counts.product_views,
        "add_to_carts": counts.add_to_carts,
        "checkouts": counts.checkouts,
        "purchases": counts.purchases,
        "total_revenue": round2(counts.revenue),
        "avg_order_value": safe_divide(counts.revenue, counts.purchases),
        **conversion_rates(counts),
    }


def biggest_drop_off(steps: Sequence[Dict]) -> Dict:
    """
    Largest relative drop between adjacent stages.

    Stages with a zero count are skipped; ties keep the earlier pair.
    """
    worst = {"from": "", "to": "", "drop_rate": 0.0}
    for current, following in zip(steps, steps[1:]):
        if current["count"] <= 0:
            continue
        drop = 100 - following["count"] / current["count"] * 100
        if drop > worst["drop_rate"]:
            worst = {"from": current["step"], "to": following["step"], "drop_rate": drop}
    worst["drop_rate"] = round2(worst["drop_rate"])
    return worst


def build_funnel(stage_counts: Sequence[Tuple[str, int]]) -> Dict:
    """
    Funnel steps with per-stage conversion against the previous stage.

    Args:
        stage_counts: ordered ``(stage, count)`` pairs
    """
    steps = []
    previous = None
    for stage, count in stage_counts:
        rate = 100.0 if previous is None else safe_ratio(count, previous)
        steps.append({"step": stage, "count": count, "rate": rate})
        previous = count

    first = stage_counts[0][1] if stage_counts else 0
    last = stage_counts[-1][1] if stage_counts else 0
    return {
        "funnel_steps": steps,
        "overall_conversion_rate": safe_ratio(last, first),
        "biggest_drop_off": biggest_drop_off(steps),
    }


def product_conversion_entry(counts: ProductEventCounts) -> Dict:
    return {
        "views": counts.views,
        "add_to_carts": counts.add_to_carts,
        "purchases": counts.purchases,
        "revenue": round2(counts.revenue),
        "view_to_cart_rate": safe_ratio(counts.add_to_carts, counts.views),
        "cart_to_purchase_rate": safe_ratio(counts.purchases, counts.add_to_carts),
        "conversion_rate": safe_ratio(counts.purchases, counts.views),
    }


def _product_row(counts: ProductEventCounts, product: ProductRecord) -> Dict:
    return {
        "product_id": product.id,
        "name": product.name,
        "price": round2(product.price),
        "category": product.category,
        **product_conversion_entry(counts),
    }


def rank_top_products(
    counts: Sequence[ProductEventCounts],
    products: Dict[str, ProductRecord],
    limit: int,
) -> List[Dict]:
    """
    Products with at least one view, ranked by conversion rate.

    Ties fall back to views, then product id, so the order is stable.
    """
    rows = [
        _product_row(c, products[c.product_id])
        for c in counts
        if c.views > 0 and c.product_id in products
    ]
    rows.sort(key=lambda r: (-r["conversion_rate"], -r["views"], r["product_id"]))
    return rows[:max(limit, 0)]


def product_activity(counts: Sequence[ProductEventCounts], products: Dict[str, ProductRecord]) -> List[Dict]:
    rows = [_product_row(c, products[c.product_id]) for c in counts if c.product_id in products]
    rows.sort(key=lambda r: (-r["views"], -r["purchases"], r["product_id"]))
    return rows


# =============================================================================
# ANALYZERS
# =============================================================================

async def store_analytics(store: EventStoreReader, tenant_id: str, window: TimeWindow) -> Dict:
    """Funnel counters and rates for the whole store."""
    counts = await store.event_counts(tenant_id, window)
    logger.debug("Store counters loaded", tenant_id=tenant_id, visits=counts.total_visits)
    return store_overview(counts)


async def store_conversion(store: EventStoreReader, tenant_id: str, window: TimeWindow) -> Dict:
    counts = await store.event_counts(tenant_id, window)
    return {
        "total_visits": counts.total_visits,
        "unique_visitors": counts.unique_visitors,
        "total_product_views": counts.product_views,
        "add_to_carts": counts.add_to_carts,
        "checkouts": counts.checkouts,
        "purchases": counts.purchases,
        **conversion_rates(counts),
    }


async def product_conversion(
    store: EventStoreReader,
    tenant_id: str,
    product_id: str,
    window: TimeWindow,
) -> Dict:
    """
    Conversion pipeline for one product.

    Raises:
        EntityNotFoundError: if the product does not belong to the tenant
    """
    product, counts = await store.gather(
        store.get_product(tenant_id, product_id),
        store.product_event_counts(tenant_id, window, product_id=product_id),
    )
    if product is None:
        raise EntityNotFoundError("Product", product_id, tenant_id)

    entry = counts[0] if counts else ProductEventCounts(product_id=product_id)
    return {
        "product": {"id": product.id, "name": product.name, "price": round2(product.price)},
        **product_conversion_entry(entry),
    }


async def top_products(
    store: EventStoreReader,
    tenant_id: str,
    window: TimeWindow,
    limit: int = 10,
) -> List[Dict]:
    counts = await store.product_event_counts(tenant_id, window)
    viewed = [c.product_id for c in counts if c.views > 0]
    products = {p.id: p for p in await store.products(tenant_id, ids=viewed)}
    return rank_top_products(counts, products, limit)


async def product_analytics(store: EventStoreReader, tenant_id: str, window: TimeWindow) -> List[Dict]:
    """Views, carts, purchases and revenue for every product active in the window."""
    counts = await store.product_event_counts(tenant_id, window)
    products = {p.id: p for p in await store.products(tenant_id, ids=[c.product_id for c in counts])}
    return product_activity(counts, products)


async def funnel_analysis(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow]) -> Dict:
    """Six-stage funnel from store visit to delivered order."""
    counts, orders_placed, delivered = await store.gather(
        store.event_counts(tenant_id, window),
        store.count_orders(tenant_id, window),
        store.count_orders(tenant_id, window, statuses=[OrderStatus.DELIVERED.value]),
    )
    return build_funnel(list(zip(FUNNEL_STAGES, (
        counts.total_visits,
        counts.product_views,
        counts.add_to_carts,
        counts.checkouts,
        orders_placed,
        delivered,
    ))))

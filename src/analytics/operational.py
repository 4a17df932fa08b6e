"""
Operational Analyzers

Narrow aggregators that share one shape: resolve a window, read the scoped
rows, fold them into a map keyed by one dimension (region, payment method,
user, status, product), derive rates with the metric primitives, then sort
and truncate.

Each analyzer has a pure ``*_report`` fold (tested directly) and an async
entry point that performs the reads.
"""

from collections import Counter, defaultdict
from datetime import datetime
from enum import Enum
import math
from typing import Dict, Iterable, List, Optional, Sequence, Set

import structlog

from src.analytics.cart_items import parse_cart_items
from src.analytics.metrics import (
    UNKNOWN_PRODUCT,
    resolve_category,
    resolve_payment_method,
    resolve_region,
    round2,
    safe_average,
    safe_divide,
    safe_ratio,
)
from src.analytics.records import (
    CouponRecord,
    GuestCartRecord,
    OrderItemRecord,
    OrderRecord,
    ProductRecord,
    UserRecord,
)
from src.analytics.store import EventStoreReader
from src.analytics.windows import TimeWindow, trailing_window
from src.database.models import OrderStatus

logger = structlog.get_logger(__name__)

PENDING = OrderStatus.PENDING.value
CONFIRMED = OrderStatus.CONFIRMED.value
PROCESSING = OrderStatus.PROCESSING.value
SHIPPED = OrderStatus.SHIPPED.value
DELIVERED = OrderStatus.DELIVERED.value
CANCELLED = OrderStatus.CANCELLED.value
RETURNED = OrderStatus.RETURNED.value
REFUNDED = OrderStatus.REFUNDED.value

COD = "COD"
IN_FLIGHT = (PENDING, CONFIRMED, PROCESSING, SHIPPED)
RETURN_STATUSES = (RETURNED, REFUNDED)
SELLING_STATUSES = (DELIVERED, SHIPPED, CONFIRMED, PROCESSING)

MAX_TRANSITION_HOURS = 720
FORECAST_DAYS = 30
NO_VELOCITY_DAYS = 999
LOW_STOCK_THRESHOLD = 10
OVERSTOCK_MONTHS = 3


def _count(orders: Iterable[OrderRecord], *statuses: str) -> int:
    return sum(1 for o in orders if o.status in statuses)


def _revenue(orders: Iterable[OrderRecord], *statuses: str) -> float:
    return sum(o.total for o in orders if o.status in statuses)


def _item_name(item: OrderItemRecord) -> str:
    return (item.product.name if item.product else None) or item.product_name or UNKNOWN_PRODUCT


# =============================================================================
# COD PERFORMANCE
# =============================================================================

def cod_report(orders: Sequence[OrderRecord], region_limit: int = 10) -> Dict:
    """Cash-on-delivery outcomes; regions come from the customer profile."""
    total = len(orders)
    delivered = _count(orders, DELIVERED)
    cancelled = _count(orders, CANCELLED)
    returned = _count(orders, RETURNED)
    revenue = _revenue(orders, DELIVERED)
    lost = _revenue(orders, CANCELLED, RETURNED)

    regions: Dict[str, Counter] = defaultdict(Counter)
    for order in orders:
        customer = order.customer
        region = resolve_region(
            customer.governorate if customer else None,
            customer.city if customer else None,
        )
        regions[region]["total"] += 1
        if order.status == DELIVERED:
            regions[region]["delivered"] += 1
        elif order.status == CANCELLED:
            regions[region]["cancelled"] += 1

    regional = sorted(
        (
            {
                "region": region,
                "total_orders": stats["total"],
                "delivered_orders": stats["delivered"],
                "cancelled_orders": stats["cancelled"],
                "success_rate": safe_ratio(stats["delivered"], stats["total"]),
                "cancellation_rate": safe_ratio(stats["cancelled"], stats["total"]),
            }
            for region, stats in regions.items()
        ),
        key=lambda r: (-r["total_orders"], r["region"]),
    )

    return {
        "total_orders": total,
        "delivered_orders": delivered,
        "cancelled_orders": cancelled,
        "returned_orders": returned,
        "pending_orders": _count(orders, *IN_FLIGHT),
        "success_rate": safe_ratio(delivered, total),
        "cancellation_rate": safe_ratio(cancelled, total),
        "return_rate": safe_ratio(returned, total),
        "total_revenue": round2(revenue),
        "lost_revenue": round2(lost),
        "avg_order_value": safe_divide(revenue, delivered),
        "regional_performance": regional[:region_limit],
    }


async def cod_performance(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    orders = await store.orders(tenant_id, window, payment_method=COD, include_customer=True)
    return cod_report(orders)


# =============================================================================
# ABANDONED CARTS
# =============================================================================

def abandoned_cart_report(
    carts: Sequence[GuestCartRecord],
    converted_ids: Set[str],
    now: Optional[datetime] = None,
    product_limit: int = 10,
    recent_limit: int = 20,
) -> Dict:
    """
    A cart is abandoned when it has expired and no guest order references it.

    Cart payloads that fail to parse still count toward cart totals; only
    their item contribution is skipped.
    """
    now = now or datetime.now()
    abandoned = [c for c in carts if c.expires_at < now and c.cart_id not in converted_ids]
    converted = sum(1 for c in carts if c.cart_id in converted_ids)

    products: Dict[str, Dict] = {}
    recent = []
    unparseable = 0
    cart_value = 0.0

    for cart in abandoned:
        cart_value += cart.total
        parsed = parse_cart_items(cart.items_raw)
        if not parsed.ok:
            unparseable += 1
            logger.warning("Unreadable guest cart items", cart_id=cart.cart_id, error=parsed.error)

        for item in parsed.items:
            entry = products.setdefault(item.display_name, {
                "product_name": item.display_name,
                "category": resolve_category(item.category),
                "abandoned_count": 0,
                "lost_revenue": 0.0,
            })
            entry["abandoned_count"] += item.quantity
            entry["lost_revenue"] += item.line_total

        if len(recent) < recent_limit:
            recent.append({
                "cart_id": cart.cart_id,
                "items_count": len(parsed.items),
                "cart_value": round2(cart.total),
                "last_updated": cart.updated_at.isoformat(),
                "expires_at": cart.expires_at.isoformat(),
            })

    top_products = sorted(products.values(), key=lambda p: (-p["lost_revenue"], p["product_name"]))
    total = len(carts)

    return {
        "total_carts": total,
        "abandoned_carts": len(abandoned),
        "converted_carts": converted,
        "active_carts": total - len(abandoned) - converted,
        "abandonment_rate": safe_ratio(len(abandoned), total),
        "total_cart_value": round2(cart_value),
        "avg_cart_value": safe_divide(cart_value, len(abandoned)),
        "unparseable_carts": unparseable,
        "top_abandoned_products": [
            {**p, "lost_revenue": round2(p["lost_revenue"])} for p in top_products[:product_limit]
        ],
        "recent_abandoned_carts": recent,
    }


async def abandoned_carts(
    store: EventStoreReader,
    tenant_id: str,
    window: Optional[TimeWindow] = None,
    now: Optional[datetime] = None,
) -> Dict:
    carts = await store.guest_carts(tenant_id, window)
    converted = await store.converted_cart_ids(tenant_id, [c.cart_id for c in carts])
    return abandoned_cart_report(carts, converted, now=now)


# =============================================================================
# RETURNS
# =============================================================================

def returns_report(returned: Sequence[OrderRecord], total_orders: int, limit: int = 10) -> Dict:
    lost = sum(o.total for o in returned)

    products: Dict[str, Dict] = {}
    for order in returned:
        for item in order.items:
            name = _item_name(item)
            entry = products.setdefault(name, {"name": name, "returns": 0, "lost_revenue": 0.0})
            entry["returns"] += item.quantity
            entry["lost_revenue"] += item.revenue

    regions: Dict[str, Dict] = {}
    for order in returned:
        customer = order.customer
        region = resolve_region(
            customer.governorate if customer else None,
            order.governorate,
            customer.city if customer else None,
            order.city,
        )
        entry = regions.setdefault(region, {"name": region, "returns": 0, "lost_revenue": 0.0})
        entry["returns"] += 1
        entry["lost_revenue"] += order.total

    def ranked(rows: Iterable[Dict]) -> List[Dict]:
        rows = sorted(rows, key=lambda r: (-r["returns"], r["name"]))[:limit]
        return [{**r, "lost_revenue": round2(r["lost_revenue"])} for r in rows]

    return {
        "summary": {
            "total_orders": total_orders,
            "total_returns": len(returned),
            "return_rate": safe_ratio(len(returned), total_orders),
            "total_lost_revenue": round2(lost),
            "avg_return_value": safe_divide(lost, len(returned)),
        },
        "top_returned_products": ranked(products.values()),
        "returns_by_region": ranked(regions.values()),
    }


async def returns_analysis(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    returned, total = await store.gather(
        store.orders(
            tenant_id,
            window,
            statuses=list(RETURN_STATUSES),
            include_items=True,
            include_customer=True,
        ),
        store.count_orders(tenant_id, window),
    )
    return returns_report(returned, total)


# =============================================================================
# DELIVERY RATE
# =============================================================================

def delivery_report(orders: Sequence[OrderRecord], region_limit: int = 15) -> Dict:
    total = len(orders)
    delivered = _count(orders, DELIVERED)
    cancelled = _count(orders, CANCELLED)
    returned = _count(orders, RETURNED)

    regions: Dict[str, Counter] = defaultdict(Counter)
    for order in orders:
        stats = regions[resolve_region(order.governorate, order.city)]
        stats["total"] += 1
        if order.status in (DELIVERED, CANCELLED, RETURNED):
            stats[order.status] += 1

    performance = sorted(
        (
            {
                "name": region,
                "total": stats["total"],
                "delivered": stats[DELIVERED],
                "cancelled": stats[CANCELLED],
                "returned": stats[RETURNED],
                "delivery_rate": safe_ratio(stats[DELIVERED], stats["total"]),
            }
            for region, stats in regions.items()
        ),
        key=lambda r: (-r["total"], r["name"]),
    )

    return {
        "summary": {
            "total_orders": total,
            "delivered_orders": delivered,
            "shipped_orders": _count(orders, SHIPPED),
            "cancelled_orders": cancelled,
            "returned_orders": returned,
            "delivery_rate": safe_ratio(delivered, total),
            "failure_rate": safe_ratio(cancelled + returned, total),
            "pending_orders": total - delivered - cancelled - returned,
        },
        "region_performance": performance[:region_limit],
    }


async def delivery_rate(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    return delivery_report(await store.orders(tenant_id, window))


# =============================================================================
# ORDER STATUS TIME
# =============================================================================

def _hours(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Elapsed hours, or None when either end is missing or the gap is noise."""
    if start is None or end is None:
        return None
    hours = (end - start).total_seconds() / 3600
    if 0 <= hours < MAX_TRANSITION_HOURS:
        return hours
    return None


def status_time_report(orders: Sequence[OrderRecord]) -> Dict:
    """
    Average hours between lifecycle transitions.

    Transition instants are the first confirmed/shipped/delivered entries of
    each order's status history.
    """
    samples: Dict[str, List[float]] = {
        "pending_to_confirmed": [],
        "confirmed_to_shipped": [],
        "shipped_to_delivered": [],
        "total_processing": [],
    }

    for order in orders:
        confirmed = order.first_transition(CONFIRMED)
        shipped = order.first_transition(SHIPPED)
        delivered = order.first_transition(DELIVERED)
        spans = {
            "pending_to_confirmed": _hours(order.created_at, confirmed),
            "confirmed_to_shipped": _hours(confirmed, shipped),
            "shipped_to_delivered": _hours(shipped, delivered),
            "total_processing": _hours(order.created_at, delivered),
        }
        for name, hours in spans.items():
            if hours is not None:
                samples[name].append(hours)

    statuses = Counter(o.status for o in orders)
    total = len(orders)

    return {
        "avg_times": {name: round2(safe_average(values)) for name, values in samples.items()},
        "sample_sizes": {name: len(values) for name, values in samples.items()},
        "status_distribution": [
            {"status": status, "count": count, "percentage": safe_ratio(count, total)}
            for status, count in sorted(statuses.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
        "total_orders": total,
    }


async def order_status_time(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    return status_time_report(await store.orders(tenant_id, window, include_history=True))


# =============================================================================
# PAYMENT METHODS / REGIONS
# =============================================================================

def payment_methods_report(orders: Sequence[OrderRecord]) -> Dict:
    methods: Dict[str, Dict] = {}
    for order in orders:
        method = resolve_payment_method(order.payment_method)
        entry = methods.setdefault(method, {"orders": 0, "revenue": 0.0, "completed": 0, "cancelled": 0})
        entry["orders"] += 1
        entry["revenue"] += order.total
        if order.status == DELIVERED:
            entry["completed"] += 1
        elif order.status == CANCELLED:
            entry["cancelled"] += 1

    total_orders = len(orders)
    rows = sorted(
        (
            {
                "name": method,
                "count": m["orders"],
                "revenue": round2(m["revenue"]),
                "completed": m["completed"],
                "cancelled": m["cancelled"],
                "percentage": safe_ratio(m["orders"], total_orders),
                "success_rate": safe_ratio(m["completed"], m["orders"]),
                "cancellation_rate": safe_ratio(m["cancelled"], m["orders"]),
                "average_order_value": safe_divide(m["revenue"], m["orders"]),
            }
            for method, m in methods.items()
        ),
        key=lambda r: (-r["count"], r["name"]),
    )
    return {
        "methods": rows,
        "total_revenue": round2(sum(o.total for o in orders)),
        "total_orders": total_orders,
    }


async def payment_methods(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    return payment_methods_report(await store.orders(tenant_id, window))


def regions_report(orders: Sequence[OrderRecord]) -> Dict:
    regions: Dict[str, Dict] = {}
    for order in orders:
        region = resolve_region(order.governorate, order.city)
        entry = regions.setdefault(region, {"orders": 0, "revenue": 0.0, "customers": set()})
        entry["orders"] += 1
        entry["revenue"] += order.total
        if order.customer_id:
            entry["customers"].add(order.customer_id)

    total_revenue = sum(r["revenue"] for r in regions.values())
    rows = sorted(
        (
            {
                "region": region,
                "orders": r["orders"],
                "revenue": round2(r["revenue"]),
                "customers_count": len(r["customers"]),
                "avg_order_value": safe_divide(r["revenue"], r["orders"]),
                "percentage": safe_ratio(r["revenue"], total_revenue),
            }
            for region, r in regions.items()
        ),
        key=lambda r: (-r["revenue"], r["region"]),
    )
    return {
        "regions": rows,
        "total_regions": len(rows),
        "total_revenue": round2(total_revenue),
        "total_orders": len(orders),
    }


async def regions(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    return regions_report(await store.orders(tenant_id, window))


# =============================================================================
# TEAM PERFORMANCE
# =============================================================================

def team_report(users: Sequence[UserRecord], orders: Sequence[OrderRecord]) -> Dict:
    """Orders created and confirmed per active staff member."""
    members = {
        u.id: {
            "user_id": u.id,
            "user_name": u.name,
            "email": u.email,
            "role": u.role,
            "orders_created": 0,
            "orders_confirmed": 0,
            "total_revenue": 0.0,
            "delivered_orders": 0,
            "cancelled_orders": 0,
        }
        for u in users
    }

    for order in orders:
        creator = members.get(order.created_by) if order.created_by else None
        if creator is not None:
            creator["orders_created"] += 1
            if order.status == DELIVERED:
                creator["total_revenue"] += order.total
                creator["delivered_orders"] += 1
            elif order.status == CANCELLED:
                creator["cancelled_orders"] += 1
        confirmer = members.get(order.confirmed_by) if order.confirmed_by else None
        if confirmer is not None:
            confirmer["orders_confirmed"] += 1

    team = sorted(
        (
            {
                **m,
                "total_revenue": round2(m["total_revenue"]),
                "success_rate": safe_ratio(m["delivered_orders"], m["orders_created"]),
                "avg_order_value": safe_divide(m["total_revenue"], m["delivered_orders"]),
            }
            for m in members.values()
            if m["orders_created"] > 0 or m["orders_confirmed"] > 0
        ),
        key=lambda m: (-m["total_revenue"], m["user_id"]),
    )
    return {
        "team_members": team,
        "total_team_members": len(team),
        "total_orders_processed": len(orders),
        "total_team_revenue": round2(sum(m["total_revenue"] for m in team)),
    }


async def team_performance(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    users, orders = await store.gather(
        store.active_users(tenant_id),
        store.orders(tenant_id, window),
    )
    return team_report(users, orders)


# =============================================================================
# COUPONS
# =============================================================================

def coupons_report(coupons: Sequence[CouponRecord]) -> Dict:
    """
    Redemptions per coupon in the window.

    Orders are not linked to redemptions, so the discount is estimated as
    ``value * uses`` for both coupon types.
    """
    rows = sorted(
        (
            {
                "code": c.code,
                "name": c.name,
                "type": c.type,
                "value": round2(c.value),
                "usage_count": c.uses,
                "usage_limit": c.usage_limit,
                "total_discount": round2(c.value * c.uses),
                "is_active": c.is_active,
                "valid_from": c.valid_from.isoformat() if c.valid_from else None,
                "valid_to": c.valid_to.isoformat() if c.valid_to else None,
            }
            for c in coupons
        ),
        key=lambda r: (-r["usage_count"], r["code"]),
    )
    total_discount = sum(c.value * c.uses for c in coupons)
    total_uses = sum(c.uses for c in coupons)
    return {
        "coupons": rows,
        "total_coupons": len(rows),
        "active_coupons": sum(1 for c in coupons if c.is_active),
        "total_discount": round2(total_discount),
        "total_orders": total_uses,
        "avg_discount_per_order": safe_divide(total_discount, total_uses),
    }


async def coupons(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    return coupons_report(await store.coupons(tenant_id, window))


# =============================================================================
# VARIATIONS / CATEGORIES
# =============================================================================

def variations_report(orders: Sequence[OrderRecord], limit: int = 20) -> Dict:
    """Order lines grouped by product and colour/size variant."""
    variations: Dict[str, Dict] = {}
    for order in orders:
        for item in order.items:
            parts = [p for p in (item.color, item.size) if p]
            if not parts:
                continue
            variation = " - ".join(parts)
            name = _item_name(item)
            entry = variations.setdefault(f"{name} - {variation}", {
                "product_name": name,
                "variation": variation,
                "color": item.color or "",
                "size": item.size or "",
                "quantity": 0,
                "revenue": 0.0,
                "orders": 0,
            })
            entry["quantity"] += item.quantity
            entry["revenue"] += item.revenue
            entry["orders"] += 1

    top = sorted(variations.values(), key=lambda v: (-v["revenue"], v["product_name"], v["variation"]))[:limit]
    return {
        "variations": [{**v, "revenue": round2(v["revenue"])} for v in top],
        "total_variations": len(top),
        "total_revenue": round2(sum(v["revenue"] for v in top)),
        "total_quantity": sum(v["quantity"] for v in top),
    }


async def variations(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    return variations_report(await store.orders(tenant_id, window, include_items=True))


def categories_report(orders: Sequence[OrderRecord]) -> Dict:
    categories: Dict[str, Dict] = {}
    for order in orders:
        for item in order.items:
            name = resolve_category(item.product.category if item.product else None)
            entry = categories.setdefault(name, {"quantity": 0, "revenue": 0.0, "orders": 0, "products": set()})
            entry["quantity"] += item.quantity
            entry["revenue"] += item.revenue
            entry["orders"] += 1
            if item.product:
                entry["products"].add(item.product.id)

    total_revenue = sum(c["revenue"] for c in categories.values())
    rows = sorted(
        (
            {
                "category": name,
                "quantity": c["quantity"],
                "revenue": round2(c["revenue"]),
                "orders": c["orders"],
                "products_count": len(c["products"]),
                "percentage": safe_ratio(c["revenue"], total_revenue),
            }
            for name, c in categories.items()
        ),
        key=lambda r: (-r["revenue"], r["category"]),
    )
    return {
        "categories": rows,
        "total_categories": len(rows),
        "total_revenue": round2(total_revenue),
        "total_quantity": sum(r["quantity"] for r in rows),
    }


async def categories(store: EventStoreReader, tenant_id: str, window: Optional[TimeWindow] = None) -> Dict:
    return categories_report(await store.orders(tenant_id, window, include_items=True))


# =============================================================================
# STOCK FORECAST
# =============================================================================

class Urgency(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    MODERATE = "moderate"
    SAFE = "safe"


def urgency_for(days_until_stockout: int) -> Urgency:
    if days_until_stockout <= 7:
        return Urgency.CRITICAL
    if days_until_stockout <= 14:
        return Urgency.WARNING
    if days_until_stockout <= 30:
        return Urgency.MODERATE
    return Urgency.SAFE


def forecast_product(product: ProductRecord, units_sold: int) -> Dict:
    daily_avg = units_sold / FORECAST_DAYS
    stock = product.stock or 0
    days_left = math.floor(stock / daily_avg) if daily_avg > 0 else NO_VELOCITY_DAYS
    return {
        "id": product.id,
        "name": product.name,
        "stock": stock,
        "threshold": LOW_STOCK_THRESHOLD,
        "total_sold_last_30_days": units_sold,
        "daily_avg_sales": round2(daily_avg),
        "avg_monthly_sales": round2(units_sold),
        "days_until_stockout": days_left,
        "urgency": urgency_for(days_left).value,
        "suggested_reorder": math.ceil(daily_avg * FORECAST_DAYS),
    }


def stock_forecast_report(
    products: Sequence[ProductRecord],
    items: Sequence[OrderItemRecord],
    list_limit: int = 20,
    forecast_limit: int = 50,
) -> Dict:
    """Days of stock left per product from the last 30 days of sales."""
    sold: Counter = Counter()
    for item in items:
        if item.product_id:
            sold[item.product_id] += item.quantity

    forecasts = [
        forecast_product(p, sold.get(p.id, 0))
        for p in products
        if sold.get(p.id, 0) > 0 or (p.stock or 0) > 0
    ]
    forecasts.sort(key=lambda f: (f["days_until_stockout"], f["name"]))

    low_stock = [f for f in forecasts if 0 < f["stock"] <= f["threshold"]]
    fast_moving = sorted(
        (f for f in forecasts if f["daily_avg_sales"] > 0),
        key=lambda f: (-f["daily_avg_sales"], f["name"]),
    )[:list_limit]
    overstocked = sorted(
        (
            f for f in forecasts
            if f["stock"] > 0 and f["avg_monthly_sales"] > 0
            and f["stock"] / f["avg_monthly_sales"] > OVERSTOCK_MONTHS
        ),
        key=lambda f: (-(f["stock"] / f["avg_monthly_sales"]), f["name"]),
    )[:list_limit]

    urgency_counts = Counter(f["urgency"] for f in forecasts)
    return {
        "low_stock_products": low_stock,
        "fast_moving_products": fast_moving,
        "overstocked_products": overstocked,
        "total_low_stock": len(low_stock),
        "total_out_of_stock": sum(1 for f in forecasts if f["stock"] == 0),
        "forecasts": forecasts[:forecast_limit],
        "summary": {
            "total_products": len(forecasts),
            "critical_count": urgency_counts[Urgency.CRITICAL.value],
            "warning_count": urgency_counts[Urgency.WARNING.value],
            "moderate_count": urgency_counts[Urgency.MODERATE.value],
            "safe_count": urgency_counts[Urgency.SAFE.value],
        },
    }


async def stock_forecast(store: EventStoreReader, tenant_id: str, now: Optional[datetime] = None) -> Dict:
    """
    Forecast stock exhaustion for active products.

    Order ids are fetched first and bound the item read that follows.
    """
    window = trailing_window(FORECAST_DAYS, now)
    products, orders = await store.gather(
        store.products(tenant_id, active_only=True),
        store.orders(tenant_id, window, statuses=list(SELLING_STATUSES)),
    )
    items = await store.items_for_orders(tenant_id, [o.id for o in orders])
    return stock_forecast_report(products, items)

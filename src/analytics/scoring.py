"""
Scoring Engine

Two independent 0-100 weighted-point scores:

- Customer quality: frequency, monetary value, recency, completion rate
- Product health: sales volume, profit margin, delivery rate, stock level

Both are pure folds over rows fetched in bulk beforehand; nothing here
queries per customer or per product.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from src.analytics.metrics import (
    clamp_score,
    estimated_unit_cost,
    resolve_category,
    round2,
    safe_average,
    safe_divide,
    safe_ratio,
)
from src.analytics.records import CustomerRecord, OrderItemRecord, OrderRecord, ProductRecord
from src.analytics.store import EventStoreReader
from src.analytics.windows import TimeWindow
from src.database.models import OrderStatus

logger = structlog.get_logger(__name__)

DELIVERED = OrderStatus.DELIVERED.value
CANCELLED = OrderStatus.CANCELLED.value
RETURNED = OrderStatus.RETURNED.value

NO_RECENT_ORDER_DAYS = 999
CUSTOMER_REPORT_LIMIT = 100
PRODUCT_REPORT_LIMIT = 50
ATTENTION_LIMIT = 10

# (threshold, points, inclusive); first matching rung wins
Ladder = Sequence[Tuple[float, int, bool]]

FREQUENCY_LADDER: Ladder = ((10, 30, True), (5, 20, True), (3, 10, True), (1, 5, True))
MONETARY_LADDER: Ladder = ((10000, 30, True), (5000, 20, True), (2000, 10, True), (500, 5, True))
RECENCY_LADDER: Sequence[Tuple[int, int]] = ((7, 20), (30, 15), (90, 10), (180, 5))

SALES_LADDER: Ladder = ((100, 25, True), (50, 20, True), (20, 15, True), (5, 10, True), (1, 5, True))
MARGIN_LADDER: Ladder = ((40, 25, True), (30, 20, True), (20, 15, True), (10, 10, True), (0, 5, False))
DELIVERY_LADDER: Ladder = ((90, 25, True), (80, 20, True), (70, 15, True), (60, 10, True), (0, 5, False))
STOCK_LADDER: Ladder = ((50, 25, True), (20, 20, True), (10, 15, True), (5, 10, True), (0, 5, False))


class CustomerTier(str, Enum):
    VIP = "VIP"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ProductStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    WARNING = "warning"
    POOR = "poor"


class Recommendation(str, Enum):
    EXPAND = "expand"
    CONTINUE = "continue"
    IMPROVE = "improve"
    DISCONTINUE = "discontinue"
    REVIEW = "review"


def ladder_points(value: float, ladder: Ladder) -> int:
    """Points of the first rung ``value`` reaches, 0 below the last rung."""
    for threshold, points, inclusive in ladder:
        if value >= threshold if inclusive else value > threshold:
            return points
    return 0


def recency_points(days: int) -> int:
    for limit, points in RECENCY_LADDER:
        if days <= limit:
            return points
    return 0


# =============================================================================
# CUSTOMER QUALITY
# =============================================================================

@dataclass
class CustomerScore:
    customer_id: str
    customer_name: str
    customer_phone: Optional[str]
    total_orders: int
    completed_orders: int
    cancelled_orders: int
    total_spent: float
    avg_order_value: float
    days_since_last_order: int
    completion_rate: float
    score: int
    tier: CustomerTier


def customer_tier(score: int) -> CustomerTier:
    if score >= 80:
        return CustomerTier.VIP
    if score >= 60:
        return CustomerTier.HIGH
    if score >= 40:
        return CustomerTier.MEDIUM
    return CustomerTier.LOW


def score_customer(
    customer: CustomerRecord,
    orders: Sequence[OrderRecord],
    now: datetime,
) -> Optional[CustomerScore]:
    """Score one customer; customers without orders are not scored."""
    total = len(orders)
    if total == 0:
        return None

    delivered = [o for o in orders if o.status == DELIVERED]
    cancelled = sum(1 for o in orders if o.status == CANCELLED)
    spent = sum(o.total for o in delivered)
    last_order = max(o.created_at for o in orders)
    days_since = int((now - last_order).total_seconds() // 86400)
    completion = len(delivered) / total

    score = (
        ladder_points(total, FREQUENCY_LADDER)
        + ladder_points(spent, MONETARY_LADDER)
        + recency_points(days_since)
        + int(completion * 20)
    )
    score = clamp_score(score)

    return CustomerScore(
        customer_id=customer.id,
        customer_name=customer.name,
        customer_phone=customer.phone,
        total_orders=total,
        completed_orders=len(delivered),
        cancelled_orders=cancelled,
        total_spent=round2(spent),
        avg_order_value=safe_divide(spent, len(delivered)),
        days_since_last_order=days_since,
        completion_rate=round2(completion * 100),
        score=score,
        tier=customer_tier(score),
    )


def customer_quality_report(
    customers: Iterable[CustomerRecord],
    orders: Iterable[OrderRecord],
    now: Optional[datetime] = None,
    limit: int = CUSTOMER_REPORT_LIMIT,
) -> Dict:
    now = now or datetime.now()
    by_customer: Dict[str, List[OrderRecord]] = defaultdict(list)
    for order in orders:
        if order.customer_id:
            by_customer[order.customer_id].append(order)

    scores = [
        s for s in (score_customer(c, by_customer.get(c.id, ()), now) for c in customers)
        if s is not None
    ]
    scores.sort(key=lambda s: (-s.score, -s.total_spent, s.customer_id))

    tier_counts = {tier.value: 0 for tier in CustomerTier}
    for s in scores:
        tier_counts[s.tier.value] += 1

    total_revenue = sum(s.total_spent for s in scores)
    vip_revenue = sum(s.total_spent for s in scores if s.tier == CustomerTier.VIP)

    return {
        "customers": [{**asdict(s), "tier": s.tier.value} for s in scores[:limit]],
        "total_customers": len(scores),
        "tier_counts": tier_counts,
        "total_revenue": round2(total_revenue),
        "vip_revenue": round2(vip_revenue),
        "vip_revenue_percentage": safe_ratio(vip_revenue, total_revenue),
        "avg_customer_score": round2(safe_average(s.score for s in scores)),
    }


async def customer_quality(
    store: EventStoreReader,
    tenant_id: str,
    window: Optional[TimeWindow] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """Customer quality scores; orders are limited to ``window`` when given."""
    customers, orders = await store.gather(
        store.customers(tenant_id),
        store.orders(tenant_id, window),
    )
    return customer_quality_report(customers, orders, now=now)


# =============================================================================
# PRODUCT HEALTH
# =============================================================================

@dataclass
class ProductHealth:
    product_id: str
    product_name: str
    category: str
    price: float
    stock: int
    total_orders: int
    total_quantity: int
    delivered_orders: int
    cancelled_orders: int
    returned_orders: int
    revenue: float
    profit: float
    profit_margin: float
    delivery_rate: float
    return_rate: float
    score: int
    recommendation: Recommendation
    status: ProductStatus


def product_verdict(score: int, total_orders: int) -> Tuple[Recommendation, ProductStatus]:
    if score >= 80:
        return Recommendation.EXPAND, ProductStatus.EXCELLENT
    if score >= 60:
        return Recommendation.CONTINUE, ProductStatus.GOOD
    if score >= 40:
        return Recommendation.IMPROVE, ProductStatus.AVERAGE
    if score < 20 and total_orders > 5:
        return Recommendation.DISCONTINUE, ProductStatus.POOR
    return Recommendation.REVIEW, ProductStatus.WARNING


def score_product(product: ProductRecord, lines: Sequence[Tuple[OrderItemRecord, str]]) -> Optional[ProductHealth]:
    """
    Score one product from its order lines.

    Args:
        product: Catalog row
        lines: ``(item, order_status)`` pairs for the product

    Returns:
        None for products with no orders and no stock
    """
    total = len(lines)
    stock = product.stock or 0
    if total == 0 and stock <= 0:
        return None

    delivered = [item for item, status in lines if status == DELIVERED]
    cancelled = sum(1 for _, status in lines if status == CANCELLED)
    returned = sum(1 for _, status in lines if status == RETURNED)

    quantity = sum(item.quantity for item, _ in lines)
    revenue = sum(item.revenue for item in delivered)
    unit_cost = estimated_unit_cost(product.cost_price, product.price)
    profit = revenue - unit_cost * sum(item.quantity for item in delivered)
    margin = profit / revenue * 100 if revenue > 0 else 0.0
    delivery_rate = len(delivered) / total * 100 if total else 0.0

    score = clamp_score(
        ladder_points(quantity, SALES_LADDER)
        + ladder_points(margin, MARGIN_LADDER)
        + ladder_points(delivery_rate, DELIVERY_LADDER)
        + ladder_points(stock, STOCK_LADDER)
    )
    recommendation, status = product_verdict(score, total)

    return ProductHealth(
        product_id=product.id,
        product_name=product.name,
        category=resolve_category(product.category),
        price=round2(product.price),
        stock=stock,
        total_orders=total,
        total_quantity=quantity,
        delivered_orders=len(delivered),
        cancelled_orders=cancelled,
        returned_orders=returned,
        revenue=round2(revenue),
        profit=round2(profit),
        profit_margin=round2(margin),
        delivery_rate=round2(delivery_rate),
        return_rate=safe_ratio(returned, total),
        score=score,
        recommendation=recommendation,
        status=status,
    )


def _health_row(h: ProductHealth) -> Dict:
    return {**asdict(h), "recommendation": h.recommendation.value, "status": h.status.value}


def product_health_report(
    products: Iterable[ProductRecord],
    orders: Iterable[OrderRecord],
    limit: int = PRODUCT_REPORT_LIMIT,
) -> Dict:
    lines: Dict[str, List[Tuple[OrderItemRecord, str]]] = defaultdict(list)
    for order in orders:
        for item in order.items:
            if item.product_id:
                lines[item.product_id].append((item, order.status))

    scores = [
        h for h in (score_product(p, lines.get(p.id, ())) for p in products)
        if h is not None
    ]
    scores.sort(key=lambda h: (-h.score, h.product_id))

    status_counts = {status.value: 0 for status in ProductStatus}
    for h in scores:
        status_counts[h.status.value] += 1

    attention = [h for h in scores if h.status in (ProductStatus.POOR, ProductStatus.WARNING)]

    return {
        "products": [_health_row(h) for h in scores[:limit]],
        "total_products": len(scores),
        "status_counts": status_counts,
        "avg_score": round2(safe_average(h.score for h in scores)),
        "products_needing_attention": [_health_row(h) for h in attention[:ATTENTION_LIMIT]],
    }


async def product_health(
    store: EventStoreReader,
    tenant_id: str,
    window: Optional[TimeWindow] = None,
) -> Dict:
    """Health scores for active products over orders in ``window``."""
    products, orders = await store.gather(
        store.products(tenant_id, active_only=True),
        store.orders(tenant_id, window, include_items=True),
    )
    logger.debug("Scoring product health", tenant_id=tenant_id, products=len(products), orders=len(orders))
    return product_health_report(products, orders)

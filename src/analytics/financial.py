"""
Financial Aggregator

Profit, COGS and margin over delivered orders, rolled up by product, by
category and by calendar day.

Revenue is the order total; COGS is summed per line item using the
product's cost price, or 60% of the line price when no cost is recorded.
"""

from typing import Dict, Iterable, List, Optional

import structlog

from src.analytics.daily import daily_profit
from src.analytics.metrics import (
    UNKNOWN_PRODUCT,
    estimated_unit_cost,
    resolve_category,
    round2,
    safe_divide,
    safe_ratio,
)
from src.analytics.records import OrderItemRecord, OrderRecord
from src.analytics.store import EventStoreReader
from src.analytics.windows import TimeWindow
from src.database.models import OrderStatus

logger = structlog.get_logger(__name__)

TOP_PRODUCTS_LIMIT = 20


def item_cogs(item: OrderItemRecord) -> float:
    cost_price = item.product.cost_price if item.product else None
    return estimated_unit_cost(cost_price, item.price) * item.quantity


def _rollup_row(name: str, totals: Dict[str, float], with_quantity: bool = False) -> Dict:
    row = {
        "name": name,
        "revenue": round2(totals["revenue"]),
        "cogs": round2(totals["cogs"]),
        "profit": round2(totals["profit"]),
        "margin": safe_ratio(totals["profit"], totals["revenue"]),
    }
    if with_quantity:
        row["quantity"] = int(totals["quantity"])
    return row


def profit_report(orders: Iterable[OrderRecord], top_limit: int = TOP_PRODUCTS_LIMIT) -> Dict:
    """
    Fold delivered orders into the profit payload.

    Callers pass delivered orders with their items loaded.
    """
    revenue = cogs = shipping = 0.0
    order_count = 0
    by_product: Dict[str, Dict[str, float]] = {}
    by_category: Dict[str, Dict[str, float]] = {}
    day_rows: List[Dict] = []

    for order in orders:
        order_count += 1
        revenue += order.total
        shipping += order.shipping
        order_cogs = order_profit = 0.0

        for item in order.items:
            line_cogs = item_cogs(item)
            line_profit = item.revenue - line_cogs
            order_cogs += line_cogs
            order_profit += line_profit

            name = (item.product.name if item.product else None) or item.product_name or UNKNOWN_PRODUCT
            product = by_product.setdefault(name, {"revenue": 0.0, "cogs": 0.0, "profit": 0.0, "quantity": 0})
            product["revenue"] += item.revenue
            product["cogs"] += line_cogs
            product["profit"] += line_profit
            product["quantity"] += item.quantity

            category = by_category.setdefault(
                resolve_category(item.product.category if item.product else None),
                {"revenue": 0.0, "cogs": 0.0, "profit": 0.0},
            )
            category["revenue"] += item.revenue
            category["cogs"] += line_cogs
            category["profit"] += line_profit

        cogs += order_cogs
        day_rows.append({
            "day": order.created_at.date(),
            "revenue": order.total,
            "cogs": order_cogs,
            "profit": order_profit,
            "orders": 1,
        })

    gross_profit = revenue - cogs
    net_profit = gross_profit - shipping

    top_products = sorted(
        (_rollup_row(name, totals, with_quantity=True) for name, totals in by_product.items()),
        key=lambda r: (-r["profit"], r["name"]),
    )[:top_limit]
    categories = sorted(
        (_rollup_row(name, totals) for name, totals in by_category.items()),
        key=lambda r: (-r["profit"], r["name"]),
    )

    return {
        "summary": {
            "total_revenue": round2(revenue),
            "total_cogs": round2(cogs),
            "total_shipping": round2(shipping),
            "gross_profit": round2(gross_profit),
            "net_profit": round2(net_profit),
            "profit_margin": safe_ratio(net_profit, revenue),
            "total_orders": order_count,
            "avg_order_profit": safe_divide(net_profit, order_count),
        },
        "top_products": top_products,
        "category_breakdown": categories,
        "daily_data": daily_profit(day_rows),
    }


async def profit_analytics(
    store: EventStoreReader,
    tenant_id: str,
    window: Optional[TimeWindow] = None,
) -> Dict:
    orders = await store.orders(
        tenant_id,
        window,
        statuses=[OrderStatus.DELIVERED.value],
        include_items=True,
    )
    logger.debug("Computing profit", tenant_id=tenant_id, delivered_orders=len(orders))
    return profit_report(orders)

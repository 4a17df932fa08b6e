"""
Per-day Series

Calendar-day rollups computed with Polars:

- tracking activity per day (visits, unique visitors, views, carts,
  checkouts, purchases, revenue, conversion rate), gap-filled across the
  whole window
- profit per day for the financial aggregator
"""

from typing import Dict, Iterable, List

import polars as pl
import structlog

from src.analytics.metrics import round2, safe_ratio
from src.analytics.records import TrackedEvent
from src.analytics.store import ADD_TO_CART, CHECKOUT, PURCHASE, EventStoreReader
from src.analytics.windows import TimeWindow

logger = structlog.get_logger(__name__)

STORE_VISIT = "store_visit"
PRODUCT_VIEW = "product_view"

_EVENT_SCHEMA = {
    "day": pl.Date,
    "kind": pl.Utf8,
    "session_id": pl.Utf8,
    "value": pl.Float64,
}

_PROFIT_SCHEMA = {
    "day": pl.Date,
    "revenue": pl.Float64,
    "cogs": pl.Float64,
    "profit": pl.Float64,
    "orders": pl.Int64,
}


def _kind_count(kind: str, alias: str) -> pl.Expr:
    return (pl.col("kind") == kind).sum().alias(alias)


def daily_activity(events: Iterable[TrackedEvent], window: TimeWindow) -> List[Dict]:
    """
    Fold tracking rows into one entry per calendar day of ``window``.

    Days without activity are present with zero counts.
    """
    frame = pl.DataFrame(
        [
            {"day": e.at.date(), "kind": e.kind, "session_id": e.session_id, "value": e.value}
            for e in events
        ],
        schema=_EVENT_SCHEMA,
    )

    per_day = frame.group_by("day").agg(
        _kind_count(STORE_VISIT, "visits"),
        pl.col("session_id").filter(pl.col("kind") == STORE_VISIT).n_unique().alias("unique_visitors"),
        _kind_count(PRODUCT_VIEW, "product_views"),
        _kind_count(ADD_TO_CART, "add_to_carts"),
        _kind_count(CHECKOUT, "checkouts"),
        _kind_count(PURCHASE, "purchases"),
        pl.col("value").filter(pl.col("kind") == PURCHASE).sum().alias("revenue"),
    )

    calendar = pl.DataFrame({
        "day": pl.date_range(window.start.date(), window.end.date(), "1d", eager=True),
    })
    series = calendar.join(per_day, on="day", how="left").fill_null(0).sort("day")

    return [
        {
            "date": row["day"].isoformat(),
            "visits": int(row["visits"]),
            "unique_visitors": int(row["unique_visitors"]),
            "product_views": int(row["product_views"]),
            "add_to_carts": int(row["add_to_carts"]),
            "checkouts": int(row["checkouts"]),
            "purchases": int(row["purchases"]),
            "revenue": round2(row["revenue"]),
            "conversion_rate": safe_ratio(row["purchases"], row["visits"]),
        }
        for row in series.to_dicts()
    ]


def daily_profit(rows: Iterable[Dict]) -> List[Dict]:
    """
    Sum per-order profit rows by calendar day.

    Args:
        rows: ``{"day", "revenue", "cogs", "profit", "orders"}`` dicts
    """
    frame = pl.DataFrame(list(rows), schema=_PROFIT_SCHEMA)
    per_day = (
        frame.group_by("day")
        .agg(pl.col("revenue").sum(), pl.col("cogs").sum(), pl.col("profit").sum(), pl.col("orders").sum())
        .sort("day")
    )
    return [
        {
            "date": row["day"].isoformat(),
            "revenue": round2(row["revenue"]),
            "cogs": round2(row["cogs"]),
            "profit": round2(row["profit"]),
            "orders": int(row["orders"]),
        }
        for row in per_day.to_dicts()
    ]


async def daily_analytics(store: EventStoreReader, tenant_id: str, window: TimeWindow) -> List[Dict]:
    events = await store.tracked_events(tenant_id, window)
    logger.debug("Building daily series", tenant_id=tenant_id, events=len(events), days=round2(window.days))
    return daily_activity(events, window)

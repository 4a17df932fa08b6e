"""
Analytics API Endpoints

Authenticated dashboard routes, one per analyzer. Each resolves the tenant
and window, then hands the analyzer to ``analyzer_response`` which applies
the failure policy and wraps the envelope.
"""

from fastapi import APIRouter, Depends

from src.analytics import daily, financial, funnel, operational, scoring
from src.analytics.store import EventStoreReader
from src.serving.api.dependencies import DateParams, authenticated_tenant, date_params, get_store, top_limit
from src.serving.api.responses import analyzer_response

router = APIRouter()


# =============================================================================
# FUNNEL FAMILY (trailing 30-day default)
# =============================================================================

@router.get("/store")
async def get_store_analytics(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    """Store overview: visits, views, carts, checkouts, purchases and rates."""
    window = dates.window()
    return await analyzer_response(
        "store_analytics",
        lambda: funnel.store_analytics(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/conversion-rate")
async def get_conversion_rate(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.window()
    return await analyzer_response(
        "store_conversion",
        lambda: funnel.store_conversion(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/products/top")
async def get_top_products(
    dates: DateParams = Depends(date_params),
    limit: int = Depends(top_limit),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.window()
    return await analyzer_response(
        "top_products",
        lambda: funnel.top_products(store, tenant_id, window, limit=limit),
        tenant_id=tenant_id,
        window=window,
        params={"limit": limit},
    )


@router.get("/products/{product_id}/conversion")
async def get_product_conversion(
    product_id: str,
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    """Conversion pipeline for one product; 404 when the tenant does not own it."""
    window = dates.window()
    return await analyzer_response(
        "product_conversion",
        lambda: funnel.product_conversion(store, tenant_id, product_id, window),
        tenant_id=tenant_id,
        window=window,
        params={"product_id": product_id},
    )


@router.get("/products")
async def get_product_analytics(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.window()
    return await analyzer_response(
        "product_analytics",
        lambda: funnel.product_analytics(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/daily")
async def get_daily_analytics(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.window()
    return await analyzer_response(
        "daily_analytics",
        lambda: daily.daily_analytics(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


# =============================================================================
# OPERATIONAL (all time unless dates are given)
# =============================================================================

@router.get("/variations")
async def get_variations(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "variations",
        lambda: operational.variations(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/categories")
async def get_categories(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "categories",
        lambda: operational.categories(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/payment-methods")
async def get_payment_methods(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "payment_methods",
        lambda: operational.payment_methods(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/regions")
async def get_regions(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "regions",
        lambda: operational.regions(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/coupons")
async def get_coupons(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "coupons",
        lambda: operational.coupons(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/cod-performance")
async def get_cod_performance(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "cod_performance",
        lambda: operational.cod_performance(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/abandoned-carts")
async def get_abandoned_carts(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "abandoned_carts",
        lambda: operational.abandoned_carts(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/customer-quality")
async def get_customer_quality(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "customer_quality",
        lambda: scoring.customer_quality(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/profit")
async def get_profit(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    """Revenue, COGS, shipping and margins over delivered orders."""
    window = dates.optional_window()
    return await analyzer_response(
        "profit",
        lambda: financial.profit_analytics(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/delivery-rate")
async def get_delivery_rate(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "delivery_rate",
        lambda: operational.delivery_rate(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/order-status-time")
async def get_order_status_time(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "order_status_time",
        lambda: operational.order_status_time(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/product-health")
async def get_product_health(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "product_health",
        lambda: scoring.product_health(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/returns")
async def get_returns(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "returns",
        lambda: operational.returns_analysis(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/team-performance")
async def get_team_performance(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.optional_window()
    return await analyzer_response(
        "team_performance",
        lambda: operational.team_performance(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/funnel")
async def get_funnel(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    """Six-stage funnel from store visit to delivered order."""
    window = dates.optional_window()
    return await analyzer_response(
        "funnel",
        lambda: funnel.funnel_analysis(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/stock-forecast")
async def get_stock_forecast(
    tenant_id: str = Depends(authenticated_tenant),
    store: EventStoreReader = Depends(get_store),
):
    """Days of stock left per active product from the last 30 days of sales."""
    return await analyzer_response(
        "stock_forecast",
        lambda: operational.stock_forecast(store, tenant_id),
        tenant_id=tenant_id,
        window=None,
    )

"""
Storefront Endpoints

Public routes called by the storefront:
- tracking writes (store visit, product view, conversion event)
- read-only store overview, top products and daily series

Tracking bodies accept the storefront's camelCase field names. Missing
required fields answer 400 instead of a schema error so the storefront sees
the same envelope everywhere.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
import structlog

from src.analytics import daily, funnel, tracking
from src.analytics.exceptions import EntityNotFoundError
from src.analytics.store import EventStoreReader
from src.serving.api.dependencies import (
    DateParams,
    date_params,
    get_store,
    public_tenant,
    top_limit,
    tracking_tenant,
)
from src.serving.api.responses import analyzer_response, error_response

router = APIRouter()
logger = structlog.get_logger(__name__)

TRACKING_FAILED = "Failed to record tracking event"


class TrackingBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: Optional[str] = Field(default=None, alias="sessionId")


class StoreVisitBody(TrackingBody):
    ip_address: Optional[str] = Field(default=None, alias="ipAddress")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    referrer: Optional[str] = None
    landing_page: Optional[str] = Field(default=None, alias="landingPage")


class ProductViewBody(TrackingBody):
    product_id: Optional[str] = Field(default=None, alias="productId")
    source: Optional[str] = None


class ConversionBody(TrackingBody):
    event_type: Optional[str] = Field(default=None, alias="eventType")
    product_id: Optional[str] = Field(default=None, alias="productId")
    order_id: Optional[str] = Field(default=None, alias="orderId")
    value: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None


def _missing(**fields: Optional[str]) -> List[str]:
    return [name for name, value in fields.items() if not value]


def _missing_response(missing: List[str], path: str):
    logger.warning("Tracking request missing fields", missing=missing, path=path)
    return error_response(400, f"Missing required fields: {', '.join(missing)}")


def _recorded(message: str, record_id: Optional[str]) -> Dict[str, Any]:
    return {"success": True, "message": message, "data": {"id": record_id}}


# =============================================================================
# TRACKING WRITES
# =============================================================================

@router.post("/track/store-visit")
async def track_store_visit(
    body: StoreVisitBody,
    request: Request,
    tenant_id: Optional[str] = Depends(tracking_tenant),
    store: EventStoreReader = Depends(get_store),
):
    missing = _missing(companyId=tenant_id, sessionId=body.session_id)
    if missing:
        return _missing_response(missing, request.url.path)

    try:
        visit_id = await tracking.track_store_visit(
            store,
            tenant_id,
            body.session_id,
            ip_address=body.ip_address or (request.client.host if request.client else None),
            user_agent=body.user_agent or request.headers.get("user-agent"),
            referrer=body.referrer,
            landing_page=body.landing_page,
        )
    except Exception as e:
        logger.error("Store visit tracking failed", error=str(e), error_type=type(e).__name__)
        return error_response(500, TRACKING_FAILED, str(e))

    return _recorded("Store visit recorded", visit_id)


@router.post("/track/product-view")
async def track_product_view(
    body: ProductViewBody,
    request: Request,
    tenant_id: Optional[str] = Depends(tracking_tenant),
    store: EventStoreReader = Depends(get_store),
):
    missing = _missing(companyId=tenant_id, productId=body.product_id, sessionId=body.session_id)
    if missing:
        return _missing_response(missing, request.url.path)

    try:
        visit_id = await tracking.track_product_visit(
            store,
            tenant_id,
            body.product_id,
            body.session_id,
            source=body.source,
        )
    except EntityNotFoundError as e:
        return error_response(404, str(e))
    except Exception as e:
        logger.error("Product view tracking failed", error=str(e), error_type=type(e).__name__)
        return error_response(500, TRACKING_FAILED, str(e))

    return _recorded("Product view recorded", visit_id)


@router.post("/track/conversion")
async def track_conversion(
    body: ConversionBody,
    request: Request,
    tenant_id: Optional[str] = Depends(tracking_tenant),
    store: EventStoreReader = Depends(get_store),
):
    missing = _missing(companyId=tenant_id, sessionId=body.session_id, eventType=body.event_type)
    if missing:
        return _missing_response(missing, request.url.path)

    try:
        event_id = await tracking.track_conversion_event(
            store,
            tenant_id,
            body.session_id,
            body.event_type,
            product_id=body.product_id,
            order_id=body.order_id,
            value=body.value,
            metadata=body.metadata,
        )
    except Exception as e:
        logger.error("Conversion tracking failed", error=str(e), error_type=type(e).__name__)
        return error_response(500, TRACKING_FAILED, str(e))

    return _recorded("Conversion event recorded", event_id)


# =============================================================================
# PUBLIC READS
# =============================================================================

@router.get("/public/store")
async def get_public_store_analytics(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(public_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.window()
    return await analyzer_response(
        "store_analytics",
        lambda: funnel.store_analytics(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )


@router.get("/public/products/top")
async def get_public_top_products(
    dates: DateParams = Depends(date_params),
    limit: int = Depends(top_limit),
    tenant_id: str = Depends(public_tenant),
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


@router.get("/public/daily")
async def get_public_daily(
    dates: DateParams = Depends(date_params),
    tenant_id: str = Depends(public_tenant),
    store: EventStoreReader = Depends(get_store),
):
    window = dates.window()
    return await analyzer_response(
        "daily_analytics",
        lambda: daily.daily_analytics(store, tenant_id, window),
        tenant_id=tenant_id,
        window=window,
    )

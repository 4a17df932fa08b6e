"""
Request Dependencies

Tenant resolution, date parameters and the event store handle shared by the
analytics routers.

Tenant sources:
- dashboard routes: ``request.state.company_id`` set by the authenticating
  gateway layer, else the tenant header it forwards
- public storefront reads: the tenant header
- tracking writes: the tenant header, else the ``companyId`` query parameter

A request without a tenant is rejected; no route falls back to a default.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Query, Request
import structlog

from src.analytics.store import EventStoreReader, SqlEventStore
from src.analytics.windows import TimeWindow, optional_window, resolve_window
from src.config import get_settings
from src.config.logging import bind_request_context
from src.database.connection import get_session_factory

logger = structlog.get_logger(__name__)

TENANT_REQUIRED = "Company id is required"


def _tenant_header(request: Request) -> Optional[str]:
    value = request.headers.get(get_settings().security.tenant_header)
    return value.strip() if value and value.strip() else None


def _resolved(request: Request, tenant_id: Optional[str], source: str) -> str:
    if not tenant_id:
        logger.warning("Request rejected without tenant", path=request.url.path, source=source)
        raise HTTPException(status_code=403, detail=TENANT_REQUIRED)
    bind_request_context(tenant_id=tenant_id)
    return tenant_id


def authenticated_tenant(request: Request) -> str:
    """Tenant of an authenticated dashboard request (403 when absent)."""
    tenant_id = getattr(request.state, "company_id", None) or _tenant_header(request)
    return _resolved(request, tenant_id, "authenticated")


def public_tenant(request: Request) -> str:
    """Tenant of a public storefront read (403 when absent)."""
    return _resolved(request, _tenant_header(request), "public")


def tracking_tenant(request: Request, company_id: Optional[str] = Query(None, alias="companyId")) -> Optional[str]:
    """
    Tenant of a tracking write.

    Returns None when absent; the tracking routes answer 400 alongside
    their other missing fields.
    """
    tenant_id = _tenant_header(request) or (company_id.strip() if company_id and company_id.strip() else None)
    if tenant_id:
        bind_request_context(tenant_id=tenant_id)
    return tenant_id


def get_store() -> EventStoreReader:
    """Event store bound to the application's session factory."""
    return SqlEventStore(
        get_session_factory(),
        concurrent_reads=get_settings().analytics.concurrent_reads,
    )


@dataclass
class DateParams:
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    period: Optional[str] = None

    def window(self) -> TimeWindow:
        """Window with the trailing default when no dates are given."""
        return resolve_window(
            self.start_date,
            self.end_date,
            self.period,
            default_days=get_settings().analytics.default_period_days,
        )

    def optional_window(self) -> Optional[TimeWindow]:
        """Window only when a date parameter is present; otherwise all time."""
        return optional_window(
            self.start_date,
            self.end_date,
            self.period,
            default_days=get_settings().analytics.default_period_days,
        )

    def as_params(self) -> dict:
        return {k: v for k, v in vars(self).items() if v is not None}


def date_params(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    period: Optional[str] = Query(None),
) -> DateParams:
    return DateParams(start_date=start_date, end_date=end_date, period=period)


def top_limit(limit: Optional[int] = Query(None, ge=1)) -> int:
    """Ranking size, defaulted and capped by settings."""
    analytics = get_settings().analytics
    if limit is None:
        return analytics.top_products_limit
    return min(limit, analytics.max_top_products_limit)

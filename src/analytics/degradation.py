"""
Analyzer Failure Policy

Dashboards call every analyzer through ``run_analyzer``. Whether an
unclassified failure degrades to a zero-valued payload (HTTP 200 with an
``error`` field) or propagates (HTTP 500) is decided per analyzer by
``ANALYZER_POLICIES``, never at the call site.

Referential errors (``EntityNotFoundError``) always propagate; they map to
404 regardless of policy.
"""

import asyncio
from dataclasses import dataclass
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import structlog
from prometheus_client import Counter, Histogram

from src.analytics.exceptions import AnalyzerTimeoutError, EntityNotFoundError
from src.analytics.financial import profit_report
from src.analytics.funnel import FUNNEL_STAGES, build_funnel
from src.analytics.operational import abandoned_cart_report, cod_report, returns_report, team_report
from src.config import get_settings

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

ANALYZER_RUNS = Counter(
    "commerce_analyzer_runs_total",
    "Analyzer invocations by outcome",
    ["analyzer", "outcome"],
)

ANALYZER_DURATION = Histogram(
    "commerce_analyzer_duration_seconds",
    "Time spent computing an analyzer payload",
    ["analyzer"],
)


# =============================================================================
# POLICY TABLE
# =============================================================================

@dataclass(frozen=True)
class AnalyzerPolicy:
    """How one analyzer behaves when it fails."""
    name: str
    degrades: bool = False
    zero_payload: Optional[Callable[[], Any]] = None

    def fallback(self) -> Any:
        return self.zero_payload() if self.zero_payload else None


def _policy(name: str, zero_payload: Optional[Callable[[], Any]] = None) -> AnalyzerPolicy:
    return AnalyzerPolicy(name=name, degrades=zero_payload is not None, zero_payload=zero_payload)


ANALYZER_POLICIES: Dict[str, AnalyzerPolicy] = {
    policy.name: policy
    for policy in (
        _policy("store_analytics"),
        _policy("store_conversion"),
        _policy("product_conversion"),
        _policy("top_products"),
        _policy("daily_analytics"),
        _policy("product_analytics"),
        _policy("variations"),
        _policy("categories"),
        _policy("payment_methods"),
        _policy("regions"),
        _policy("coupons"),
        _policy("customer_quality"),
        _policy("delivery_rate"),
        _policy("order_status_time"),
        _policy("product_health"),
        _policy("stock_forecast"),
        _policy("cod_performance", lambda: cod_report([])),
        _policy("abandoned_carts", lambda: abandoned_cart_report([], set())),
        _policy("profit", lambda: profit_report([])),
        _policy("returns", lambda: returns_report([], 0)),
        _policy("team_performance", lambda: team_report([], [])),
        _policy("funnel", lambda: build_funnel([(stage, 0) for stage in FUNNEL_STAGES])),
    )
}


def policy_for(name: str) -> AnalyzerPolicy:
    """Unknown analyzers propagate their failures."""
    return ANALYZER_POLICIES.get(name) or AnalyzerPolicy(name=name)


# =============================================================================
# RUNNER
# =============================================================================

@dataclass
class AnalyzerOutcome:
    data: Any
    error: Optional[str] = None
    degraded: bool = False


async def run_analyzer(
    name: str,
    call: Callable[[], Awaitable[Any]],
    *,
    tenant_id: str,
    params: Optional[Mapping[str, Any]] = None,
    timeout: Optional[float] = None,
) -> AnalyzerOutcome:
    """
    Run one analyzer under its failure policy.

    Args:
        name: Key into ``ANALYZER_POLICIES``
        call: Zero-argument coroutine factory computing the payload
        tenant_id: Tenant the payload is computed for (logged on failure)
        params: Request parameters (logged on failure)
        timeout: Seconds before the computation is abandoned; defaults to
            ``analytics.aggregation_timeout_seconds``

    Returns:
        AnalyzerOutcome with ``degraded=True`` when a zero payload was
        substituted

    Raises:
        EntityNotFoundError: always propagated
        Exception: any failure of a non-degrading analyzer
    """
    policy = policy_for(name)
    if timeout is None:
        timeout = get_settings().analytics.aggregation_timeout_seconds

    started = time.perf_counter()
    try:
        data = await asyncio.wait_for(call(), timeout=timeout)
    except EntityNotFoundError:
        ANALYZER_RUNS.labels(analyzer=name, outcome="not_found").inc()
        raise
    except Exception as e:
        if isinstance(e, asyncio.TimeoutError):
            e = AnalyzerTimeoutError(name, timeout)

        if not policy.degrades:
            ANALYZER_RUNS.labels(analyzer=name, outcome="error").inc()
            logger.error(
                "Analyzer failed",
                analyzer=name,
                tenant_id=tenant_id,
                params=dict(params or {}),
                error=str(e),
                error_type=type(e).__name__,
            )
            if isinstance(e, AnalyzerTimeoutError):
                raise e
            raise

        ANALYZER_RUNS.labels(analyzer=name, outcome="degraded").inc()
        logger.error(
            "Analyzer degraded to zero payload",
            analyzer=name,
            tenant_id=tenant_id,
            params=dict(params or {}),
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return AnalyzerOutcome(data=policy.fallback(), error=str(e), degraded=True)
    finally:
        ANALYZER_DURATION.labels(analyzer=name).observe(time.perf_counter() - started)

    ANALYZER_RUNS.labels(analyzer=name, outcome="success").inc()
    return AnalyzerOutcome(data=data)

"""
Response Envelope

Every analytics route answers ``{success, data, period?, error?}``. Failures
of non-degrading analyzers answer 500 with ``{success: false, message,
error}``; referential failures answer 404.
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from fastapi.responses import JSONResponse
import structlog

from src.analytics.degradation import run_analyzer
from src.analytics.exceptions import EntityNotFoundError
from src.analytics.windows import TimeWindow
from src.serving.cache import analytics_cache, analytics_key

logger = structlog.get_logger(__name__)

ANALYTICS_FAILED = "Failed to compute analytics"


def error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)


def envelope(data: Any, window: Optional[TimeWindow] = None, error: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if window is not None:
        body["period"] = window.to_dict()
    if error is not None:
        body["error"] = error
    return body


async def analyzer_response(
    name: str,
    call: Callable[[], Awaitable[Any]],
    *,
    tenant_id: str,
    window: Optional[TimeWindow],
    params: Optional[Mapping[str, Any]] = None,
) -> Union[Dict[str, Any], JSONResponse]:
    """
    Compute (or fetch from cache) one analyzer payload and wrap it.

    Degraded payloads are returned with their error but never cached.
    """
    key = analytics_key(tenant_id, name, window, params)
    cached = await analytics_cache.get(key)
    if cached is not None:
        logger.debug("Analyzer served from cache", analyzer=name)
        return envelope(cached, window)

    try:
        outcome = await run_analyzer(name, call, tenant_id=tenant_id, params=params)
    except EntityNotFoundError as e:
        return error_response(404, str(e))
    except Exception as e:
        return error_response(500, ANALYTICS_FAILED, str(e))

    if not outcome.degraded:
        await analytics_cache.set(key, outcome.data)
    return envelope(outcome.data, window, outcome.error)

"""
HTTP Middleware

- TracingMiddleware: request/trace ids in headers and in the log context
- ErrorHandlingMiddleware: PlanCouncilError → structured JSON response
"""

import logging
import time
from collections.abc import Callable
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from plancouncil.core.exceptions import PlanCouncilError
from plancouncil.observability.logging import log_context

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-Id"
REQUEST_HEADER = "X-Request-Id"
TIMING_HEADER = "X-Response-Time"


class TracingMiddleware(BaseHTTPMiddleware):
    """
    Binds trace and request ids to every log record of a request.

    Ids supplied by the caller are reused so a planning run can be
    followed across calls; otherwise fresh ones are generated.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or uuid4().hex
        request_id = request.headers.get(REQUEST_HEADER) or uuid4().hex
        request.state.trace_id = trace_id
        request.state.request_id = request_id

        started = time.perf_counter()
        with log_context(trace_id=trace_id, request_id=request_id):
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"in {elapsed_ms:.1f}ms"
            )

        response.headers[TRACE_HEADER] = trace_id
        response.headers[REQUEST_HEADER] = request_id
        response.headers[TIMING_HEADER] = f"{elapsed_ms:.2f}ms"
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Converts uncaught errors into JSON bodies.

    PlanCouncilError subclasses keep their own status code and
    ``to_dict()`` body; anything else is logged and reported as a 500
    without internal details.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except PlanCouncilError as e:
            logger.warning(f"{e.code}: {e.message}", extra={"path": request.url.path})
            return JSONResponse(e.to_dict(), status_code=e.status_code)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            return JSONResponse(
                {"error": "INTERNAL_ERROR", "message": "Internal server error"},
                status_code=500,
            )

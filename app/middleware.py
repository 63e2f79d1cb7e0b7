import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request, tagged with the GitHub delivery if any."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_context = {
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else None,
            "github_delivery": request.headers.get("x-github-delivery"),
            "github_event": request.headers.get("x-github-event"),
        }

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "HTTP Request Exception",
                duration=round((time.perf_counter() - start_time) * 1000, 2),
                error=str(exc),
                error_type=type(exc).__name__,
                **request_context,
            )
            raise

        logger.info(
            "HTTP Request",
            status_code=response.status_code,
            duration=round((time.perf_counter() - start_time) * 1000, 2),
            **request_context,
        )
        return response

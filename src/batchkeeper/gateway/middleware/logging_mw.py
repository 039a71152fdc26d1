"""LoggingMiddleware -- 请求级日志

每个请求生成 request_id 并绑定到 structlog contextvars；
会话中已有批次时同时绑定 batch_id，Session / Executor 的日志据此可按请求和批次检索。
/health 与 /ready 探针只记 debug。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

_PROBE_PATHS = frozenset({"/health", "/ready"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        session = getattr(request.app.state, "session", None)
        if session is not None and session.batch is not None:
            structlog.contextvars.bind_contextvars(batch_id=session.batch.batch_id)

        log = structlog.get_logger()
        is_probe = request.url.path in _PROBE_PATHS
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            await log.aerror(
                "request_failed",
                duration_ms=int((time.monotonic() - start) * 1000),
                exc_info=True,
            )
            raise

        duration_ms = int((time.monotonic() - start) * 1000)
        if is_probe:
            await log.adebug("probe_completed", status_code=response.status_code)
        else:
            await log.ainfo(
                "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response

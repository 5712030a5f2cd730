from starlette.middleware.base import BaseHTTPMiddleware

from backend.core.metrics import http_requests_total, route_path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count responses per route template so scanners hitting random paths share one series."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        http_requests_total.inc(labels={
            "method": request.method.upper(),
            "path": route_path(request.scope),
            "status": str(response.status_code),
        })
        return response

from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from backend.core.errors import RateLimitError, app_error_handler
from backend.core.metrics import ratelimit_block_total
from backend.core.logging import get_request_id
from backend.core.ratelimit import FixedWindowLimiter, RateLimitPolicy, RateLimitStore, client_identity


class ApiRateLimitMiddleware(BaseHTTPMiddleware):
    """Coarse per-IP fixed-window limit across every /api path."""

    def __init__(self, app, *, store: RateLimitStore, policy: Optional[RateLimitPolicy], prefix: str = "/api"):
        super().__init__(app)
        self.limiter = FixedWindowLimiter(store, policy) if policy else None
        self.prefix = prefix

    async def dispatch(self, request: Request, call_next):
        # Fail-open when limit not configured or path not matched
        if not self.limiter or not request.url.path.startswith(self.prefix) or request.method == "OPTIONS":
            return await call_next(request)

        # Store calls may hit Redis; keep them off the event loop
        decision = await run_in_threadpool(self.limiter.hit, client_identity(request))
        if not decision.allowed:
            rid = getattr(request.state, "request_id", None) or get_request_id()
            ratelimit_block_total.inc(labels={"scope": "api"})
            return await app_error_handler(
                request,
                RateLimitError(
                    "Rate limit exceeded. Please try again later.",
                    retry_after=decision.window_seconds,
                    limit=decision.limit,
                    request_id=rid,
                ),
            )

        response = await call_next(request)
        # Route-level limits (checkout, subscribe) already set their own headers
        response.headers.setdefault("X-RateLimit-Limit", str(decision.limit))
        response.headers.setdefault("X-RateLimit-Remaining", str(decision.remaining))
        return response

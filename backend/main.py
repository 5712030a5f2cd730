import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from backend/.env
backend_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(backend_dir, ".env"))

from backend.core.config import Settings, settings, validate_config
from backend.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from backend.core.logging import configure_logging
from backend.core.middleware.metrics import MetricsMiddleware
from backend.core.middleware.ratelimit import ApiRateLimitMiddleware
from backend.core.middleware.request_id import RequestIdMiddleware
from backend.core.middleware.security_headers import SecurityHeadersMiddleware
from backend.core.ratelimit import (
    FixedWindowLimiter,
    api_policy,
    build_rate_limit_store,
    checkout_policy,
    subscribe_policy,
    trusted_proxies,
)
from backend.core.validation import validate_env
from backend.features.checkout.provider import PaymentSessionCreator
from backend.features.checkout.service import get_session_creator
from backend.features.pricing.catalog import CATALOG, build_catalog
from backend.features.subscribe.service import InMemorySubscriberStore
from backend.api import checkout, health, metrics, pricing, subscribe


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("clawdbot")
    logger.info("Starting Clawdbot backend...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("clawdbot").info("Stopping Clawdbot backend...")


def create_app(
    settings_obj: Optional[Settings] = None,
    *,
    session_creator: Optional[PaymentSessionCreator] = None,
    time_fn: Optional[Callable[[], float]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings_obj: Configuration (defaults to the process settings)
        session_creator: Payment session creator override; when omitted a
            Stripe creator is built if STRIPE_SECRET_KEY is configured
        time_fn: Clock for the in-memory rate limit store (tests)
    """
    cfg = settings_obj or settings

    app = FastAPI(title="Clawdbot - Backend", lifespan=lifespan)

    store = build_rate_limit_store(cfg, time_fn=time_fn)
    app.state.settings = cfg
    app.state.catalog = CATALOG if settings_obj is None else build_catalog(cfg)
    app.state.rate_limit_store = store
    app.state.trusted_proxies = trusted_proxies(cfg)
    app.state.checkout_limiter = FixedWindowLimiter(store, checkout_policy(cfg))
    app.state.subscribe_limiter = FixedWindowLimiter(store, subscribe_policy(cfg))
    app.state.subscriber_store = InMemorySubscriberStore()
    app.state.session_creator = session_creator or get_session_creator(
        cfg.STRIPE_SECRET_KEY, timeout_seconds=cfg.STRIPE_TIMEOUT_SECONDS
    )

    # Middlewares (last added runs first)
    app.add_middleware(ApiRateLimitMiddleware, store=store, policy=api_policy(cfg))
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # CORS (adjust origins in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cfg.APP_URL.rstrip("/")],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(checkout.router, prefix="/api")
    app.include_router(subscribe.router, prefix="/api")
    app.include_router(pricing.router, prefix="/api")
    app.include_router(health.root_router)
    app.include_router(metrics.router)

    return app


configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))

app = create_app()

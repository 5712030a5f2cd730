"""
Checkout API routes.

- GET  /api/checkout?price=<priceId>: anonymous checkout, 307 redirect to Stripe
- POST /api/checkout: checkout with email, returns {"sessionId", "url"}

Errors use the standard error body (see backend.core.errors):
    400 validation, 429 rate limited, 503 not configured, 500 provider error
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from backend.core.ratelimit import client_identity
from backend.features.checkout.service import CheckoutService


router = APIRouter(prefix="/checkout", tags=["checkout"])


class CheckoutResponse(BaseModel):
    """Created checkout session."""
    sessionId: str
    url: str


def get_checkout_service(request: Request) -> CheckoutService:
    state = request.app.state
    return CheckoutService(
        limiter=state.checkout_limiter,
        session_creator=state.session_creator,
        base_url=state.settings.APP_URL,
        catalog=state.catalog,
    )


@router.get("", status_code=307, response_class=RedirectResponse)
async def checkout_redirect(request: Request, service: CheckoutService = Depends(get_checkout_service)):
    """
    Start checkout for a whitelisted price and redirect to the hosted page.

    The Stripe call runs in the threadpool so a slow provider only holds a
    worker thread, bounded by the client timeout.
    """
    session = await run_in_threadpool(
        service.checkout_from_query, client_identity(request), dict(request.query_params)
    )
    return RedirectResponse(session.url, status_code=307)


@router.post("", response_model=CheckoutResponse)
async def create_checkout(request: Request, service: CheckoutService = Depends(get_checkout_service)):
    """
    Create a checkout session for {priceId, email, successUrl?, cancelUrl?, source?}.

    successUrl/cancelUrl must be same-origin with APP_URL; foreign URLs are
    rejected with invalid_redirect rather than rewritten.
    """
    raw_body = await request.body()
    session = await run_in_threadpool(service.checkout_from_body, client_identity(request), raw_body)
    return {"sessionId": session.session_id, "url": session.url}

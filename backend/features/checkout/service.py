"""
Checkout orchestrator.

Both entry points run the same sequence:

    rate limit -> validate -> provider configured? -> create session

Any stage may short-circuit with an AppError:
- RateLimitError (429): nothing else runs, not even validation.
- ValidationError (400): message names the failing field.
- NotConfiguredError (503): no STRIPE_SECRET_KEY, no session attempted.
- ProviderError (500): generic message; provider details go to logs only.

The provider call is never retried here; the browser may resubmit.
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from backend.core.errors import NotConfiguredError, ProviderError, RateLimitError
from backend.core.logging import log_event, mask_email
from backend.core.metrics import checkout_requests_total, ratelimit_block_total
from backend.core.ratelimit import FixedWindowLimiter
from backend.features.checkout.provider import (
    CheckoutSessionParams,
    PaymentProviderError,
    PaymentSession,
    PaymentSessionCreator,
)
from backend.features.checkout.stripe_provider import DEFAULT_TIMEOUT_SECONDS, StripeSessionCreator
from backend.features.checkout.validator import CheckoutRequest, validate_body, validate_query
from backend.features.pricing.catalog import CATALOG, TierCatalog


TRIAL_PERIOD_DAYS = 14
SUCCESS_PATH = "/success?session_id={CHECKOUT_SESSION_ID}"


def checkout_enabled(secret_key: Optional[str] = None) -> bool:
    """Check if checkout is available (Stripe configured)."""
    return bool(secret_key or os.getenv("STRIPE_SECRET_KEY"))


def get_session_creator(secret_key: Optional[str] = None, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> Optional[PaymentSessionCreator]:
    """Get the Stripe session creator, or None when checkout is disabled."""
    if not checkout_enabled(secret_key):
        return None
    return StripeSessionCreator(secret_key=secret_key, timeout_seconds=timeout_seconds)


@dataclass
class CheckoutService:
    limiter: FixedWindowLimiter
    session_creator: Optional[PaymentSessionCreator]
    base_url: str
    catalog: TierCatalog = CATALOG
    trial_period_days: int = TRIAL_PERIOD_DAYS

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")

    def checkout_from_query(self, client_key: str, params: Mapping[str, str]) -> PaymentSession:
        """Anonymous redirect flow (GET ?price=...)."""
        self._admit(client_key, entry="get")
        request = self._validated(lambda: validate_query(params, catalog=self.catalog), entry="get")
        return self._create_session(request, entry="get")

    def checkout_from_body(self, client_key: str, raw_body: bytes) -> PaymentSession:
        """Checkout with identity (POST {priceId, email, ...})."""
        self._admit(client_key, entry="post")
        request = self._validated(
            lambda: validate_body(raw_body, base_url=self.base_url, catalog=self.catalog),
            entry="post",
        )
        return self._create_session(request, entry="post")

    def session_params(self, request: CheckoutRequest) -> CheckoutSessionParams:
        metadata = {"tier_id": request.tier.id}
        if request.source:
            metadata["source"] = request.source
        return CheckoutSessionParams(
            price_id=request.tier.price_id,
            success_url=request.success_url or f"{self.base_url}{SUCCESS_PATH}",
            cancel_url=request.cancel_url or self.base_url,
            trial_period_days=self.trial_period_days,
            customer_email=request.email,
            metadata=metadata,
        )

    def _admit(self, client_key: str, *, entry: str) -> None:
        decision = self.limiter.hit(client_key)
        if decision.allowed:
            return
        ratelimit_block_total.inc(labels={"scope": "checkout"})
        checkout_requests_total.inc(labels={"entry": entry, "outcome": "rate_limited"})
        raise RateLimitError(
            "Too many checkout attempts. Please try again later.",
            retry_after=decision.window_seconds,
            limit=decision.limit,
        )

    def _validated(self, validate, *, entry: str) -> CheckoutRequest:
        try:
            return validate()
        except ValueError:
            checkout_requests_total.inc(labels={"entry": entry, "outcome": "invalid"})
            raise

    def _create_session(self, request: CheckoutRequest, *, entry: str) -> PaymentSession:
        if self.session_creator is None:
            checkout_requests_total.inc(labels={"entry": entry, "outcome": "not_configured"})
            log_event("warning", "checkout.not_configured", request_id=None, error_code="not_configured")
            raise NotConfiguredError("Checkout is not available right now.")

        params = self.session_params(request)
        try:
            session = self.session_creator.create_session(params)
        except PaymentProviderError as e:
            checkout_requests_total.inc(labels={"entry": entry, "outcome": "provider_error"})
            log_event(
                "error",
                "checkout.provider_error",
                request_id=None,
                error_code="provider_error",
                extra={"tier": request.tier.id, "error": e},
            )
            raise ProviderError() from e

        checkout_requests_total.inc(labels={"entry": entry, "outcome": "created"})
        log_event(
            "info",
            "checkout.session_created",
            request_id=None,
            event_type="checkout",
            extra={"tier": request.tier.id, "session_id": session.session_id, "email": mask_email(request.email)},
        )
        return session

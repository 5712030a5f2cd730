"""
Stripe implementation of the PaymentSessionCreator protocol.

Creates subscription-mode Checkout Sessions. Network retries are disabled
and the HTTP client timeout is bounded, so a slow Stripe cannot pin
request workers; failures surface immediately as PaymentProviderError.
"""
import os
from typing import Any, Dict, Optional

import stripe

from backend.features.checkout.provider import (
    CheckoutSessionParams,
    PaymentProviderError,
    PaymentSession,
)


DEFAULT_TIMEOUT_SECONDS = 10.0


class StripeSessionCreator:
    """Stripe implementation of PaymentSessionCreator."""

    def __init__(self, secret_key: Optional[str] = None, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        """
        Initialize Stripe session creator.

        Args:
            secret_key: Stripe secret key (defaults to STRIPE_SECRET_KEY env var)
            timeout_seconds: Upper bound for a single Stripe API call
        """
        self.secret_key = secret_key or os.getenv("STRIPE_SECRET_KEY")
        if not self.secret_key:
            raise PaymentProviderError("STRIPE_SECRET_KEY not configured")

        stripe.api_key = self.secret_key
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)

    def build_session_kwargs(self, params: CheckoutSessionParams) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": params.price_id, "quantity": 1}],
            "success_url": params.success_url,
            "cancel_url": params.cancel_url,
            "allow_promotion_codes": True,
            "billing_address_collection": "required",
            "subscription_data": {"trial_period_days": params.trial_period_days},
            "metadata": dict(params.metadata),
        }
        if params.customer_email:
            kwargs["customer_email"] = params.customer_email
        return kwargs

    def create_session(self, params: CheckoutSessionParams) -> PaymentSession:
        """Create Stripe checkout session."""
        try:
            session = stripe.checkout.Session.create(**self.build_session_kwargs(params))
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe checkout session creation failed: {e}") from e

        if not session.url:
            raise PaymentProviderError(f"Stripe session {session.id} returned no URL")
        return PaymentSession(session_id=session.id, url=session.url)

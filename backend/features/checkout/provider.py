"""
Payment session creator protocol.

Checkout only needs one call from the payment provider: create a hosted
checkout session and hand back its id and URL. Keeping it behind a
Protocol lets tests and other providers slot in without touching the
orchestration.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol


@dataclass(frozen=True)
class CheckoutSessionParams:
    """Everything the provider receives for one checkout."""
    price_id: str
    success_url: str
    cancel_url: str
    trial_period_days: int
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentSession:
    session_id: str
    url: str


class PaymentSessionCreator(Protocol):
    def create_session(self, params: CheckoutSessionParams) -> PaymentSession:
        """
        Create a hosted checkout session.

        Raises:
            PaymentProviderError: If the provider call fails for any reason
        """
        ...


class PaymentProviderError(Exception):
    """Upstream payment provider failure. Message is for logs only."""
    pass

"""
Waitlist / marketing email subscription.

- POST subscribes an email (rate limited per client, 5/hour by default).
- DELETE unsubscribes with an HMAC token derived from the email.
- Responses never reveal whether an address was already on the list.

Durable storage is external; the SubscriberStore protocol is the seam.
"""
import hashlib
import hmac
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic import ValidationError as PydanticValidationError

from backend.core.errors import NotConfiguredError, RateLimitError, ValidationError
from backend.core.logging import log_event, mask_email
from backend.core.metrics import ratelimit_block_total, subscribe_requests_total
from backend.core.ratelimit import FixedWindowLimiter
from backend.features.checkout.validator import MAX_SOURCE_LENGTH, check_email, normalize_email


DISPOSABLE_DOMAINS = frozenset({
    "mailinator.com",
    "tempmail.com",
    "temp-mail.org",
    "guerrillamail.com",
    "guerrillamail.net",
    "10minutemail.com",
    "yopmail.com",
    "throwawaymail.com",
    "trashmail.com",
    "sharklasers.com",
    "getnada.com",
    "dispostable.com",
})

SUBSCRIBED_MESSAGE = "Thanks for subscribing! We'll keep you posted."
UNSUBSCRIBED_MESSAGE = "You have been unsubscribed."


class SubscriberStore(Protocol):
    def add(self, email: str, source: Optional[str] = None) -> bool:
        """Add a subscriber. Returns False if the email was already present."""
        ...

    def remove(self, email: str) -> bool:
        """Remove a subscriber. Returns False if the email was not present."""
        ...


class InMemorySubscriberStore:
    def __init__(self):
        self.subscribers: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def add(self, email: str, source: Optional[str] = None) -> bool:
        with self._lock:
            if email in self.subscribers:
                return False
            self.subscribers[email] = source
            return True

    def remove(self, email: str) -> bool:
        with self._lock:
            if email not in self.subscribers:
                return False
            del self.subscribers[email]
            return True

    def __contains__(self, email: str) -> bool:
        return email in self.subscribers


class SubscribeBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[StrictStr] = None
    source: Optional[StrictStr] = None


def unsubscribe_token(email: str, secret: str) -> str:
    """Deterministic token embedded in unsubscribe links."""
    digest = hmac.new(secret.encode("utf-8"), normalize_email(email).encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()


def is_disposable(email: str) -> bool:
    domain = email.rsplit("@", 1)[-1]
    return domain in DISPOSABLE_DOMAINS or any(domain.endswith("." + d) for d in DISPOSABLE_DOMAINS)


def validate_subscriber_email(raw: Optional[str]) -> str:
    if raw is None or not raw.strip():
        raise ValidationError("Email is required", code="missing_field", field="email")
    email = check_email(raw)
    if is_disposable(email):
        raise ValidationError("Disposable email addresses are not allowed", code="invalid_email", field="email")
    return email


@dataclass
class SubscribeService:
    limiter: FixedWindowLimiter
    store: SubscriberStore
    token_secret: Optional[str] = None

    def subscribe(self, client_key: str, raw_body: bytes) -> Dict[str, object]:
        decision = self.limiter.hit(client_key)
        if not decision.allowed:
            ratelimit_block_total.inc(labels={"scope": "subscribe"})
            subscribe_requests_total.inc(labels={"outcome": "rate_limited"})
            raise RateLimitError(
                "Too many subscription attempts. Please try again later.",
                retry_after=decision.window_seconds,
                limit=decision.limit,
            )

        try:
            body = SubscribeBody.model_validate_json(raw_body or b"")
        except PydanticValidationError:
            subscribe_requests_total.inc(labels={"outcome": "invalid"})
            raise ValidationError("Invalid JSON body", code="invalid_body", field="body")

        try:
            email = validate_subscriber_email(body.email)
            source = (body.source or "").strip() or None
            if source and len(source) > MAX_SOURCE_LENGTH:
                raise ValidationError("source is too long", code="invalid_format", field="source")
        except ValidationError:
            subscribe_requests_total.inc(labels={"outcome": "invalid"})
            raise

        added = self.store.add(email, source)
        subscribe_requests_total.inc(labels={"outcome": "added" if added else "duplicate"})
        log_event(
            "info",
            "subscribe.added" if added else "subscribe.duplicate",
            request_id=None,
            event_type="subscribe",
            extra={"email": mask_email(email), "source": source},
        )
        return {"success": True, "message": SUBSCRIBED_MESSAGE}

    def unsubscribe(self, email: Optional[str], token: Optional[str]) -> Dict[str, object]:
        if not email or not email.strip():
            raise ValidationError("Email is required", code="missing_field", field="email")
        if not token:
            raise ValidationError("Unsubscribe token is required", code="missing_field", field="token")
        if not self.token_secret:
            raise NotConfiguredError("Unsubscribe is not available right now.")

        normalized = normalize_email(email)
        expected = unsubscribe_token(normalized, self.token_secret)
        if not hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8")):
            raise ValidationError("Invalid unsubscribe token", code="invalid_format", field="token")

        removed = self.store.remove(normalized)
        log_event(
            "info",
            "subscribe.removed",
            request_id=None,
            event_type="subscribe",
            extra={"email": mask_email(normalized), "was_subscribed": removed},
        )
        return {"success": True, "message": UNSUBSCRIBED_MESSAGE}

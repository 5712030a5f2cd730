"""
Checkout request validation.

Turns raw query parameters or a raw JSON body into a CheckoutRequest, or
raises ValidationError tagged with one of:
missing_field, invalid_format, invalid_email, invalid_price, invalid_body,
invalid_redirect.

Order of checks for the price id: presence, length, shape, then the
catalog whitelist. Malformed ids are never looked up.
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urljoin, urlsplit

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from backend.core.errors import ValidationError
from backend.features.pricing.catalog import CATALOG, PRICE_ID_PATTERN, Tier, TierCatalog


MAX_PRICE_ID_LENGTH = 200
MAX_EMAIL_LENGTH = 254
MAX_SOURCE_LENGTH = 100

EMAIL_PATTERN = re.compile(r"^[^\s@<>()\[\],;:\"]+@[^\s@<>()\[\],;:\"]+\.[A-Za-z]{2,}$")

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class CheckoutRequest:
    price_id: str
    tier: Tier
    email: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    source: Optional[str] = None


class CheckoutBody(BaseModel):
    """Loose shape of the POST body; field rules are applied afterwards."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    price_id: Optional[StrictStr] = Field(default=None, alias="priceId")
    email: Optional[StrictStr] = None
    success_url: Optional[StrictStr] = Field(default=None, alias="successUrl")
    cancel_url: Optional[StrictStr] = Field(default=None, alias="cancelUrl")
    source: Optional[StrictStr] = None


def _origin(url: str):
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    try:
        port = parts.port or _DEFAULT_PORTS.get(scheme)
    except ValueError:
        return None
    return scheme, (parts.hostname or "").lower(), port


def same_origin_url(candidate: str, base_url: str) -> Optional[str]:
    """Return the absolute form of `candidate` if it shares base_url's origin, else None.

    Root-relative paths ("/success") resolve against the base. Protocol-relative
    ("//host") and backslash tricks are treated as foreign.
    """
    candidate = candidate.strip()
    if not candidate or "\\" in candidate or any(ch.isspace() or ord(ch) < 32 for ch in candidate):
        return None
    if candidate.startswith("/") and not candidate.startswith("//"):
        return urljoin(base_url.rstrip("/") + "/", candidate)

    base_origin = _origin(base_url)
    origin = _origin(candidate)
    if origin is None or origin[0] not in _DEFAULT_PORTS or not origin[1]:
        return None
    return candidate if origin == base_origin else None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def check_email(raw: Optional[str], *, field: str = "email") -> str:
    """Validate and normalize an email address."""
    if raw is None or not raw.strip():
        raise ValidationError("A valid email is required", code="invalid_email", field=field)
    email = normalize_email(raw)
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError("Email is too long", code="invalid_email", field=field)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format", code="invalid_email", field=field)
    return email


def _resolve_price(price_id: Optional[str], *, field: str, label: str, catalog: TierCatalog) -> Tier:
    if price_id is None or price_id == "":
        raise ValidationError(f"{label} required", code="missing_field", field=field)
    if len(price_id) > MAX_PRICE_ID_LENGTH:
        raise ValidationError(f"Invalid {label}: too long", code="invalid_format", field=field)
    if not PRICE_ID_PATTERN.match(price_id):
        raise ValidationError(f"Invalid {label} format", code="invalid_format", field=field)
    tier = catalog.get_by_price_id(price_id)
    if tier is None:
        raise ValidationError(f"Invalid {label}", code="invalid_price", field=field)
    return tier


def _redirect(raw: Optional[str], *, field: str, base_url: str) -> Optional[str]:
    if raw is None or raw == "":
        return None
    url = same_origin_url(raw, base_url)
    if url is None:
        raise ValidationError(f"{field} must point to this site", code="invalid_redirect", field=field)
    return url


def _source(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    source = raw.strip()
    if len(source) > MAX_SOURCE_LENGTH:
        raise ValidationError("source is too long", code="invalid_format", field="source")
    return source or None


def validate_query(params: Mapping[str, str], *, catalog: Optional[TierCatalog] = None) -> CheckoutRequest:
    """Validate the anonymous GET flow: ?price=<priceId>."""
    price_id = params.get("price")
    tier = _resolve_price(price_id, field="price", label="Price ID", catalog=catalog or CATALOG)
    return CheckoutRequest(price_id=price_id, tier=tier)


def validate_body(raw_body: bytes, *, base_url: str, catalog: Optional[TierCatalog] = None) -> CheckoutRequest:
    """Validate the POST flow body {priceId, email, successUrl?, cancelUrl?, source?}."""
    try:
        body = CheckoutBody.model_validate_json(raw_body or b"")
    except PydanticValidationError as e:
        errors = e.errors()
        if any(err.get("type") == "json_invalid" for err in errors) or not raw_body:
            raise ValidationError("Invalid JSON body", code="invalid_body", field="body")
        bad = errors[0].get("loc", ()) if errors else ()
        field = str(bad[0]) if bad else "body"
        if field == "priceId":
            raise ValidationError("Invalid priceId format", code="invalid_format", field=field)
        if field == "email":
            raise ValidationError("Invalid email format", code="invalid_email", field=field)
        raise ValidationError(f"Invalid request body: {field}", code="invalid_body", field=field)

    tier = _resolve_price(body.price_id, field="priceId", label="priceId", catalog=catalog or CATALOG)
    email = check_email(body.email)
    return CheckoutRequest(
        price_id=body.price_id,
        tier=tier,
        email=email,
        success_url=_redirect(body.success_url, field="successUrl", base_url=base_url),
        cancel_url=_redirect(body.cancel_url, field="cancelUrl", base_url=base_url),
        source=_source(body.source),
    )

"""
Pricing API: tier catalog and upgrade prompts for the UI surfaces.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Query, Request

from backend.core.errors import ValidationError
from backend.features.pricing.catalog import Tier, get_skill_bundle
from backend.features.pricing.policy import Usage, calculate_annual_savings, format_price, should_show_upgrade_prompt


router = APIRouter(prefix="/pricing", tags=["pricing"])


def serialize_tier(tier: Tier) -> Dict[str, Any]:
    bundle = get_skill_bundle(tier.id)
    payload: Dict[str, Any] = {
        "id": tier.id,
        "name": tier.name,
        "price": tier.price,
        "priceDisplay": tier.price_display,
        "priceLabel": format_price(tier.price, tier.period),
        "period": tier.period,
        "description": tier.description,
        "track": tier.track,
        "messagesPerMonth": tier.messages_per_month,
        "skillsIncluded": tier.skills_included,
        "skillBundle": bundle.description if bundle else None,
        "features": list(tier.features),
        "priceId": tier.price_id,
        "popular": tier.popular,
        "highlighted": tier.highlighted,
        "badge": tier.badge,
    }
    if tier.is_paid:
        payload["annual"] = calculate_annual_savings(tier.price)
    return payload


@router.get("/tiers")
def list_tiers(request: Request) -> Dict[str, List[Dict[str, Any]]]:
    return {"tiers": [serialize_tier(tier) for tier in request.app.state.catalog.tiers]}


@router.get("/upgrade-prompt")
def upgrade_prompt(
    request: Request,
    tier: str = Query(..., min_length=1),
    messages: int = 0,
    skills: int = 0,
):
    """Whether the dashboard should show an upgrade prompt for this usage."""
    if messages < 0 or skills < 0:
        raise ValidationError("Usage counts must be non-negative", field="usage")
    signal = should_show_upgrade_prompt(tier, Usage(messages=messages, skills=skills), catalog=request.app.state.catalog)
    return signal.to_dict()

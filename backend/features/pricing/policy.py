"""
Upgrade policy: quota math and upgrade prompts derived from the tier catalog.

Pure functions; nothing here touches request state.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from backend.features.pricing.catalog import CATALOG, UNLIMITED, Limit, TierCatalog


MESSAGE_WARNING_RATIO = 0.8
ANNUAL_BILLED_MONTHS = 10  # two months free


@dataclass(frozen=True)
class Usage:
    messages: int = 0
    skills: int = 0


@dataclass(frozen=True)
class UpgradeSignal:
    show: bool
    reason: Optional[str] = None  # message_limit | skill_limit
    suggested_tier: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {"show": self.show, "reason": self.reason, "suggestedTier": self.suggested_tier}


NO_UPGRADE = UpgradeSignal(show=False)


def can_use_skill(limit: Limit, used: int) -> bool:
    """Reaching the limit blocks further use."""
    if limit == UNLIMITED:
        return True
    return used < limit


def get_skills_remaining(limit: Limit, used: int) -> Union[int, str]:
    if limit == UNLIMITED:
        return UNLIMITED
    return max(0, limit - used)


def should_show_upgrade_prompt(tier_id: str, usage: Usage, catalog: Optional[TierCatalog] = None) -> UpgradeSignal:
    """
    Decide whether to nudge the user toward the next tier.

    Messages trigger at 80% of the monthly allowance, skills once the
    included count is reached. The signal is suppressed when the tier has
    no next tier to suggest (top of the chain, or the family/team tracks).
    """
    catalog = catalog or CATALOG
    tier = catalog.get(tier_id)
    if tier is None:
        return NO_UPGRADE

    next_tier = catalog.next_tier(tier.id)
    if next_tier is None:
        return NO_UPGRADE

    reason = None
    if tier.messages_per_month != UNLIMITED and usage.messages >= MESSAGE_WARNING_RATIO * tier.messages_per_month:
        reason = "message_limit"
    elif tier.skills_included != UNLIMITED and usage.skills >= tier.skills_included:
        reason = "skill_limit"

    if reason is None:
        return NO_UPGRADE
    return UpgradeSignal(show=True, reason=reason, suggested_tier=next_tier.id)


def format_price(amount: int, period: str) -> str:
    if amount == 0:
        return "Free"
    return f"${amount}{period}"


def calculate_annual_savings(monthly_price: int) -> Dict[str, int]:
    annual = monthly_price * ANNUAL_BILLED_MONTHS
    regular_annual = monthly_price * 12
    savings = regular_annual - annual
    savings_percent = round(savings / regular_annual * 100) if regular_annual else 0
    return {"annual": annual, "savings": savings, "savingsPercent": savings_percent}

"""
backend/features/pricing/catalog.py

Subscription tier catalog.

The catalog is a declarative table plus lookups:
- Individual tiers form one upgrade chain: free -> personal -> plus -> pro.
- Family and team are separate tracks with no next tier.
- Paid tiers carry the Stripe price ID that checkout whitelists.

Invariants are checked once when the catalog is built.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from backend.core.config import settings


UNLIMITED = "unlimited"

Limit = Union[int, str]

# Stripe price IDs: fixed prefix followed by alphanumerics
PRICE_ID_PATTERN = re.compile(r"^price_[A-Za-z0-9]+$")

UPGRADE_CHAIN: Tuple[str, ...] = ("free", "personal", "plus", "pro")


class CatalogError(ValueError):
    """Raised when the tier table violates a catalog invariant."""


@dataclass(frozen=True)
class Tier:
    id: str
    name: str
    price: int  # whole dollars
    period: str
    description: str
    messages_per_month: Limit
    skills_included: Limit
    features: Tuple[str, ...] = ()
    track: str = "individual"
    price_id: Optional[str] = None
    popular: bool = False
    highlighted: bool = False
    badge: Optional[str] = None

    @property
    def price_display(self) -> str:
        return f"${self.price}"

    @property
    def is_paid(self) -> bool:
        return self.price > 0


@dataclass(frozen=True)
class SkillBundle:
    tier: str
    count: Limit
    description: str


SKILL_BUNDLES: Dict[str, SkillBundle] = {
    "free": SkillBundle("Free", 5, "5 core skills included"),
    "personal": SkillBundle("Personal", 10, "10 skills to customize your experience"),
    "plus": SkillBundle("Plus", 15, "15 skills for power users"),
    "pro": SkillBundle("Pro", UNLIMITED, "Unlimited skills - unlock everything"),
    "family": SkillBundle("Family", 15, "15 skills per family member"),
    "team": SkillBundle("Team", UNLIMITED, "Unlimited skills for your team"),
}


def get_skill_bundle(tier_id: str) -> Optional[SkillBundle]:
    return SKILL_BUNDLES.get(tier_id)


def build_tiers(settings_obj) -> Tuple[Tier, ...]:
    """Build the tier table, taking plan identifiers from configuration."""
    return (
        Tier(
            id="free",
            name="Free",
            price=0,
            period="forever",
            description="Get started with AI assistance",
            messages_per_month=100,
            skills_included=5,
            features=(
                "100 messages/month",
                "5 skills included",
                "Web search",
                "Basic memory (7 days)",
                "Community support",
            ),
        ),
        Tier(
            id="personal",
            name="Personal",
            price=9,
            period="/month",
            description="For individuals who want more",
            messages_per_month=2000,
            skills_included=10,
            price_id=settings_obj.STRIPE_PRICE_PERSONAL,
            features=(
                "2,000 messages/month",
                "10 skills included",
                "Persistent memory (30 days)",
                "Calendar integration",
                "Email support",
            ),
        ),
        Tier(
            id="plus",
            name="Plus",
            price=19,
            period="/month",
            description="For power users who need more",
            messages_per_month=10000,
            skills_included=15,
            popular=True,
            badge="Most Popular",
            price_id=settings_obj.STRIPE_PRICE_PLUS,
            features=(
                "10,000 messages/month",
                "15 skills included",
                "Unlimited memory",
                "Gmail integration",
                "Browser automation",
                "Priority support",
            ),
        ),
        Tier(
            id="pro",
            name="Pro",
            price=39,
            period="/month",
            description="Unlimited power for professionals",
            messages_per_month=UNLIMITED,
            skills_included=UNLIMITED,
            highlighted=True,
            badge="Best Value",
            price_id=settings_obj.STRIPE_PRICE_PRO,
            features=(
                "Unlimited messages",
                "Unlimited skills",
                "All integrations",
                "Custom workflows",
                "API access",
                "Dedicated support",
                "Early access to new features",
            ),
        ),
        Tier(
            id="family",
            name="Family",
            price=19,
            period="/month",
            description="Share with up to 5 family members",
            messages_per_month=20000,
            skills_included=15,
            track="family",
            price_id=settings_obj.STRIPE_PRICE_FAMILY,
            features=(
                "Up to 5 family members",
                "20,000 shared messages/month",
                "15 skills per member",
                "Shared family calendar",
                "Individual memories",
                "Family dashboard",
            ),
        ),
        Tier(
            id="team",
            name="Team",
            price=29,
            period="/seat/month",
            description="For teams that need to collaborate",
            messages_per_month=UNLIMITED,
            skills_included=UNLIMITED,
            track="team",
            price_id=settings_obj.STRIPE_PRICE_TEAM,
            features=(
                "Unlimited messages",
                "Unlimited skills",
                "Team workspace",
                "Shared knowledge base",
                "Admin controls",
                "SSO/SAML",
                "Priority support",
                "Custom integrations",
            ),
        ),
    )


def catalog_violations(tiers: Iterable[Tier]) -> List[str]:
    tiers = list(tiers)
    errors: List[str] = []
    by_id: Dict[str, Tier] = {}

    for tier in tiers:
        if tier.id in by_id:
            errors.append(f"duplicate tier id '{tier.id}'")
        by_id[tier.id] = tier

    chain = [by_id[tier_id] for tier_id in UPGRADE_CHAIN if tier_id in by_id]
    if len(chain) != len(UPGRADE_CHAIN):
        missing = [tier_id for tier_id in UPGRADE_CHAIN if tier_id not in by_id]
        errors.append(f"upgrade chain tiers missing: {', '.join(missing)}")
    for lower, upper in zip(chain, chain[1:]):
        if upper.price < lower.price:
            errors.append(f"price decreases from '{lower.id}' to '{upper.id}'")

    seen_price_ids: Dict[str, str] = {}
    for tier in tiers:
        if tier.is_paid:
            if not tier.price_id or not PRICE_ID_PATTERN.match(tier.price_id):
                errors.append(f"paid tier '{tier.id}' has an invalid price id")
        elif tier.price_id:
            errors.append(f"free tier '{tier.id}' must not carry a price id")
        if tier.price_id:
            if tier.price_id in seen_price_ids:
                errors.append(f"price id shared by '{seen_price_ids[tier.price_id]}' and '{tier.id}'")
            seen_price_ids[tier.price_id] = tier.id
        if (tier.popular or tier.highlighted) and not tier.badge:
            errors.append(f"tier '{tier.id}' is featured but has no badge")

    popular = [tier.id for tier in tiers if tier.popular]
    if len(popular) != 1:
        errors.append(f"exactly one popular tier required, found {len(popular)}")

    return errors


def validate_catalog(tiers: Iterable[Tier]) -> None:
    errors = catalog_violations(tiers)
    if errors:
        raise CatalogError("Invalid tier catalog: " + "; ".join(errors))


@dataclass(frozen=True)
class TierCatalog:
    tiers: Tuple[Tier, ...]
    _by_id: Dict[str, Tier] = field(init=False, repr=False, compare=False)
    _by_price_id: Dict[str, Tier] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        validate_catalog(self.tiers)
        object.__setattr__(self, "_by_id", {tier.id: tier for tier in self.tiers})
        object.__setattr__(self, "_by_price_id", {tier.price_id: tier for tier in self.tiers if tier.price_id})

    def get(self, tier_id: Optional[str]) -> Optional[Tier]:
        if not tier_id:
            return None
        return self._by_id.get(tier_id)

    def get_by_price_id(self, price_id: Optional[str]) -> Optional[Tier]:
        if not price_id:
            return None
        return self._by_price_id.get(price_id)

    def next_tier(self, tier_id: Optional[str]) -> Optional[Tier]:
        if tier_id not in UPGRADE_CHAIN:
            return None
        index = UPGRADE_CHAIN.index(tier_id)
        if index >= len(UPGRADE_CHAIN) - 1:
            return None
        return self.get(UPGRADE_CHAIN[index + 1])

    def whitelisted_price_ids(self) -> FrozenSet[str]:
        return frozenset(self._by_price_id)


def build_catalog(settings_obj=None) -> TierCatalog:
    return TierCatalog(build_tiers(settings_obj or settings))


CATALOG = build_catalog()


def get_tier(tier_id: Optional[str]) -> Optional[Tier]:
    return CATALOG.get(tier_id)


def get_tier_by_price_id(price_id: Optional[str]) -> Optional[Tier]:
    return CATALOG.get_by_price_id(price_id)


def get_next_tier(tier_id: Optional[str]) -> Optional[Tier]:
    return CATALOG.next_tier(tier_id)


def whitelisted_price_ids() -> FrozenSet[str]:
    return CATALOG.whitelisted_price_ids()

import logging
import math
from types import MappingProxyType

import config
from enums.membership_tier import MembershipTier
from exceptions.base import ValidationException

# Fraction of the subtotal shown as membership discount
MEMBERSHIP_DISCOUNTS = MappingProxyType({
    MembershipTier.SILVER: 0.0,
    MembershipTier.GOLD: 0.05,
    MembershipTier.DIAMOND: 0.10,
    MembershipTier.PLATINUM: 0.15,
    MembershipTier.GARAGE: 0.20,
})

# Loyalty points per currency unit spent
POINT_RATES = MappingProxyType({
    MembershipTier.SILVER: 1.0,
    MembershipTier.GOLD: 1.2,
    MembershipTier.DIAMOND: 1.5,
    MembershipTier.PLATINUM: 2.0,
    MembershipTier.GARAGE: 2.5,
})

# Points needed to leave the tier (garage is the top tier)
UPGRADE_THRESHOLDS = MappingProxyType({
    MembershipTier.SILVER: 1000,
    MembershipTier.GOLD: 2500,
    MembershipTier.DIAMOND: 5000,
    MembershipTier.PLATINUM: 10000,
})

TIER_ORDER = (
    MembershipTier.SILVER,
    MembershipTier.GOLD,
    MembershipTier.DIAMOND,
    MembershipTier.PLATINUM,
    MembershipTier.GARAGE,
)

# Base shipping rate by destination country; the home country ships free
SHIPPING_BASE_RATES = MappingProxyType({
    "UAE": 50.0,
    "Kuwait": 45.0,
    "Qatar": 40.0,
    "Bahrain": 35.0,
    "Oman": 55.0,
})
DEFAULT_SHIPPING_BASE_RATE = 100.0
WEIGHT_BRACKET_KG = 5
WEIGHT_BRACKET_COST = 10.0


def _as_tier(tier: MembershipTier | str | None) -> MembershipTier | None:
    if isinstance(tier, MembershipTier):
        return tier
    try:
        return MembershipTier(tier)
    except ValueError:
        return None


class PricingService:
    """
    Membership discounts, loyalty points and shipping rates.

    Everything here is pure: no session, no I/O. Cart, order and payment
    services call these with values they already loaded.
    """

    @staticmethod
    def membership_discount(tier: MembershipTier | str | None) -> float:
        """Discount fraction for a tier; unknown tiers get none."""
        return MEMBERSHIP_DISCOUNTS.get(_as_tier(tier), 0.0)

    @staticmethod
    def points_earned(amount: float, tier: MembershipTier | str | None) -> int:
        """
        Loyalty points for a settled amount: floor(amount * tier rate).

        Unknown tiers earn at the base rate of 1.
        """
        if amount is None or amount <= 0:
            return 0
        rate = POINT_RATES.get(_as_tier(tier), 1.0)
        return math.floor(amount * rate)

    @staticmethod
    def shipping_cost(country: str, total_weight: float) -> float:
        """
        Shipping cost = base rate by country + 10 per started 5 kg.

        Args:
            country: Destination country name
            total_weight: Sum of line weights in kg

        Returns:
            Shipping cost in the store currency

        Raises:
            ValidationException: If weight is negative, NaN or not a number
        """
        if isinstance(total_weight, bool) or not isinstance(total_weight, (int, float)):
            raise ValidationException("total_weight", f"expected a number, got {type(total_weight).__name__}")
        if math.isnan(total_weight) or math.isinf(total_weight) or total_weight < 0:
            raise ValidationException("total_weight", f"must be a finite non-negative number, got {total_weight}")

        if country == config.HOME_COUNTRY:
            base_rate = 0.0
        else:
            base_rate = SHIPPING_BASE_RATES.get(country, DEFAULT_SHIPPING_BASE_RATE)
        weight_surcharge = math.ceil(total_weight / WEIGHT_BRACKET_KG) * WEIGHT_BRACKET_COST
        return base_rate + weight_surcharge

    @staticmethod
    def summarize(subtotal: float, tier: MembershipTier | str | None) -> dict:
        """
        Discounted display totals for a cart or checkout summary.

        Returns:
            Dict with discount_percentage, discount_amount and total
        """
        discount = PricingService.membership_discount(tier)
        discount_amount = round(subtotal * discount, 2)
        return {
            'discount_percentage': round(discount * 100, 2),
            'discount_amount': discount_amount,
            'total': round(subtotal - discount_amount, 2),
        }

    @staticmethod
    def next_membership_tier(tier: MembershipTier | str | None) -> MembershipTier | None:
        tier = _as_tier(tier)
        if tier is None or tier == TIER_ORDER[-1]:
            return None
        return TIER_ORDER[TIER_ORDER.index(tier) + 1]

    @staticmethod
    def can_upgrade_membership(tier: MembershipTier | str | None, points: int) -> bool:
        threshold = UPGRADE_THRESHOLDS.get(_as_tier(tier))
        if threshold is None:
            return False
        can_upgrade = points >= threshold
        if can_upgrade:
            logging.debug(f"Tier {tier} eligible for upgrade at {points} points (threshold {threshold})")
        return can_upgrade

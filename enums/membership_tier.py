from enum import Enum


class MembershipTier(str, Enum):
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"
    PLATINUM = "platinum"
    GARAGE = "garage"    # Workshop accounts, highest tier

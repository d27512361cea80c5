"""
Enumeration types for the podium indexer.

All enums inherit from str (or int for podium positions) so values serialize
cleanly into JSON payloads and storage columns.
"""

from enum import Enum, IntEnum


class EventKind(str, Enum):
    """
    Contract event kinds consumed by the reducer.

    Values match the event names emitted by the voting contract so decoded logs
    can be routed without a translation table.
    """

    PODIUM_CREATED = "PodiumCreated"
    BRAND_CREATED = "BrandCreated"
    BRANDS_CREATED = "BrandsCreated"
    WALLET_AUTHORIZED = "WalletAuthorized"
    REWARD_CLAIMED = "RewardClaimed"
    BRAND_REWARD_WITHDRAWN = "BrandRewardWithdrawn"
    BRND_POWER_LEVEL_UP = "BrndPowerLevelUp"
    BRAND_UPDATED = "BrandUpdated"


class Position(IntEnum):
    """
    Podium slot. The integer value is the 1-based position stored on
    individual votes; ``index`` addresses the brand list and the point split.
    """

    GOLD = 1
    SILVER = 2
    BRONZE = 3

    @property
    def index(self) -> int:
        return self.value - 1

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def ordered(cls) -> tuple["Position", ...]:
        return (cls.GOLD, cls.SILVER, cls.BRONZE)


class Timeframe(str, Enum):
    """Aggregation windows, each backed by its own leaderboard table."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "alltime"


class ReductionStatus(str, Enum):
    """Outcome of applying one event."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"

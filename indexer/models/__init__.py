"""
Pydantic v2 data models for the podium indexer.

Model Organization:
    - enums: Event kinds, podium positions, timeframes, reduction outcomes
    - events: Decoded contract events consumed by the reducer
    - entities: Facts and aggregates materialized into storage
    - results: Per-event reduction outcomes
"""

from .entities import (
    BRAND_RANK_FIELDS,
    LEADERBOARD_MODELS,
    AllTimeBrandLeaderboard,
    AllTimeUserLeaderboard,
    Brand,
    BrandDailyMetrics,
    BrandLeaderboardEntry,
    BrandRewardWithdrawal,
    BrndPowerLevelUpRecord,
    DailyBrandLeaderboard,
    Entity,
    IndividualVote,
    MonthlyBrandLeaderboard,
    ProcessedEvent,
    RewardClaim,
    TopBrand,
    User,
    UserBrandRanking,
    Vote,
    WalletAuthorization,
    WeeklyBrandLeaderboard,
    leaderboard_row_id,
    position_field,
)
from .enums import EventKind, Position, ReductionStatus, Timeframe
from .events import (
    AnyEvent,
    BrandCreated,
    BrandRewardWithdrawn,
    BrandsCreated,
    BrandUpdated,
    BrndPowerLevelUp,
    ChainEvent,
    PodiumCreated,
    RewardClaimed,
    WalletAuthorized,
    parse_event,
)
from .results import ReductionResult, SkippedUpdate

__all__ = [
    # Enums
    "EventKind",
    "Position",
    "ReductionStatus",
    "Timeframe",
    # Events
    "AnyEvent",
    "BrandCreated",
    "BrandRewardWithdrawn",
    "BrandsCreated",
    "BrandUpdated",
    "BrndPowerLevelUp",
    "ChainEvent",
    "PodiumCreated",
    "RewardClaimed",
    "WalletAuthorized",
    "parse_event",
    # Results
    "ReductionResult",
    "SkippedUpdate",
    # Entities
    "AllTimeBrandLeaderboard",
    "AllTimeUserLeaderboard",
    "BRAND_RANK_FIELDS",
    "Brand",
    "BrandDailyMetrics",
    "BrandLeaderboardEntry",
    "BrandRewardWithdrawal",
    "BrndPowerLevelUpRecord",
    "DailyBrandLeaderboard",
    "Entity",
    "IndividualVote",
    "LEADERBOARD_MODELS",
    "MonthlyBrandLeaderboard",
    "ProcessedEvent",
    "RewardClaim",
    "TopBrand",
    "User",
    "UserBrandRanking",
    "Vote",
    "WalletAuthorization",
    "WeeklyBrandLeaderboard",
    "leaderboard_row_id",
    "position_field",
]

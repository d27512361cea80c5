"""
Materialized entity models.

Every persisted record is a pydantic model naming its table and key column.
Storage backends use that metadata to find, insert and replace rows, so
adding a table only requires a model here and a CREATE statement in the
DuckDB schema.

Point and token amounts are plain ``int`` (arbitrary precision); nothing in
this package uses floating point for money.
"""

from typing import Any, ClassVar, Optional

from pydantic import BaseModel, Field

from .enums import Position, Timeframe


class Entity(BaseModel):
    """Base class for stored records."""

    table_name: ClassVar[str]
    key_field: ClassVar[str] = "id"

    @property
    def key(self) -> Any:
        return getattr(self, self.key_field)


# =============================================================================
# Core entities
# =============================================================================


class Brand(Entity):
    """
    A votable brand.

    Created by BrandCreated/BrandsCreated, never deleted. ``available_brnd``
    grows with every award and shrinks with withdrawals.
    """

    table_name: ClassVar[str] = "brands"

    id: int
    fid: int
    wallet_address: str
    handle: str = ""
    metadata_hash: str = ""

    total_votes_received: int = 0
    total_brnd_awarded: int = 0
    available_brnd: int = 0

    current_daily_rank: Optional[int] = None
    current_weekly_rank: Optional[int] = None
    current_monthly_rank: Optional[int] = None
    current_all_time_rank: Optional[int] = None

    created_at: int
    block_number: int
    transaction_hash: str
    last_updated: int


class User(Entity):
    """Voter profile, keyed by FID."""

    table_name: ClassVar[str] = "users"
    key_field: ClassVar[str] = "fid"

    fid: int
    brnd_power_level: int = 0
    points: int = 0
    total_votes: int = 0
    total_podiums: int = 0

    current_streak: int = 0
    max_streak: int = 0
    # Day number (timestamp // 86400) of the last vote
    last_vote_day: Optional[int] = None
    has_voted_today: bool = False

    voted_brands_count: int = 0
    favorite_brand_id: Optional[int] = None

    block_number: int
    transaction_hash: str
    last_updated: int


# =============================================================================
# Vote facts
# =============================================================================


class Vote(Entity):
    """One podium, keyed by transaction hash."""

    table_name: ClassVar[str] = "votes"

    id: str
    voter: str
    voter_fid: int
    day: int
    gold_brand_id: int = 0
    silver_brand_id: int = 0
    bronze_brand_id: int = 0
    brand_ids: list[int] = Field(default_factory=list)
    cost: int

    claimed_at: Optional[int] = None
    claim_amount: Optional[int] = None

    block_number: int
    transaction_hash: str
    timestamp: int


class IndividualVote(Entity):
    """One podium slot, keyed ``voteId-position``."""

    table_name: ClassVar[str] = "individual_votes"

    id: str
    vote_id: str
    voter_fid: int
    brand_id: int
    position: int
    points: int
    day: int
    timestamp: int
    block_number: int
    transaction_hash: str


# =============================================================================
# Audit facts
# =============================================================================


class WalletAuthorization(Entity):
    table_name: ClassVar[str] = "wallet_authorizations"

    id: str
    fid: int
    wallet: str
    block_number: int
    transaction_hash: str
    timestamp: int


class RewardClaim(Entity):
    table_name: ClassVar[str] = "reward_claims"

    id: str
    recipient: str
    fid: int
    amount: int
    day: int
    cast_hash: str
    caller: str
    vote_id: Optional[str] = None
    block_number: int
    transaction_hash: str
    timestamp: int


class BrandRewardWithdrawal(Entity):
    table_name: ClassVar[str] = "brand_reward_withdrawals"

    id: str
    brand_id: int
    fid: int
    amount: int
    block_number: int
    transaction_hash: str
    timestamp: int


class BrndPowerLevelUpRecord(Entity):
    table_name: ClassVar[str] = "brnd_power_level_ups"

    id: str
    fid: int
    new_level: int
    wallet: str
    block_number: int
    transaction_hash: str
    timestamp: int


class ProcessedEvent(Entity):
    """Ledger of applied event identities, written in the same transaction as the event."""

    table_name: ClassVar[str] = "processed_events"

    id: str
    kind: str
    block_number: int
    block_timestamp: int
    transaction_hash: str


# =============================================================================
# Derived aggregates
# =============================================================================


class BrandLeaderboardEntry(Entity):
    """
    One brand's standing inside one aggregation period.

    Concrete tables subclass this per timeframe. ``period`` is the window start
    timestamp and is None for the all-time table.
    """

    timeframe: ClassVar[Timeframe]

    id: str
    brand_id: int
    period: Optional[int] = None
    points: int = 0
    gold_count: int = 0
    silver_count: int = 0
    bronze_count: int = 0
    total_votes: int = 0
    rank: Optional[int] = None
    previous_rank: Optional[int] = None
    rank_change: Optional[int] = None
    block_number: int
    updated_at: int


class DailyBrandLeaderboard(BrandLeaderboardEntry):
    table_name: ClassVar[str] = "daily_brand_leaderboard"
    timeframe: ClassVar[Timeframe] = Timeframe.DAILY


class WeeklyBrandLeaderboard(BrandLeaderboardEntry):
    table_name: ClassVar[str] = "weekly_brand_leaderboard"
    timeframe: ClassVar[Timeframe] = Timeframe.WEEKLY


class MonthlyBrandLeaderboard(BrandLeaderboardEntry):
    table_name: ClassVar[str] = "monthly_brand_leaderboard"
    timeframe: ClassVar[Timeframe] = Timeframe.MONTHLY


class AllTimeBrandLeaderboard(BrandLeaderboardEntry):
    table_name: ClassVar[str] = "all_time_brand_leaderboard"
    timeframe: ClassVar[Timeframe] = Timeframe.ALL_TIME


LEADERBOARD_MODELS: dict[Timeframe, type[BrandLeaderboardEntry]] = {
    Timeframe.DAILY: DailyBrandLeaderboard,
    Timeframe.WEEKLY: WeeklyBrandLeaderboard,
    Timeframe.MONTHLY: MonthlyBrandLeaderboard,
    Timeframe.ALL_TIME: AllTimeBrandLeaderboard,
}

BRAND_RANK_FIELDS: dict[Timeframe, str] = {
    Timeframe.DAILY: "current_daily_rank",
    Timeframe.WEEKLY: "current_weekly_rank",
    Timeframe.MONTHLY: "current_monthly_rank",
    Timeframe.ALL_TIME: "current_all_time_rank",
}


def leaderboard_row_id(brand_id: int, period: Optional[int]) -> str:
    """Row key: ``brandId-period``, or just ``brandId`` for all-time."""
    if period is None:
        return str(brand_id)
    return f"{brand_id}-{period}"


class AllTimeUserLeaderboard(Entity):
    table_name: ClassVar[str] = "all_time_user_leaderboard"
    key_field: ClassVar[str] = "fid"

    fid: int
    points: int = 0
    total_votes: int = 0
    total_podiums: int = 0
    current_streak: int = 0
    max_streak: int = 0
    block_number: int
    updated_at: int


class TopBrand(Entity):
    """Fixed cache slot ``timeframe-rank``; contents are replaced, never appended."""

    table_name: ClassVar[str] = "top_brands"

    id: str
    timeframe: Timeframe
    rank: int
    brand_id: int
    points: int
    total_votes: int
    gold_count: int = 0
    silver_count: int = 0
    bronze_count: int = 0
    period_value: Optional[int] = None
    updated_at: int


class UserBrandRanking(Entity):
    """How often one user placed one brand, keyed ``fid-brandId``."""

    table_name: ClassVar[str] = "user_brand_rankings"

    id: str
    user_fid: int
    brand_id: int
    times_voted: int = 0
    times_voted_gold: int = 0
    times_voted_silver: int = 0
    times_voted_bronze: int = 0
    last_voted_day: Optional[int] = None
    total_points_earned: int = 0
    updated_at: int


class BrandDailyMetrics(Entity):
    table_name: ClassVar[str] = "brand_daily_metrics"

    id: str
    brand_id: int
    day: int
    total_votes: int = 0
    gold_votes: int = 0
    silver_votes: int = 0
    bronze_votes: int = 0
    total_points: int = 0
    block_number: int
    updated_at: int


def position_field(prefix: str, position: Position, suffix: str = "") -> str:
    """
    Name of the per-position counter on a model.

    >>> position_field("", Position.GOLD, "_count")
    'gold_count'
    >>> position_field("times_voted_", Position.BRONZE)
    'times_voted_bronze'
    """
    return f"{prefix}{position.label}{suffix}"

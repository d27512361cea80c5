"""
User-side aggregation: brand rankings, engagement counters and streaks.

Three record types are maintained per voter:

    - UserBrandRanking: how often the user placed each brand, per position
    - User: points, vote counters, streak state and favorite brand
    - AllTimeUserLeaderboard: points and vote totals mirrored for ranking

Streak rule, with ``day`` being the day number of the activity:

    last_vote_day == day - 1  -> streak + 1
    last_vote_day == day      -> unchanged (already counted today)
    anything else             -> reset to 1
"""

from typing import Optional

import structlog

from indexer.models.entities import (
    AllTimeUserLeaderboard,
    User,
    UserBrandRanking,
    position_field,
)
from indexer.models.enums import Position
from indexer.storage.base import StorageBackend

logger = structlog.get_logger()


def next_streak(last_vote_day: Optional[int], current_streak: int, day: int) -> int:
    """
    Streak after activity on ``day``.

    >>> next_streak(10, 4, 11)
    5
    >>> next_streak(11, 5, 11)
    5
    >>> next_streak(6, 5, 11)
    1
    """
    if last_vote_day == day - 1:
        return current_streak + 1
    if last_vote_day == day:
        return current_streak
    return 1


class UserEngagementAggregator:
    """
    Maintains per-user engagement state.

    Callers must record brand rankings for a vote before calling
    ``record_activity`` so the favorite brand reflects that vote.
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def record_brand_rankings(
        self,
        user_fid: int,
        slots: list[tuple[Position, int]],
        points: tuple[int, int, int],
        day: int,
        timestamp: int,
    ) -> None:
        """
        Count one podium against the user's per-brand rankings.

        Args:
            user_fid: Voter FID
            slots: (position, brand_id) pairs for non-empty slots
            points: Point split indexed by ``Position.index``
            day: Day number of the vote
            timestamp: Block timestamp of the vote
        """
        for position, brand_id in slots:
            ranking_id = f"{user_fid}-{brand_id}"
            ranking = self.storage.find(UserBrandRanking, ranking_id) or UserBrandRanking(
                id=ranking_id,
                user_fid=user_fid,
                brand_id=brand_id,
                updated_at=timestamp,
            )
            counter = position_field("times_voted_", position)
            self.storage.upsert(
                ranking.model_copy(
                    update={
                        "times_voted": ranking.times_voted + 1,
                        counter: getattr(ranking, counter) + 1,
                        "last_voted_day": day,
                        "total_points_earned": ranking.total_points_earned
                        + points[position.index],
                        "updated_at": timestamp,
                    }
                )
            )

    def record_activity(
        self,
        fid: int,
        points_to_add: int,
        day: int,
        block_number: int,
        transaction_hash: str,
        timestamp: int,
    ) -> User:
        """
        Apply one engagement (a vote or a reward claim) to the user profile.

        Creates the user on first activity. Otherwise advances the streak,
        adds points and counters, and recomputes favorite brand and distinct
        voted-brand count from the user's rankings.

        Args:
            fid: User FID
            points_to_add: Points granted for this activity
            day: Day number of the activity
            block_number: Block of the activity
            transaction_hash: Transaction of the activity
            timestamp: Block timestamp

        Returns:
            The stored user after the update
        """
        rankings = self.storage.list_user_brand_rankings(fid)
        favorite_brand_id = rankings[0].brand_id if rankings else None

        user = self.storage.find(User, fid)
        if user is None:
            user = User(
                fid=fid,
                points=points_to_add,
                total_votes=1,
                total_podiums=1,
                current_streak=1,
                max_streak=1,
                last_vote_day=day,
                has_voted_today=True,
                voted_brands_count=len(rankings),
                favorite_brand_id=favorite_brand_id,
                block_number=block_number,
                transaction_hash=transaction_hash,
                last_updated=timestamp,
            )
            logger.debug("user_created", fid=fid, day=day)
        else:
            streak = next_streak(user.last_vote_day, user.current_streak, day)
            user = user.model_copy(
                update={
                    "points": user.points + points_to_add,
                    "total_votes": user.total_votes + 1,
                    "total_podiums": user.total_podiums + 1,
                    "current_streak": streak,
                    "max_streak": max(user.max_streak, streak),
                    "last_vote_day": day,
                    "has_voted_today": True,
                    "voted_brands_count": len(rankings),
                    "favorite_brand_id": favorite_brand_id,
                    "block_number": block_number,
                    "transaction_hash": transaction_hash,
                    "last_updated": timestamp,
                }
            )

        self.storage.upsert(user)
        return user

    def record_leaderboard(self, user: User, points_to_add: int, block_number: int, timestamp: int) -> None:
        """Add one activity to the all-time user leaderboard, mirroring streaks."""
        entry = self.storage.find(AllTimeUserLeaderboard, user.fid)
        if entry is None:
            entry = AllTimeUserLeaderboard(
                fid=user.fid,
                points=points_to_add,
                total_votes=1,
                total_podiums=1,
                block_number=block_number,
                updated_at=timestamp,
            )
        else:
            entry = entry.model_copy(
                update={
                    "points": entry.points + points_to_add,
                    "total_votes": entry.total_votes + 1,
                    "total_podiums": entry.total_podiums + 1,
                }
            )

        self.storage.upsert(
            entry.model_copy(
                update={
                    "current_streak": user.current_streak,
                    "max_streak": user.max_streak,
                    "block_number": block_number,
                    "updated_at": timestamp,
                }
            )
        )

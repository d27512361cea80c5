"""
Brand-side aggregation for podium votes.

For every filled podium slot the aggregator credits the brand's running
totals, its per-day metrics row and one leaderboard row in each of the four
windows. Each write is a read-modify-write on a fixed composite key, so a
(brand, period) pair never gets more than one row.
"""

from typing import Optional

import structlog

from indexer.models.entities import (
    LEADERBOARD_MODELS,
    Brand,
    BrandDailyMetrics,
    BrandLeaderboardEntry,
    leaderboard_row_id,
    position_field,
)
from indexer.models.enums import Position, Timeframe
from indexer.models.results import SkippedUpdate
from indexer.storage.base import StorageBackend

from .time_windows import TimePeriods

logger = structlog.get_logger()


class BrandMetricsAggregator:
    """
    Applies podium points to brand totals, daily metrics and leaderboards.

    Attributes:
        storage: Backend the aggregates are read from and written to
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def record_podium(
        self,
        slots: list[tuple[Position, int]],
        points: tuple[int, int, int],
        periods: TimePeriods,
        block_number: int,
        timestamp: int,
    ) -> list[SkippedUpdate]:
        """
        Credit every filled slot of one podium.

        Args:
            slots: (position, brand_id) pairs for non-empty slots
            points: Point split indexed by ``Position.index``
            periods: Window keys of the vote
            block_number: Block of the vote
            timestamp: Block timestamp of the vote

        Returns:
            Skipped updates (slots naming a brand that was never created).
            Leaderboard and daily rows are still written for those slots.
        """
        skipped = []
        for position, brand_id in slots:
            awarded = points[position.index]

            if not self._credit_brand(brand_id, awarded, timestamp):
                logger.warning(
                    "update_skipped",
                    entity=Brand.table_name,
                    key=brand_id,
                    reason="brand_not_found",
                )
                skipped.append(
                    SkippedUpdate(entity=Brand.table_name, key=brand_id, reason="brand_not_found")
                )

            self._bump_daily_metrics(brand_id, position, awarded, periods.day, block_number, timestamp)

            for timeframe in Timeframe:
                self._bump_leaderboard(
                    LEADERBOARD_MODELS[timeframe],
                    brand_id,
                    periods.for_timeframe(timeframe),
                    position,
                    awarded,
                    block_number,
                    timestamp,
                )

        return skipped

    def _credit_brand(self, brand_id: int, awarded: int, timestamp: int) -> bool:
        brand = self.storage.find(Brand, brand_id)
        if brand is None:
            return False
        self.storage.upsert(
            brand.model_copy(
                update={
                    "total_votes_received": brand.total_votes_received + 1,
                    "total_brnd_awarded": brand.total_brnd_awarded + awarded,
                    "available_brnd": brand.available_brnd + awarded,
                    "last_updated": timestamp,
                }
            )
        )
        return True

    def _bump_daily_metrics(
        self,
        brand_id: int,
        position: Position,
        awarded: int,
        day: int,
        block_number: int,
        timestamp: int,
    ) -> None:
        metrics_id = f"{brand_id}-{day}"
        metrics = self.storage.find(BrandDailyMetrics, metrics_id) or BrandDailyMetrics(
            id=metrics_id,
            brand_id=brand_id,
            day=day,
            block_number=block_number,
            updated_at=timestamp,
        )
        counter = position_field("", position, "_votes")
        self.storage.upsert(
            metrics.model_copy(
                update={
                    "total_votes": metrics.total_votes + 1,
                    "total_points": metrics.total_points + awarded,
                    counter: getattr(metrics, counter) + 1,
                    "block_number": block_number,
                    "updated_at": timestamp,
                }
            )
        )

    def _bump_leaderboard(
        self,
        model: type[BrandLeaderboardEntry],
        brand_id: int,
        period: Optional[int],
        position: Position,
        awarded: int,
        block_number: int,
        timestamp: int,
    ) -> None:
        row_id = leaderboard_row_id(brand_id, period)
        row = self.storage.find(model, row_id) or model(
            id=row_id,
            brand_id=brand_id,
            period=period,
            block_number=block_number,
            updated_at=timestamp,
        )
        counter = position_field("", position, "_count")
        self.storage.upsert(
            row.model_copy(
                update={
                    "points": row.points + awarded,
                    "total_votes": row.total_votes + 1,
                    counter: getattr(row, counter) + 1,
                    "block_number": block_number,
                    "updated_at": timestamp,
                }
            )
        )

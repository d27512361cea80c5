"""
Top brands cache and rank maintenance.

After every vote the materializer re-reads the current period of each
leaderboard window in rank order (points descending, brand id ascending)
and rewrites the fixed cache slots ``<timeframe>-<rank>``. Slots are only
ever replaced, never appended; a slot whose brand dropped out of the current
period keeps its previous contents and is recognisable by ``period_value``.

With rank maintenance enabled, every row of the touched period also gets its
``rank`` / ``previous_rank`` / ``rank_change`` refreshed and the brand's
``current_<window>_rank`` column follows it. Brands with no row in the
current day, week or month have that window's rank cleared.
"""

from typing import Optional

import structlog

from indexer.models.entities import (
    BRAND_RANK_FIELDS,
    Brand,
    BrandLeaderboardEntry,
    TopBrand,
)
from indexer.models.enums import Timeframe
from indexer.storage.base import StorageBackend

from .time_windows import TimePeriods

logger = structlog.get_logger()


def top_brand_slot_id(timeframe: Timeframe, rank: int) -> str:
    return f"{timeframe.value}-{rank}"


class TopBrandsMaterializer:
    """
    Rewrites the top-N cache for each timeframe.

    Attributes:
        storage: Backend holding leaderboards and the cache
        size: Number of cache slots per timeframe
        maintain_full_ranks: Whether to recompute rank columns for the whole period
    """

    def __init__(self, storage: StorageBackend, size: int = 3, maintain_full_ranks: bool = True):
        self.storage = storage
        self.size = size
        self.maintain_full_ranks = maintain_full_ranks

    def refresh(self, periods: TimePeriods, timestamp: int) -> dict[Timeframe, list[TopBrand]]:
        """
        Refresh the cache for all four timeframes.

        Args:
            periods: Window keys of the triggering vote
            timestamp: Block timestamp of the triggering vote

        Returns:
            Cache entries written, per timeframe
        """
        written = {}
        brands = self.storage.list_all(Brand) if self.maintain_full_ranks else []
        for timeframe in Timeframe:
            period = periods.for_timeframe(timeframe)
            limit = None if self.maintain_full_ranks else self.size
            rows = self.storage.list_leaderboard(timeframe, period, limit=limit)

            if self.maintain_full_ranks:
                self._update_ranks(timeframe, rows, timestamp)
                if period is not None:
                    self._clear_stale_ranks(timeframe, rows, brands, timestamp)

            written[timeframe] = self._write_slots(timeframe, rows[: self.size], period, timestamp)
        return written

    def _write_slots(
        self,
        timeframe: Timeframe,
        rows: list[BrandLeaderboardEntry],
        period: Optional[int],
        timestamp: int,
    ) -> list[TopBrand]:
        entries = [
            TopBrand(
                id=top_brand_slot_id(timeframe, rank),
                timeframe=timeframe,
                rank=rank,
                brand_id=row.brand_id,
                points=row.points,
                total_votes=row.total_votes,
                gold_count=row.gold_count,
                silver_count=row.silver_count,
                bronze_count=row.bronze_count,
                period_value=period,
                updated_at=timestamp,
            )
            for rank, row in enumerate(rows, start=1)
        ]
        self.storage.upsert_many(entries)
        return entries

    def _update_ranks(
        self,
        timeframe: Timeframe,
        rows: list[BrandLeaderboardEntry],
        timestamp: int,
    ) -> None:
        rank_field = BRAND_RANK_FIELDS[timeframe]
        moved = 0
        for rank, row in enumerate(rows, start=1):
            if row.rank == rank:
                continue
            self.storage.upsert(
                row.model_copy(
                    update={
                        "rank": rank,
                        "previous_rank": row.rank,
                        # Positive means the brand climbed
                        "rank_change": row.rank - rank if row.rank is not None else None,
                    }
                )
            )
            self.storage.update(Brand, row.brand_id, **{rank_field: rank, "last_updated": timestamp})
            moved += 1

        if moved:
            logger.debug("ranks_updated", timeframe=timeframe.value, moved=moved, rows=len(rows))

    def _clear_stale_ranks(
        self,
        timeframe: Timeframe,
        rows: list[BrandLeaderboardEntry],
        brands: list[Brand],
        timestamp: int,
    ) -> None:
        """Drop the window rank of brands that have no row in the current period."""
        rank_field = BRAND_RANK_FIELDS[timeframe]
        ranked = {row.brand_id for row in rows}
        cleared = 0
        for brand in brands:
            if brand.id in ranked or getattr(brand, rank_field) is None:
                continue
            self.storage.update(Brand, brand.id, **{rank_field: None, "last_updated": timestamp})
            cleared += 1

        if cleared:
            logger.debug("ranks_cleared", timeframe=timeframe.value, cleared=cleared)

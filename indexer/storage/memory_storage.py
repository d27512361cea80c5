"""
In-memory storage backend.

Keeps each table as a dict of key -> model. Inside a transaction every first
write to a key records the value it replaced; when the block raises, those
values are put back (and keys that did not exist are removed). That gives the
same all-or-nothing behaviour as the DuckDB backend for a single writer, at a
cost proportional to what the event touched rather than to the whole state.
"""

import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog

from indexer.models.entities import BrandLeaderboardEntry, Entity, UserBrandRanking, Vote
from indexer.models.enums import Timeframe

from .base import E, StorageBackend

logger = structlog.get_logger(__name__)


class MemoryStorage(StorageBackend):
    """
    Dict-backed StorageBackend.

    Records are copied on the way in and on the way out, so callers can never
    mutate stored state without going through ``upsert``.
    """

    def __init__(self):
        self._tables: dict[str, dict[Any, Entity]] = {}
        self._lock = threading.RLock()
        self._depth = 0
        # (table, key) -> record replaced by the open transaction, None if new
        self._undo: Optional[dict[tuple[str, Any], Optional[Entity]]] = None

        logger.info("memory_storage_initialized")

    def _table(self, name: str) -> dict[Any, Entity]:
        return self._tables.setdefault(name, {})

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth == 0:
                self._undo = {}
            self._depth += 1
            try:
                yield
            except Exception:
                if self._depth == 1:
                    self._rollback()
                raise
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._undo = None

    def _rollback(self) -> None:
        for (table_name, key), previous in self._undo.items():
            table = self._table(table_name)
            if previous is None:
                table.pop(key, None)
            else:
                table[key] = previous
        logger.debug("memory_transaction_rolled_back", records=len(self._undo))

    def find(self, model: type[E], key: Any) -> Optional[E]:
        with self._lock:
            record = self._table(model.table_name).get(key)
            return record.model_copy(deep=True) if record is not None else None

    def upsert(self, record: Entity) -> None:
        with self._lock:
            table = self._table(record.table_name)
            if self._undo is not None:
                self._undo.setdefault((record.table_name, record.key), table.get(record.key))
            table[record.key] = record.model_copy(deep=True)

    def list_leaderboard(
        self,
        timeframe: Timeframe,
        period: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[BrandLeaderboardEntry]:
        model = self.leaderboard_model(timeframe)
        with self._lock:
            rows = [
                r.model_copy(deep=True)
                for r in self._table(model.table_name).values()
                if timeframe == Timeframe.ALL_TIME or r.period == period
            ]
        rows.sort(key=lambda r: (-r.points, r.brand_id))
        return rows[:limit] if limit is not None else rows

    def list_user_brand_rankings(self, user_fid: int) -> list[UserBrandRanking]:
        with self._lock:
            rows = [
                r.model_copy(deep=True)
                for r in self._table(UserBrandRanking.table_name).values()
                if r.user_fid == user_fid
            ]
        rows.sort(key=lambda r: (-r.times_voted, r.brand_id))
        return rows

    def find_votes(self, voter_fid: int, day: int) -> list[Vote]:
        with self._lock:
            rows = [
                v.model_copy(deep=True)
                for v in self._table(Vote.table_name).values()
                if v.voter_fid == voter_fid and v.day == day
            ]
        rows.sort(key=lambda v: (v.block_number, v.id))
        return rows

    def list_all(self, model: type[E]) -> list[E]:
        with self._lock:
            table = self._table(model.table_name)
            return [table[k].model_copy(deep=True) for k in sorted(table)]

    def count(self, model: type[E]) -> int:
        with self._lock:
            return len(self._table(model.table_name))

    def clear_for_testing(self) -> None:
        with self._lock:
            self._tables = {}

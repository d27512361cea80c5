"""
Abstract storage interface for the podium indexer.

The reducer and its aggregators never talk to a database directly; they are
handed a StorageBackend and use typed find/insert/update-by-key operations on
entity models plus a handful of ordered reads. Implementations:

- DuckDBStorage: durable local database (default)
- MemoryStorage: dict-backed store for tests and dry-run replays

Every write made while reducing one event happens inside ``transaction()``,
so a failure part-way through an event leaves no partial state behind.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Optional, TypeVar

from indexer.models.entities import (
    LEADERBOARD_MODELS,
    BrandLeaderboardEntry,
    Entity,
    UserBrandRanking,
    Vote,
)
from indexer.models.enums import Timeframe

E = TypeVar("E", bound=Entity)


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class StorageBackend(ABC):
    """
    Abstract base class for all storage implementations.

    Storage implementations should ensure:
    - Upserts replace the whole row identified by the model's key
    - Reads inside a transaction observe that transaction's own writes
    - A failed transaction is rolled back completely
    """

    # =========================================================================
    # Transactions
    # =========================================================================

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """
        Scope a unit of work.

        Nested calls join the outermost transaction. Leaving the outermost
        block normally commits; leaving it with an exception rolls back and
        re-raises.
        """
        pass

    # =========================================================================
    # Keyed access
    # =========================================================================

    @abstractmethod
    def find(self, model: type[E], key: Any) -> Optional[E]:
        """
        Load one record by key.

        Args:
            model: Entity class naming the table
            key: Value of the model's key field

        Returns:
            The record, or None when absent

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def upsert(self, record: Entity) -> None:
        """
        Insert a record, replacing any existing row with the same key.

        Fact tables rely on this for replay safety: writing the same
        transaction-keyed fact twice leaves one row.

        Raises:
            StorageError: If the write fails
        """
        pass

    def upsert_many(self, records: list[Entity]) -> int:
        """Upsert several records; returns the count written."""
        for record in records:
            self.upsert(record)
        return len(records)

    def update(self, model: type[E], key: Any, **changes: Any) -> Optional[E]:
        """
        Read-modify-write one existing record.

        Args:
            model: Entity class naming the table
            key: Value of the model's key field
            **changes: Field values to overwrite

        Returns:
            The updated record, or None when no row has that key (nothing is
            created in that case)
        """
        existing = self.find(model, key)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self.upsert(updated)
        return updated

    # =========================================================================
    # Ordered reads
    # =========================================================================

    @abstractmethod
    def list_leaderboard(
        self,
        timeframe: Timeframe,
        period: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[BrandLeaderboardEntry]:
        """
        Read one period of a brand leaderboard in rank order.

        Rows are ordered by points descending, then brand_id ascending, which
        is the tie-break used everywhere ranks are derived.

        Args:
            timeframe: Which leaderboard table
            period: Window start timestamp (ignored for all-time)
            limit: Optional maximum number of rows
        """
        pass

    @abstractmethod
    def list_user_brand_rankings(self, user_fid: int) -> list[UserBrandRanking]:
        """
        Read every brand relation of one user.

        Ordered by times_voted descending, then brand_id ascending.
        """
        pass

    @abstractmethod
    def find_votes(self, voter_fid: int, day: int) -> list[Vote]:
        """
        Read the votes cast by one FID on one day number.

        Ordered by block_number, then id.
        """
        pass

    @abstractmethod
    def list_all(self, model: type[E]) -> list[E]:
        """Read every record of a table, ordered by key."""
        pass

    @abstractmethod
    def count(self, model: type[E]) -> int:
        """Number of rows in a table."""
        pass

    @abstractmethod
    def clear_for_testing(self) -> None:
        """Delete every row in every table."""
        pass

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def leaderboard_model(timeframe: Timeframe) -> type[BrandLeaderboardEntry]:
        return LEADERBOARD_MODELS[timeframe]

"""
DuckDB storage implementation for the podium indexer.

Provides the durable backend used in production replays: a local DuckDB file
holding the fact tables (votes, claims, audit rows), the derived aggregates
(leaderboards, rankings, top-brand cache) and the processed-event ledger.

Key features:
- Thread-local connections
- Idempotent schema creation on first use
- Key-addressed upserts via INSERT OR REPLACE
- Explicit BEGIN/COMMIT/ROLLBACK around each reduced event
- Token amounts stored as decimal text, exact for any uint256 value
"""

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import duckdb
import structlog

from indexer.models.entities import (
    BrandLeaderboardEntry,
    Entity,
    UserBrandRanking,
    Vote,
)
from indexer.models.enums import Timeframe

from .base import E, StorageBackend, StorageError

logger = structlog.get_logger(__name__)

# Columns holding JSON-encoded lists
JSON_COLUMNS = {("votes", "brand_ids")}

# Point and token amount columns, stored as canonical decimal text
AMOUNT_COLUMNS = frozenset(
    {
        "amount",
        "available_brnd",
        "claim_amount",
        "cost",
        "points",
        "total_brnd_awarded",
        "total_points",
        "total_points_earned",
    }
)

# Numeric order for non-negative decimal text: shorter strings are smaller
_POINTS_ORDER = "length(points) DESC, points DESC, brand_id ASC"

_LEADERBOARD_COLUMNS = """
    id VARCHAR PRIMARY KEY,
    brand_id INTEGER NOT NULL,
    period BIGINT,
    points VARCHAR NOT NULL DEFAULT '0',
    gold_count INTEGER NOT NULL DEFAULT 0,
    silver_count INTEGER NOT NULL DEFAULT 0,
    bronze_count INTEGER NOT NULL DEFAULT 0,
    total_votes INTEGER NOT NULL DEFAULT 0,
    rank INTEGER,
    previous_rank INTEGER,
    rank_change INTEGER,
    block_number BIGINT NOT NULL,
    updated_at BIGINT NOT NULL
"""

SCHEMA = [
    # =========================================================================
    # Core entities
    # =========================================================================
    """
    CREATE TABLE IF NOT EXISTS brands (
        id INTEGER PRIMARY KEY,
        fid INTEGER NOT NULL,
        wallet_address VARCHAR NOT NULL,
        handle VARCHAR NOT NULL,
        metadata_hash VARCHAR NOT NULL,
        total_votes_received INTEGER NOT NULL DEFAULT 0,
        total_brnd_awarded VARCHAR NOT NULL DEFAULT '0',
        available_brnd VARCHAR NOT NULL DEFAULT '0',
        current_daily_rank INTEGER,
        current_weekly_rank INTEGER,
        current_monthly_rank INTEGER,
        current_all_time_rank INTEGER,
        created_at BIGINT NOT NULL,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL,
        last_updated BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        fid INTEGER PRIMARY KEY,
        brnd_power_level INTEGER NOT NULL DEFAULT 0,
        points VARCHAR NOT NULL DEFAULT '0',
        total_votes INTEGER NOT NULL DEFAULT 0,
        total_podiums INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        max_streak INTEGER NOT NULL DEFAULT 0,
        last_vote_day BIGINT,
        has_voted_today BOOLEAN NOT NULL DEFAULT FALSE,
        voted_brands_count INTEGER NOT NULL DEFAULT 0,
        favorite_brand_id INTEGER,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL,
        last_updated BIGINT NOT NULL
    )
    """,
    # =========================================================================
    # Vote facts
    # =========================================================================
    """
    CREATE TABLE IF NOT EXISTS votes (
        id VARCHAR PRIMARY KEY,
        voter VARCHAR NOT NULL,
        voter_fid INTEGER NOT NULL,
        day BIGINT NOT NULL,
        gold_brand_id INTEGER NOT NULL,
        silver_brand_id INTEGER NOT NULL,
        bronze_brand_id INTEGER NOT NULL,
        brand_ids JSON NOT NULL,
        cost VARCHAR NOT NULL,
        claimed_at BIGINT,
        claim_amount VARCHAR,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL,
        timestamp BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS individual_votes (
        id VARCHAR PRIMARY KEY,
        vote_id VARCHAR NOT NULL,
        voter_fid INTEGER NOT NULL,
        brand_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        points VARCHAR NOT NULL,
        day BIGINT NOT NULL,
        timestamp BIGINT NOT NULL,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL
    )
    """,
    # =========================================================================
    # Audit facts
    # =========================================================================
    """
    CREATE TABLE IF NOT EXISTS wallet_authorizations (
        id VARCHAR PRIMARY KEY,
        fid INTEGER NOT NULL,
        wallet VARCHAR NOT NULL,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL,
        timestamp BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reward_claims (
        id VARCHAR PRIMARY KEY,
        recipient VARCHAR NOT NULL,
        fid INTEGER NOT NULL,
        amount VARCHAR NOT NULL,
        day BIGINT NOT NULL,
        cast_hash VARCHAR NOT NULL,
        caller VARCHAR NOT NULL,
        vote_id VARCHAR,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL,
        timestamp BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS brand_reward_withdrawals (
        id VARCHAR PRIMARY KEY,
        brand_id INTEGER NOT NULL,
        fid INTEGER NOT NULL,
        amount VARCHAR NOT NULL,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL,
        timestamp BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS brnd_power_level_ups (
        id VARCHAR PRIMARY KEY,
        fid INTEGER NOT NULL,
        new_level INTEGER NOT NULL,
        wallet VARCHAR NOT NULL,
        block_number BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL,
        timestamp BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS processed_events (
        id VARCHAR PRIMARY KEY,
        kind VARCHAR NOT NULL,
        block_number BIGINT NOT NULL,
        block_timestamp BIGINT NOT NULL,
        transaction_hash VARCHAR NOT NULL
    )
    """,
    # =========================================================================
    # Derived aggregates
    # =========================================================================
    f"CREATE TABLE IF NOT EXISTS daily_brand_leaderboard ({_LEADERBOARD_COLUMNS})",
    f"CREATE TABLE IF NOT EXISTS weekly_brand_leaderboard ({_LEADERBOARD_COLUMNS})",
    f"CREATE TABLE IF NOT EXISTS monthly_brand_leaderboard ({_LEADERBOARD_COLUMNS})",
    f"CREATE TABLE IF NOT EXISTS all_time_brand_leaderboard ({_LEADERBOARD_COLUMNS})",
    """
    CREATE TABLE IF NOT EXISTS all_time_user_leaderboard (
        fid INTEGER PRIMARY KEY,
        points VARCHAR NOT NULL DEFAULT '0',
        total_votes INTEGER NOT NULL DEFAULT 0,
        total_podiums INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        max_streak INTEGER NOT NULL DEFAULT 0,
        block_number BIGINT NOT NULL,
        updated_at BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS top_brands (
        id VARCHAR PRIMARY KEY,
        timeframe VARCHAR NOT NULL,
        rank INTEGER NOT NULL,
        brand_id INTEGER NOT NULL,
        points VARCHAR NOT NULL,
        total_votes INTEGER NOT NULL,
        gold_count INTEGER NOT NULL DEFAULT 0,
        silver_count INTEGER NOT NULL DEFAULT 0,
        bronze_count INTEGER NOT NULL DEFAULT 0,
        period_value BIGINT,
        updated_at BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_brand_rankings (
        id VARCHAR PRIMARY KEY,
        user_fid INTEGER NOT NULL,
        brand_id INTEGER NOT NULL,
        times_voted INTEGER NOT NULL DEFAULT 0,
        times_voted_gold INTEGER NOT NULL DEFAULT 0,
        times_voted_silver INTEGER NOT NULL DEFAULT 0,
        times_voted_bronze INTEGER NOT NULL DEFAULT 0,
        last_voted_day BIGINT,
        total_points_earned VARCHAR NOT NULL DEFAULT '0',
        updated_at BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS brand_daily_metrics (
        id VARCHAR PRIMARY KEY,
        brand_id INTEGER NOT NULL,
        day BIGINT NOT NULL,
        total_votes INTEGER NOT NULL DEFAULT 0,
        gold_votes INTEGER NOT NULL DEFAULT 0,
        silver_votes INTEGER NOT NULL DEFAULT 0,
        bronze_votes INTEGER NOT NULL DEFAULT 0,
        total_points VARCHAR NOT NULL DEFAULT '0',
        block_number BIGINT NOT NULL,
        updated_at BIGINT NOT NULL
    )
    """,
]

TABLES = [
    "brands",
    "users",
    "votes",
    "individual_votes",
    "wallet_authorizations",
    "reward_claims",
    "brand_reward_withdrawals",
    "brnd_power_level_ups",
    "processed_events",
    "daily_brand_leaderboard",
    "weekly_brand_leaderboard",
    "monthly_brand_leaderboard",
    "all_time_brand_leaderboard",
    "all_time_user_leaderboard",
    "top_brands",
    "user_brand_rankings",
    "brand_daily_metrics",
]


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        threads: DuckDB worker thread setting
        _local: Thread-local storage for per-thread connections and
            transaction depth
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/indexer.duckdb", threads: int = 4):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file (default: ./data/indexer.duckdb)
            threads: DuckDB thread count
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.threads = threads

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    def _connection(self) -> duckdb.DuckDBPyConnection:
        """
        Get the calling thread's DuckDB connection, creating it on first use.

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(
                    str(self.db_path), config={"threads": self.threads}
                )
                self._local.depth = 0
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e
        return self._local.connection

    def _initialize_schema(self) -> None:
        """
        Create every table. Idempotent.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return
            try:
                conn = self._connection()
                for statement in SCHEMA:
                    conn.execute(statement)
                self._initialized = True
                logger.info("duckdb_schema_initialized", tables=len(TABLES))
            except duckdb.Error as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def close(self) -> None:
        """Close the calling thread's connection."""
        if hasattr(self._local, "connection"):
            self._local.connection.close()
            del self._local.connection

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._connection()
        outermost = self._local.depth == 0
        if outermost:
            conn.begin()
        self._local.depth += 1
        try:
            yield
        except Exception:
            self._local.depth -= 1
            if outermost:
                conn.rollback()
                logger.debug("duckdb_transaction_rolled_back")
            raise
        else:
            self._local.depth -= 1
            if outermost:
                try:
                    conn.commit()
                except duckdb.Error as e:
                    logger.error("duckdb_commit_failed", error=str(e))
                    raise StorageError(f"Failed to commit transaction: {e}") from e

    # =========================================================================
    # Row conversion
    # =========================================================================

    @staticmethod
    def _columns(model: type[Entity]) -> list[str]:
        return list(model.model_fields)

    def _to_row(self, record: Entity) -> list[Any]:
        data = record.model_dump(mode="json")
        row = []
        for column in self._columns(type(record)):
            value = data[column]
            if (record.table_name, column) in JSON_COLUMNS:
                value = json.dumps(value)
            elif column in AMOUNT_COLUMNS and value is not None:
                value = str(value)
            row.append(value)
        return row

    def _from_row(self, model: type[E], row: tuple) -> E:
        data = dict(zip(self._columns(model), row))
        for column, value in data.items():
            if (model.table_name, column) in JSON_COLUMNS and isinstance(value, str):
                data[column] = json.loads(value)
            elif column in AMOUNT_COLUMNS and value is not None:
                data[column] = int(value)
        return model.model_validate(data)

    def _select(self, model: type[E], where: str = "", params: Optional[list] = None,
                order_by: Optional[str] = None, limit: Optional[int] = None) -> list[E]:
        query = f"SELECT {', '.join(self._columns(model))} FROM {model.table_name}"
        if where:
            query += f" WHERE {where}"
        query += f" ORDER BY {order_by or model.key_field}"
        params = list(params or [])
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        try:
            rows = self._connection().execute(query, params).fetchall()
        except duckdb.Error as e:
            logger.error("duckdb_select_failed", table=model.table_name, error=str(e))
            raise StorageError(f"Failed to read {model.table_name}: {e}") from e
        return [self._from_row(model, row) for row in rows]

    # =========================================================================
    # Keyed access
    # =========================================================================

    def find(self, model: type[E], key: Any) -> Optional[E]:
        rows = self._select(model, f"{model.key_field} = ?", [key])
        return rows[0] if rows else None

    def upsert(self, record: Entity) -> None:
        columns = self._columns(type(record))
        placeholders = ", ".join("?" for _ in columns)
        try:
            self._connection().execute(
                f"INSERT OR REPLACE INTO {record.table_name} ({', '.join(columns)}) "
                f"VALUES ({placeholders})",
                self._to_row(record),
            )
        except duckdb.Error as e:
            logger.error(
                "duckdb_upsert_failed",
                table=record.table_name,
                key=record.key,
                error=str(e),
            )
            raise StorageError(f"Failed to write {record.table_name}: {e}") from e

    # =========================================================================
    # Ordered reads
    # =========================================================================

    def list_leaderboard(
        self,
        timeframe: Timeframe,
        period: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[BrandLeaderboardEntry]:
        model = self.leaderboard_model(timeframe)
        if timeframe == Timeframe.ALL_TIME:
            return self._select(model, order_by=_POINTS_ORDER, limit=limit)
        return self._select(
            model, "period = ?", [period], order_by=_POINTS_ORDER, limit=limit
        )

    def list_user_brand_rankings(self, user_fid: int) -> list[UserBrandRanking]:
        return self._select(
            UserBrandRanking,
            "user_fid = ?",
            [user_fid],
            order_by="times_voted DESC, brand_id ASC",
        )

    def find_votes(self, voter_fid: int, day: int) -> list[Vote]:
        return self._select(
            Vote, "voter_fid = ? AND day = ?", [voter_fid, day], order_by="block_number, id"
        )

    def list_all(self, model: type[E]) -> list[E]:
        return self._select(model)

    def count(self, model: type[E]) -> int:
        try:
            result = self._connection().execute(
                f"SELECT COUNT(*) FROM {model.table_name}"
            ).fetchone()
        except duckdb.Error as e:
            raise StorageError(f"Failed to count {model.table_name}: {e}") from e
        return int(result[0])

    def clear_for_testing(self) -> None:
        """Delete all data from all tables. Use only in tests."""
        conn = self._connection()
        for table in TABLES:
            conn.execute(f"DELETE FROM {table}")
        logger.debug("duckdb_tables_cleared", tables=len(TABLES))

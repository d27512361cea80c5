"""
Integration tests for the DuckDB storage backend.

Each test gets its own database file under pytest's tmp_path. The same
event sequences are also reduced against MemoryStorage to check both
backends materialize identical state.
"""

import threading

import pytest

from indexer.engine.reducer import EventReducer
from indexer.models import (
    AllTimeBrandLeaderboard,
    AllTimeUserLeaderboard,
    Brand,
    BrandDailyMetrics,
    DailyBrandLeaderboard,
    IndividualVote,
    MonthlyBrandLeaderboard,
    ProcessedEvent,
    RewardClaim,
    Timeframe,
    TopBrand,
    User,
    UserBrandRanking,
    Vote,
    WeeklyBrandLeaderboard,
)
from indexer.storage.duckdb_storage import TABLES, DuckDBStorage
from indexer.storage.memory_storage import MemoryStorage
from tests.conftest import (
    BASE_TS,
    day_offset,
    make_brands_created,
    make_level_up,
    make_podium,
    make_reward_claimed,
    make_settings,
    make_withdrawal,
)


def make_brand(brand_id: int, **overrides) -> Brand:
    defaults = dict(
        id=brand_id,
        fid=brand_id + 100,
        wallet_address=f"0xbrand{brand_id}",
        handle=f"brand{brand_id}",
        created_at=BASE_TS,
        block_number=1,
        transaction_hash="0xabc",
        last_updated=BASE_TS,
    )
    defaults.update(overrides)
    return Brand(**defaults)


def make_leaderboard_row(brand_id: int, points: int, period=None) -> AllTimeBrandLeaderboard:
    return AllTimeBrandLeaderboard(
        id=str(brand_id),
        brand_id=brand_id,
        period=period,
        points=points,
        total_votes=1,
        block_number=1,
        updated_at=BASE_TS,
    )


# =============================================================================
# Schema and keyed access
# =============================================================================


class TestDuckDBSchema:
    """Test schema creation and basic reads and writes."""

    def test_all_tables_created(self, duckdb_storage):
        for model in (Brand, User, Vote, TopBrand, ProcessedEvent):
            assert duckdb_storage.count(model) == 0
        assert len(TABLES) == 17

    def test_schema_initialization_is_idempotent(self, tmp_path):
        path = str(tmp_path / "twice.duckdb")
        first = DuckDBStorage(db_path=path, threads=1)
        first.upsert(make_brand(1))
        first.close()

        second = DuckDBStorage(db_path=path, threads=1)
        assert second.find(Brand, 1) is not None
        second.close()

    def test_find_missing_returns_none(self, duckdb_storage):
        assert duckdb_storage.find(Brand, 404) is None

    def test_upsert_round_trip(self, duckdb_storage):
        brand = make_brand(7, total_brnd_awarded=60, available_brnd=60)
        duckdb_storage.upsert(brand)

        assert duckdb_storage.find(Brand, 7) == brand

    def test_upsert_replaces_row(self, duckdb_storage):
        duckdb_storage.upsert(make_brand(7))
        duckdb_storage.upsert(make_brand(7, handle="renamed"))

        assert duckdb_storage.count(Brand) == 1
        assert duckdb_storage.find(Brand, 7).handle == "renamed"

    def test_large_amounts_are_exact(self, duckdb_storage):
        """Token amounts round-trip exactly, far beyond 128-bit range."""
        amount = 2**256 - 1
        duckdb_storage.upsert(make_brand(7, total_brnd_awarded=amount, available_brnd=-amount))

        brand = duckdb_storage.find(Brand, 7)
        assert brand.total_brnd_awarded == amount
        assert brand.available_brnd == -amount

    def test_vote_brand_ids_round_trip(self, duckdb_storage):
        vote = Vote(
            id="0xvote",
            voter="0xvoter",
            voter_fid=42,
            day=19_732,
            gold_brand_id=7,
            silver_brand_id=8,
            brand_ids=[7, 8],
            cost=100,
            block_number=1,
            transaction_hash="0xvote",
            timestamp=BASE_TS,
        )
        duckdb_storage.upsert(vote)

        stored = duckdb_storage.find(Vote, "0xvote")
        assert stored.brand_ids == [7, 8]
        assert stored.claimed_at is None

    def test_top_brand_timeframe_round_trip(self, duckdb_storage):
        entry = TopBrand(
            id="weekly-1",
            timeframe=Timeframe.WEEKLY,
            rank=1,
            brand_id=7,
            points=60,
            total_votes=1,
            period_value=BASE_TS,
            updated_at=BASE_TS,
        )
        duckdb_storage.upsert(entry)

        assert duckdb_storage.find(TopBrand, "weekly-1").timeframe == Timeframe.WEEKLY

    def test_update_missing_returns_none(self, duckdb_storage):
        assert duckdb_storage.update(Brand, 5, handle="x") is None
        assert duckdb_storage.count(Brand) == 0

    def test_clear_for_testing(self, duckdb_storage):
        duckdb_storage.upsert(make_brand(1))
        duckdb_storage.clear_for_testing()

        assert duckdb_storage.count(Brand) == 0


# =============================================================================
# Ordered reads
# =============================================================================


class TestDuckDBOrderedReads:
    """Test the ordered read helpers used by aggregators."""

    def test_leaderboard_ordering_and_tie_break(self, duckdb_storage):
        duckdb_storage.upsert_many(
            [make_leaderboard_row(9, 70), make_leaderboard_row(8, 60), make_leaderboard_row(7, 70)]
        )

        rows = duckdb_storage.list_leaderboard(Timeframe.ALL_TIME)
        assert [r.brand_id for r in rows] == [7, 9, 8]

    def test_leaderboard_orders_numerically_across_digit_counts(self, duckdb_storage):
        duckdb_storage.upsert_many(
            [
                make_leaderboard_row(1, 9),
                make_leaderboard_row(2, 10),
                make_leaderboard_row(3, 2**200),
                make_leaderboard_row(4, 100),
                make_leaderboard_row(5, 0),
            ]
        )

        rows = duckdb_storage.list_leaderboard(Timeframe.ALL_TIME)
        assert [r.brand_id for r in rows] == [3, 4, 2, 1, 5]

    def test_leaderboard_limit(self, duckdb_storage):
        duckdb_storage.upsert_many([make_leaderboard_row(b, b * 10) for b in range(1, 6)])

        rows = duckdb_storage.list_leaderboard(Timeframe.ALL_TIME, limit=2)
        assert [r.brand_id for r in rows] == [5, 4]

    def test_leaderboard_filters_period(self, duckdb_storage):
        for brand_id, period in ((1, 100), (2, 100), (3, 200)):
            duckdb_storage.upsert(
                DailyBrandLeaderboard(
                    id=f"{brand_id}-{period}",
                    brand_id=brand_id,
                    period=period,
                    points=brand_id,
                    block_number=1,
                    updated_at=BASE_TS,
                )
            )

        rows = duckdb_storage.list_leaderboard(Timeframe.DAILY, 100)
        assert [r.brand_id for r in rows] == [2, 1]

    def test_user_brand_rankings_ordering(self, duckdb_storage):
        for brand_id, times in ((3, 1), (2, 4), (1, 4)):
            duckdb_storage.upsert(
                UserBrandRanking(
                    id=f"42-{brand_id}",
                    user_fid=42,
                    brand_id=brand_id,
                    times_voted=times,
                    updated_at=BASE_TS,
                )
            )

        rankings = duckdb_storage.list_user_brand_rankings(42)
        assert [r.brand_id for r in rankings] == [1, 2, 3]
        assert duckdb_storage.list_user_brand_rankings(43) == []


# =============================================================================
# Transactions
# =============================================================================


class TestDuckDBTransactions:
    """Test commit, rollback and nesting."""

    def test_commit(self, duckdb_storage):
        with duckdb_storage.transaction():
            duckdb_storage.upsert(make_brand(1))

        assert duckdb_storage.find(Brand, 1) is not None

    def test_rollback_on_exception(self, duckdb_storage):
        with pytest.raises(RuntimeError):
            with duckdb_storage.transaction():
                duckdb_storage.upsert(make_brand(1))
                assert duckdb_storage.find(Brand, 1) is not None
                raise RuntimeError("abort")

        assert duckdb_storage.find(Brand, 1) is None

    def test_nested_transaction_joins_outer(self, duckdb_storage):
        with pytest.raises(RuntimeError):
            with duckdb_storage.transaction():
                duckdb_storage.upsert(make_brand(1))
                with duckdb_storage.transaction():
                    duckdb_storage.upsert(make_brand(2))
                raise RuntimeError("abort")

        assert duckdb_storage.count(Brand) == 0

    def test_repeated_upsert_in_one_transaction(self, duckdb_storage):
        with duckdb_storage.transaction():
            for points in (10, 20, 30):
                duckdb_storage.upsert(make_leaderboard_row(7, points))

        assert duckdb_storage.find(AllTimeBrandLeaderboard, "7").points == 30

    def test_commit_visible_from_other_thread(self, duckdb_storage):
        with duckdb_storage.transaction():
            duckdb_storage.upsert(make_brand(1))

        found = []
        worker = threading.Thread(target=lambda: found.append(duckdb_storage.find(Brand, 1)))
        worker.start()
        worker.join()

        assert found[0] is not None


# =============================================================================
# Reducer on DuckDB
# =============================================================================


def season_events():
    return [
        make_brands_created([7, 8, 9, 10]),
        make_level_up(fid=42, new_level=3),
        make_podium(fid=42, brand_ids=[7, 8, 9], cost=100, block_number=1_001),
        make_podium(fid=43, brand_ids=[9, 8, 10], cost=250, block_number=1_002),
        make_reward_claimed(fid=42, amount=1_000),
        make_podium(fid=42, brand_ids=[8, 7], cost=10**21, block_timestamp=day_offset(1), block_number=1_100),
        make_withdrawal(brand_id=8, amount=5),
        make_podium(fid=42, brand_ids=[10, 9, 7], cost=55, block_timestamp=day_offset(2), block_number=1_200),
    ]


class TestReducerOnDuckDB:
    """Test the reducer end to end on the durable backend."""

    def test_end_to_end_scenario(self, duckdb_storage):
        reducer = EventReducer(duckdb_storage, make_settings(db_type="duckdb"))
        reducer.apply(make_brands_created([7, 8, 9]))
        reducer.apply(make_podium())

        user = duckdb_storage.find(User, 42)
        brand = duckdb_storage.find(Brand, 7)
        assert (user.points, user.total_votes, user.current_streak) == (3, 1, 1)
        assert (brand.total_votes_received, brand.total_brnd_awarded) == (1, 60)
        assert duckdb_storage.count(IndividualVote) == 3
        assert duckdb_storage.find(TopBrand, "daily-1").brand_id == 7

    def test_uint256_cost_reduced_exactly(self, duckdb_storage):
        cost = 2**256 - 1
        reducer = EventReducer(duckdb_storage, make_settings(db_type="duckdb"))
        reducer.apply(make_brands_created([7, 8, 9]))

        result = reducer.apply(make_podium(cost=cost))

        assert result.applied
        gold, silver, bronze = cost * 60 // 100, cost * 30 // 100, cost * 10 // 100
        assert duckdb_storage.find(Brand, 7).total_brnd_awarded == gold
        assert duckdb_storage.find(Brand, 8).available_brnd == silver
        assert duckdb_storage.find(AllTimeBrandLeaderboard, "9").points == bronze
        assert duckdb_storage.list_all(Vote)[0].cost == cost
        assert duckdb_storage.find(TopBrand, "alltime-1").brand_id == 7

    def test_backends_materialize_identical_state(self, duckdb_storage):
        memory = MemoryStorage()
        events = season_events()

        EventReducer(duckdb_storage, make_settings(db_type="duckdb")).apply_many(events)
        EventReducer(memory, make_settings()).apply_many(events)

        for model in (
            Brand,
            User,
            Vote,
            IndividualVote,
            RewardClaim,
            UserBrandRanking,
            BrandDailyMetrics,
            DailyBrandLeaderboard,
            WeeklyBrandLeaderboard,
            MonthlyBrandLeaderboard,
            AllTimeBrandLeaderboard,
            AllTimeUserLeaderboard,
            TopBrand,
            ProcessedEvent,
        ):
            assert duckdb_storage.list_all(model) == memory.list_all(model), model.__name__

    def test_duplicate_delivery_on_duckdb(self, duckdb_storage):
        reducer = EventReducer(duckdb_storage, make_settings(db_type="duckdb"))
        events = season_events()
        reducer.apply_many(events)
        before = duckdb_storage.list_all(AllTimeBrandLeaderboard)

        reducer.apply_many(events)

        assert duckdb_storage.list_all(AllTimeBrandLeaderboard) == before
        assert reducer.stats["duplicates"] == len(events)

    def test_failed_event_rolls_back(self, duckdb_storage, monkeypatch):
        reducer = EventReducer(duckdb_storage, make_settings(db_type="duckdb"))
        reducer.apply(make_brands_created([7, 8, 9]))

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(reducer.top_brands, "refresh", explode)
        with pytest.raises(RuntimeError):
            reducer.apply(make_podium())

        assert duckdb_storage.count(Vote) == 0
        assert duckdb_storage.find(Brand, 7).total_votes_received == 0
        assert duckdb_storage.count(ProcessedEvent) == 1

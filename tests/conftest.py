"""
Pytest configuration and shared fixtures for the podium indexer test suite.

Provides event factories, storage fixtures for both backends, environment
isolation and a ready-to-use reducer, reused across unit, integration,
golden and property-based tests.
"""

import os
import tempfile
import uuid as _uuid
from typing import Optional
from uuid import uuid4

import pytest

# Set testing environment BEFORE importing settings consumers.
# Use temp path (must not exist - DuckDB creates the file). :memory: gives a
# per-connection database, which breaks the thread-local connections.
_test_db_path = os.path.join(tempfile.gettempdir(), f"indexer_test_{_uuid.uuid4().hex[:8]}.duckdb")
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path


from indexer.config import Settings
from indexer.engine.reducer import EventReducer
from indexer.models.events import (
    BrandCreated,
    BrandRewardWithdrawn,
    BrandsCreated,
    BrandUpdated,
    BrndPowerLevelUp,
    PodiumCreated,
    RewardClaimed,
    WalletAuthorized,
)
from indexer.storage.duckdb_storage import DuckDBStorage
from indexer.storage.memory_storage import MemoryStorage

# ---------------------------------------------------------------------------
# Reference timestamps (UTC)
# ---------------------------------------------------------------------------

SECONDS_PER_DAY = 86_400

# Wed 2024-01-10 12:00:00
BASE_TS = 1_704_888_000
# Fri 2024-01-05 13:13:00, a week anchor
FRIDAY_ANCHOR_TS = 1_704_460_380


def day_offset(days: int, base: int = BASE_TS) -> int:
    """Timestamp ``days`` whole days after ``base``."""
    return base + days * SECONDS_PER_DAY


def tx_hash() -> str:
    return f"0x{uuid4().hex}{uuid4().hex}"


# ---------------------------------------------------------------------------
# Event factories
# ---------------------------------------------------------------------------


def make_podium(
    fid: int = 42,
    brand_ids: Optional[list[int]] = None,
    cost: int = 100,
    block_timestamp: int = BASE_TS,
    block_number: int = 1_000,
    **overrides,
) -> PodiumCreated:
    """Factory function for creating test PodiumCreated events."""
    defaults = dict(
        voter="0xVoter000000000000000000000000000000000001",
        fid=fid,
        brand_ids=[7, 8, 9] if brand_ids is None else brand_ids,
        cost=cost,
        block_number=block_number,
        block_timestamp=block_timestamp,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return PodiumCreated(**defaults)


def make_brand_created(brand_id: int = 7, block_number: int = 10, **overrides) -> BrandCreated:
    """Factory function for creating test BrandCreated events."""
    defaults = dict(
        brand_id=brand_id,
        handle=f"brand{brand_id}",
        fid=10_000 + brand_id,
        wallet_address=f"0xBRAND{brand_id:035d}",
        created_at=BASE_TS - 30 * SECONDS_PER_DAY,
        block_number=block_number,
        block_timestamp=BASE_TS - 30 * SECONDS_PER_DAY,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return BrandCreated(**defaults)


def make_brands_created(brand_ids: Optional[list[int]] = None, **overrides) -> BrandsCreated:
    """Factory function for creating test BrandsCreated events."""
    ids = [7, 8, 9] if brand_ids is None else brand_ids
    defaults = dict(
        brand_ids=ids,
        handles=[f"brand{b}" for b in ids],
        fids=[10_000 + b for b in ids],
        wallet_addresses=[f"0xBRAND{b:035d}" for b in ids],
        created_at=BASE_TS - 30 * SECONDS_PER_DAY,
        block_number=10,
        block_timestamp=BASE_TS - 30 * SECONDS_PER_DAY,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return BrandsCreated(**defaults)


def make_reward_claimed(
    fid: int = 42,
    amount: int = 500,
    block_timestamp: int = BASE_TS + 3_600,
    **overrides,
) -> RewardClaimed:
    """Factory function for creating test RewardClaimed events."""
    defaults = dict(
        recipient="0xVoter000000000000000000000000000000000001",
        fid=fid,
        amount=amount,
        cast_hash="0xcast",
        caller="0xCALLER0000000000000000000000000000000001",
        block_number=2_000,
        block_timestamp=block_timestamp,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return RewardClaimed(**defaults)


def make_withdrawal(brand_id: int = 7, amount: int = 10, **overrides) -> BrandRewardWithdrawn:
    """Factory function for creating test BrandRewardWithdrawn events."""
    defaults = dict(
        brand_id=brand_id,
        fid=10_000 + brand_id,
        amount=amount,
        block_number=3_000,
        block_timestamp=BASE_TS + 7_200,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return BrandRewardWithdrawn(**defaults)


def make_level_up(fid: int = 42, new_level: int = 2, **overrides) -> BrndPowerLevelUp:
    """Factory function for creating test BrndPowerLevelUp events."""
    defaults = dict(
        fid=fid,
        new_level=new_level,
        wallet="0xVoter000000000000000000000000000000000001",
        block_number=500,
        block_timestamp=BASE_TS - SECONDS_PER_DAY,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return BrndPowerLevelUp(**defaults)


def make_brand_updated(brand_id: int = 7, **overrides) -> BrandUpdated:
    """Factory function for creating test BrandUpdated events."""
    defaults = dict(
        brand_id=brand_id,
        new_metadata_hash="QmNewMetadata",
        new_fid=20_000 + brand_id,
        new_wallet_address="0xNEWWALLET000000000000000000000000000001",
        block_number=4_000,
        block_timestamp=BASE_TS + 10_800,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return BrandUpdated(**defaults)


def make_wallet_authorized(fid: int = 42, **overrides) -> WalletAuthorized:
    """Factory function for creating test WalletAuthorized events."""
    defaults = dict(
        fid=fid,
        wallet="0xWALLET00000000000000000000000000000000001",
        block_number=50,
        block_timestamp=BASE_TS - 2 * SECONDS_PER_DAY,
        transaction_hash=tx_hash(),
    )
    defaults.update(overrides)
    return WalletAuthorized(**defaults)


def make_settings(**overrides) -> Settings:
    """Settings isolated from any local .env file."""
    defaults = dict(_env_file=None, db_type="memory", testing=True)
    defaults.update(overrides)
    return Settings(**defaults)


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings():
    return make_settings()


@pytest.fixture
def memory_storage():
    """Fresh dict-backed storage."""
    return MemoryStorage()


@pytest.fixture
def duckdb_storage(tmp_path):
    """DuckDB storage on a temporary database file."""
    storage = DuckDBStorage(db_path=str(tmp_path / "indexer.duckdb"), threads=1)
    yield storage
    storage.close()


@pytest.fixture
def reducer(memory_storage, test_settings):
    """Reducer over memory storage with default reward rules."""
    return EventReducer(memory_storage, test_settings)


@pytest.fixture
def seeded_reducer(reducer):
    """Reducer with brands 7, 8 and 9 already created."""
    reducer.apply(make_brands_created([7, 8, 9]))
    return reducer

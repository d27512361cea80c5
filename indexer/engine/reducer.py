"""
Event reducer: applies one contract event at a time to materialized state.

Each event kind has one handler. A handler writes the event's fact rows and
drives the aggregators; everything it writes, plus the event's entry in the
processed-event ledger, happens inside a single storage transaction. An
exception anywhere in a handler rolls the whole event back, so the caller
can retry the same event without double counting.

Re-delivery of an event whose identity (tx hash + log index) is already in
the ledger is recognised before any handler runs and reported as a
DUPLICATE result.

Updates that address a missing entity (an unknown brand, a claim with no
matching vote) do not raise. They are logged as ``update_skipped`` and
returned on the ReductionResult so callers can count them.
"""

from collections import Counter
from typing import Callable, Iterable, Optional

import structlog

from indexer.config import Settings, get_settings
from indexer.models.entities import (
    Brand,
    BrandRewardWithdrawal,
    BrndPowerLevelUpRecord,
    IndividualVote,
    ProcessedEvent,
    RewardClaim,
    User,
    Vote,
    WalletAuthorization,
)
from indexer.models.enums import EventKind, ReductionStatus
from indexer.models.events import (
    BrandCreated,
    BrandRewardWithdrawn,
    BrandsCreated,
    BrandUpdated,
    BrndPowerLevelUp,
    ChainEvent,
    PodiumCreated,
    RewardClaimed,
    WalletAuthorized,
)
from indexer.models.results import ReductionResult, SkippedUpdate
from indexer.storage.base import StorageBackend
from indexer.utils.logging import bind_event_context, clear_event_context

from .brand_metrics import BrandMetricsAggregator
from .points import podium_slots, slot_brand_ids, split_points
from .time_windows import calculate_day_number, get_time_periods
from .top_brands import TopBrandsMaterializer
from .user_engagement import UserEngagementAggregator

logger = structlog.get_logger()


class EventReductionError(Exception):
    """Base exception for events that cannot be reduced."""

    pass


class MalformedEventError(EventReductionError):
    """Event payload is internally inconsistent; nothing was written."""

    pass


class EventReducer:
    """
    Applies decoded contract events to storage, exactly once per identity.

    Events must be applied in ledger order by a single caller; the reducer
    keeps no state between events apart from its counters.

    Attributes:
        storage: Backend holding facts and aggregates
        settings: Reward and materialization settings
        brand_metrics: Brand totals, daily metrics and leaderboards
        engagement: User rankings, profile, streaks and user leaderboard
        top_brands: Top-N cache and rank maintenance
        stats: Running counters (applied, duplicates, skipped_updates, warnings)

    Example:
        >>> reducer = EventReducer(MemoryStorage())
        >>> result = reducer.apply(parse_event(payload))
        >>> result.status
        <ReductionStatus.APPLIED: 'applied'>
    """

    def __init__(self, storage: StorageBackend, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or get_settings()

        self.brand_metrics = BrandMetricsAggregator(storage)
        self.engagement = UserEngagementAggregator(storage)
        self.top_brands = TopBrandsMaterializer(
            storage,
            size=self.settings.top_brands_size,
            maintain_full_ranks=self.settings.maintain_full_ranks,
        )

        self.stats: Counter = Counter()
        self.kind_counts: Counter = Counter()

        self._handlers: dict[EventKind, Callable[[ChainEvent, ReductionResult], None]] = {
            EventKind.PODIUM_CREATED: self._reduce_podium_created,
            EventKind.BRAND_CREATED: self._reduce_brand_created,
            EventKind.BRANDS_CREATED: self._reduce_brands_created,
            EventKind.WALLET_AUTHORIZED: self._reduce_wallet_authorized,
            EventKind.REWARD_CLAIMED: self._reduce_reward_claimed,
            EventKind.BRAND_REWARD_WITHDRAWN: self._reduce_brand_reward_withdrawn,
            EventKind.BRND_POWER_LEVEL_UP: self._reduce_brnd_power_level_up,
            EventKind.BRAND_UPDATED: self._reduce_brand_updated,
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def apply(self, event: ChainEvent) -> ReductionResult:
        """
        Reduce one event.

        Args:
            event: Decoded contract event

        Returns:
            ReductionResult describing what happened

        Raises:
            MalformedEventError: If the event payload is inconsistent
            StorageError: If the backend fails; the event is rolled back
        """
        kind = event.event_kind
        bind_event_context(event.event_id, kind.value, event.block_number)
        try:
            with self.storage.transaction():
                if self.storage.find(ProcessedEvent, event.event_id) is not None:
                    result = ReductionResult(
                        event_id=event.event_id,
                        kind=kind,
                        status=ReductionStatus.DUPLICATE,
                        block_number=event.block_number,
                    )
                else:
                    result = ReductionResult(
                        event_id=event.event_id,
                        kind=kind,
                        status=ReductionStatus.APPLIED,
                        block_number=event.block_number,
                    )
                    self._handlers[kind](event, result)
                    self.storage.upsert(
                        ProcessedEvent(
                            id=event.event_id,
                            kind=kind.value,
                            block_number=event.block_number,
                            block_timestamp=event.block_timestamp,
                            transaction_hash=event.transaction_hash,
                        )
                    )
        except Exception as e:
            logger.error("event_reduction_failed", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            clear_event_context()

        self._record_stats(result)
        return result

    def apply_many(self, events: Iterable[ChainEvent]) -> list[ReductionResult]:
        """Reduce events in order, stopping at the first failure."""
        return [self.apply(event) for event in events]

    def _record_stats(self, result: ReductionResult) -> None:
        if result.status == ReductionStatus.DUPLICATE:
            self.stats["duplicates"] += 1
            logger.info(
                "event_duplicate_skipped",
                event_id=result.event_id,
                kind=result.kind.value,
            )
            return

        self.stats["applied"] += 1
        self.stats["skipped_updates"] += len(result.skipped_updates)
        self.stats["warnings"] += len(result.warnings)
        self.kind_counts[result.kind.value] += 1

        logger.info(
            "event_reduced",
            event_id=result.event_id,
            kind=result.kind.value,
            block_number=result.block_number,
            skipped_updates=len(result.skipped_updates),
            warnings=len(result.warnings),
        )

    def _skip(self, result: ReductionResult, entity: str, key, reason: str) -> None:
        logger.warning("update_skipped", entity=entity, key=key, reason=reason)
        result.skipped_updates.append(SkippedUpdate(entity=entity, key=key, reason=reason))

    # =========================================================================
    # Votes
    # =========================================================================

    def _reduce_podium_created(self, event: PodiumCreated, result: ReductionResult) -> None:
        timestamp = event.block_timestamp
        day = calculate_day_number(timestamp)
        periods = get_time_periods(timestamp)
        vote_id = event.transaction_hash

        gold, silver, bronze = slot_brand_ids(event.brand_ids)
        self.storage.upsert(
            Vote(
                id=vote_id,
                voter=event.voter,
                voter_fid=event.fid,
                day=day,
                gold_brand_id=gold,
                silver_brand_id=silver,
                bronze_brand_id=bronze,
                brand_ids=list(event.brand_ids),
                cost=event.cost,
                block_number=event.block_number,
                transaction_hash=event.transaction_hash,
                timestamp=timestamp,
            )
        )

        points = split_points(event.cost)
        slots = podium_slots(event.brand_ids)

        self.storage.upsert_many(
            [
                IndividualVote(
                    id=f"{vote_id}-{position.value}",
                    vote_id=vote_id,
                    voter_fid=event.fid,
                    brand_id=brand_id,
                    position=position.value,
                    points=points[position.index],
                    day=day,
                    timestamp=timestamp,
                    block_number=event.block_number,
                    transaction_hash=event.transaction_hash,
                )
                for position, brand_id in slots
            ]
        )

        # Rankings first: favorite brand is derived from them
        self.engagement.record_brand_rankings(event.fid, slots, points, day, timestamp)

        reward = self.settings.user_points_per_vote
        user = self.engagement.record_activity(
            event.fid, reward, day, event.block_number, event.transaction_hash, timestamp
        )

        result.skipped_updates.extend(
            self.brand_metrics.record_podium(slots, points, periods, event.block_number, timestamp)
        )

        self.engagement.record_leaderboard(user, reward, event.block_number, timestamp)
        self.top_brands.refresh(periods, timestamp)

        logger.debug(
            "podium_reduced",
            vote_id=vote_id,
            fid=event.fid,
            brands=[brand_id for _, brand_id in slots],
            cost=event.cost,
            streak=user.current_streak,
        )

    def _reduce_reward_claimed(self, event: RewardClaimed, result: ReductionResult) -> None:
        timestamp = event.block_timestamp
        day = calculate_day_number(timestamp)

        # First vote of the day, ordered by block then id
        votes = self.storage.find_votes(event.fid, day)
        vote = votes[0] if votes else None
        if len(votes) > 1:
            logger.warning("multiple_votes_for_claim", fid=event.fid, day=day, votes=len(votes))

        self.storage.upsert(
            RewardClaim(
                id=event.transaction_hash,
                recipient=event.recipient,
                fid=event.fid,
                amount=event.amount,
                day=day,
                cast_hash=event.cast_hash,
                caller=event.caller,
                vote_id=vote.id if vote else None,
                block_number=event.block_number,
                transaction_hash=event.transaction_hash,
                timestamp=timestamp,
            )
        )

        if vote is None:
            self._skip(result, Vote.table_name, f"{event.fid}-{day}", "vote_not_found")
        else:
            self.storage.upsert(
                vote.model_copy(update={"claimed_at": timestamp, "claim_amount": event.amount})
            )

        user = self.storage.find(User, event.fid)
        if user is None:
            self._skip(result, User.table_name, event.fid, "user_not_found")
            return

        bonus = user.brnd_power_level * self.settings.claim_points_multiplier
        user = self.engagement.record_activity(
            event.fid, bonus, day, event.block_number, event.transaction_hash, timestamp
        )
        self.engagement.record_leaderboard(user, bonus, event.block_number, timestamp)

    # =========================================================================
    # Brands
    # =========================================================================

    def _new_brand(
        self,
        event: ChainEvent,
        brand_id: int,
        fid: int,
        wallet_address: str,
        handle: str,
        created_at: int,
        result: ReductionResult,
    ) -> Brand:
        existing = self.storage.find(Brand, brand_id)
        if existing is not None:
            # Keep accumulated totals; refresh identity fields only
            message = f"brand {brand_id} already exists"
            logger.warning("brand_already_exists", brand_id=brand_id)
            result.warnings.append(message)
            return existing.model_copy(
                update={
                    "fid": fid,
                    "wallet_address": wallet_address,
                    "handle": handle,
                    "last_updated": event.block_timestamp,
                }
            )

        return Brand(
            id=brand_id,
            fid=fid,
            wallet_address=wallet_address,
            handle=handle,
            created_at=created_at,
            block_number=event.block_number,
            transaction_hash=event.transaction_hash,
            last_updated=event.block_timestamp,
        )

    def _reduce_brand_created(self, event: BrandCreated, result: ReductionResult) -> None:
        self.storage.upsert(
            self._new_brand(
                event,
                event.brand_id,
                event.fid,
                event.wallet_address,
                event.handle,
                event.created_at,
                result,
            )
        )

    def _reduce_brands_created(self, event: BrandsCreated, result: ReductionResult) -> None:
        lengths = {
            "brand_ids": len(event.brand_ids),
            "handles": len(event.handles),
            "fids": len(event.fids),
            "wallet_addresses": len(event.wallet_addresses),
        }
        if len(set(lengths.values())) != 1:
            logger.error("brands_created_length_mismatch", **lengths)
            raise MalformedEventError(f"BrandsCreated arrays differ in length: {lengths}")

        brands = [
            self._new_brand(event, brand_id, fid, wallet, handle, event.created_at, result)
            for brand_id, handle, fid, wallet in zip(
                event.brand_ids, event.handles, event.fids, event.wallet_addresses
            )
        ]
        self.storage.upsert_many(brands)

    def _reduce_brand_updated(self, event: BrandUpdated, result: ReductionResult) -> None:
        updated = self.storage.update(
            Brand,
            event.brand_id,
            metadata_hash=event.new_metadata_hash,
            fid=event.new_fid,
            wallet_address=event.new_wallet_address,
            block_number=event.block_number,
            transaction_hash=event.transaction_hash,
            last_updated=event.block_timestamp,
        )
        if updated is None:
            self._skip(result, Brand.table_name, event.brand_id, "brand_not_found")

    def _reduce_brand_reward_withdrawn(
        self, event: BrandRewardWithdrawn, result: ReductionResult
    ) -> None:
        self.storage.upsert(
            BrandRewardWithdrawal(
                id=event.transaction_hash,
                brand_id=event.brand_id,
                fid=event.fid,
                amount=event.amount,
                block_number=event.block_number,
                transaction_hash=event.transaction_hash,
                timestamp=event.block_timestamp,
            )
        )

        brand = self.storage.find(Brand, event.brand_id)
        if brand is None:
            self._skip(result, Brand.table_name, event.brand_id, "brand_not_found")
            return

        available = brand.available_brnd - event.amount
        if available < 0:
            logger.warning(
                "available_balance_negative",
                brand_id=event.brand_id,
                available_brnd=available,
                amount=event.amount,
            )
            result.warnings.append(f"brand {event.brand_id} available balance is negative")

        self.storage.upsert(
            brand.model_copy(
                update={"available_brnd": available, "last_updated": event.block_timestamp}
            )
        )

    # =========================================================================
    # Users and wallets
    # =========================================================================

    def _reduce_wallet_authorized(self, event: WalletAuthorized, result: ReductionResult) -> None:
        self.storage.upsert(
            WalletAuthorization(
                id=event.transaction_hash,
                fid=event.fid,
                wallet=event.wallet,
                block_number=event.block_number,
                transaction_hash=event.transaction_hash,
                timestamp=event.block_timestamp,
            )
        )

    def _reduce_brnd_power_level_up(self, event: BrndPowerLevelUp, result: ReductionResult) -> None:
        self.storage.upsert(
            BrndPowerLevelUpRecord(
                id=event.transaction_hash,
                fid=event.fid,
                new_level=event.new_level,
                wallet=event.wallet,
                block_number=event.block_number,
                transaction_hash=event.transaction_hash,
                timestamp=event.block_timestamp,
            )
        )

        changes = {
            "brnd_power_level": event.new_level,
            "block_number": event.block_number,
            "transaction_hash": event.transaction_hash,
            "last_updated": event.block_timestamp,
        }
        if self.storage.update(User, event.fid, **changes) is None:
            self.storage.upsert(User(fid=event.fid, **changes))

"""
Integration tests for the bounded sequential pipeline.

Events flow producer -> bounded queue -> single reducer thread -> storage.
"""

import pytest

from indexer.engine.pipeline import EventPipeline, PipelineHaltedError
from indexer.engine.reducer import EventReducer, MalformedEventError
from indexer.models import Brand, ReductionStatus, User, Vote
from tests.conftest import (
    day_offset,
    make_brands_created,
    make_podium,
    make_settings,
)


class TestEventPipeline:
    """Test ordering, backpressure and halting."""

    def test_run_reduces_in_order(self, reducer):
        events = [make_brands_created([7, 8, 9])] + [
            make_podium(block_timestamp=day_offset(day), block_number=1_000 + day) for day in range(5)
        ]

        results = EventPipeline(reducer).run(events)

        assert [r.event_id for r in results] == [e.event_id for e in events]
        user = reducer.storage.find(User, 42)
        assert user.current_streak == 5
        assert user.points == 15

    def test_small_queue_applies_backpressure(self, reducer):
        events = [make_brands_created([7, 8, 9])] + [
            make_podium(fid=fid, block_number=1_000 + fid) for fid in range(1, 21)
        ]

        results = EventPipeline(reducer, maxsize=1).run(events)

        assert len(results) == 21
        assert reducer.storage.find(Brand, 7).total_votes_received == 20

    def test_queue_size_defaults_to_settings(self, memory_storage):
        reducer = EventReducer(memory_storage, make_settings(pipeline_queue_size=7))

        assert EventPipeline(reducer).maxsize == 7

    def test_duplicates_flow_through(self, reducer):
        event = make_podium()
        results = EventPipeline(reducer).run([make_brands_created([7, 8, 9]), event, event])

        assert [r.status for r in results] == [
            ReductionStatus.APPLIED,
            ReductionStatus.APPLIED,
            ReductionStatus.DUPLICATE,
        ]

    def test_halts_on_first_failure(self, reducer):
        bad = make_brands_created([1, 2], fids=[1])
        events = [make_brands_created([7, 8, 9]), bad, make_podium()]

        with pytest.raises(PipelineHaltedError) as exc_info:
            EventPipeline(reducer).run(events)

        assert exc_info.value.failed_event is bad
        assert isinstance(exc_info.value.__cause__, MalformedEventError)
        # The podium queued behind the failure is never applied
        assert reducer.storage.count(Vote) == 0
        assert reducer.storage.count(Brand) == 3

    def test_submit_after_halt_raises(self, reducer):
        pipeline = EventPipeline(reducer)
        pipeline.start()
        try:
            pipeline.submit(make_brands_created([1, 2], fids=[1]))
            with pytest.raises(PipelineHaltedError):
                pipeline.drain()
            with pytest.raises(PipelineHaltedError):
                pipeline.submit(make_podium())
            assert pipeline.halted
        finally:
            pipeline.close()

    def test_results_survive_close(self, reducer):
        with EventPipeline(reducer) as pipeline:
            pipeline.submit(make_brands_created([7]))
            pipeline.drain()

        assert len(pipeline.results) == 1
        assert not pipeline.halted

    def test_pipeline_on_duckdb(self, duckdb_storage):
        reducer = EventReducer(duckdb_storage, make_settings(db_type="duckdb"))
        events = [make_brands_created([7, 8, 9]), make_podium(), make_podium(fid=43)]

        EventPipeline(reducer, maxsize=2).run(events)

        assert duckdb_storage.find(Brand, 7).total_brnd_awarded == 120
        assert duckdb_storage.count(User) == 2

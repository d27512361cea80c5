"""
Podium indexer core components.

This package contains the event-to-state reduction engine:

- Time windows: day/week/month period keys and day numbers
- Points: 60/30/10 podium cost split
- Brand metrics: brand totals, daily metrics, four leaderboard windows
- User engagement: brand rankings, streaks, favorite brand, user leaderboard
- Top brands: fixed-slot top-N cache and rank maintenance
- Reducer: one handler per contract event, exactly once per event identity
- Pipeline: bounded single-consumer stage in front of the reducer
"""

__all__ = [
    "EventPipeline",
    "EventReducer",
    "EventReductionError",
    "MalformedEventError",
    "PipelineHaltedError",
    "get_time_periods",
    "split_points",
]

from indexer.engine.pipeline import EventPipeline, PipelineHaltedError
from indexer.engine.points import split_points
from indexer.engine.reducer import EventReducer, EventReductionError, MalformedEventError
from indexer.engine.time_windows import get_time_periods

"""Podium leaderboard indexer: reduces voting contract events into queryable state."""

__version__ = "1.0.0"

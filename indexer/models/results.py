"""
Outcome models returned by the reducer.

A reduction either applies an event or recognises it as a re-delivery.
Applied events can still carry skipped updates (an update addressed an
entity that does not exist) and data-quality warnings; both are reported
instead of raised so the event stream keeps flowing.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from .enums import EventKind, ReductionStatus


class SkippedUpdate(BaseModel):
    """An update that found no target row and changed nothing."""

    entity: str = Field(description="Table the update addressed")
    key: Any = Field(description="Key that was not found")
    reason: str = Field(description="Short machine-readable reason")


class ReductionResult(BaseModel):
    """
    Result of applying one event.

    Attributes:
        event_id: Delivery identity (tx hash + log index)
        kind: Event kind
        status: APPLIED or DUPLICATE
        block_number: Block of the event
        skipped_updates: Updates that had no target
        warnings: Data-quality warnings raised while applying
    """

    event_id: str
    kind: EventKind
    status: ReductionStatus
    block_number: int
    skipped_updates: list[SkippedUpdate] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.status == ReductionStatus.APPLIED

    def skipped(self, entity: str) -> Optional[SkippedUpdate]:
        """First skipped update for ``entity``, if any."""
        return next((s for s in self.skipped_updates if s.entity == entity), None)

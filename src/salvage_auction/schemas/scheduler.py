"""Lifecycle sweep result schema."""

from uuid import UUID

from pydantic import BaseModel, Field


class SweepResult(BaseModel):
    """Counts of transitions applied by one scheduler sweep, with the IDs touched."""

    activated: int = 0
    ended: int = 0
    lots_closed: int = 0
    activated_ids: list[UUID] = Field(default_factory=list)
    ended_ids: list[UUID] = Field(default_factory=list)
    lots_closed_ids: list[UUID] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.activated or self.ended or self.lots_closed)

"""Domain events handed to the notification dispatcher."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field


class DomainEventType(StrEnum):
    NEW_CAR = "new_car"
    AUCTION_START = "auction_start"
    OUTBID = "outbid"
    WON = "won"


class DomainEvent(BaseModel):
    """A fact the core publishes after a committed transition or accepted bid.

    ``user_id`` is the addressee for personal events (outbid, won) and None
    for broadcast events (new_car, auction_start).
    """

    event_type: DomainEventType
    auction_id: UUID | None = None
    catalog_id: UUID | None = None
    lot_id: UUID | None = None
    vehicle_id: UUID | None = None
    user_id: UUID | None = None
    amount: Decimal | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_stream_fields(self) -> dict[str, str]:
        """Flatten into the str->str mapping a Redis stream entry expects."""
        return {
            key: str(value)
            for key, value in self.model_dump(mode="json").items()
            if value is not None
        }

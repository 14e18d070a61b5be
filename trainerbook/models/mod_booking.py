from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
import uuid
from trainerbook.models.mod_slot import TimeWindow

class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

# Statuses that hold the trainer's time
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

class SessionType(str, Enum):
    VIRTUAL = "virtual"
    IN_PERSON = "in_person"

class SessionNotes(BaseModel):
    notes: str = ""
    client_feedback: str = ""
    next_steps: str = ""

    def is_empty(self) -> bool:
        return not (self.notes.strip() or self.client_feedback.strip() or self.next_steps.strip())

    def render(self) -> str:
        """Plain-text form stored in trainer_notes."""
        sections = [
            ("Session notes", self.notes),
            ("Client feedback", self.client_feedback),
            ("Next steps", self.next_steps),
        ]
        return "\n\n".join(f"{title}:\n{text.strip()}" for title, text in sections if text.strip())

class BookingChange(BaseModel):
    timestamp: datetime
    change_type: str  # 'created', 'confirmed', 'cancelled' or 'completed'
    previous_status: Optional[BookingStatus] = None
    new_status: BookingStatus
    actor_id: Optional[str] = None

class Booking(BaseModel):
    id: str
    client_id: str
    trainer_id: str
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    session_type: SessionType = SessionType.VIRTUAL
    hourly_rate: Decimal
    total_price: Decimal
    client_notes: Optional[str] = None
    trainer_notes: Optional[str] = None
    session_notes: Optional[SessionNotes] = None
    cancellation_reason: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    changes: List[BookingChange] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start_time=self.start_time, end_time=self.end_time)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def starts_at(self) -> datetime:
        # Naive local datetime, no timezone attached
        return datetime.combine(self.booking_date, self.start_time)

class BookingTransitionEvent(BaseModel):
    """Emitted after every persisted status change."""
    booking: Booking
    previous_status: Optional[BookingStatus] = None
    new_status: BookingStatus
    actor_id: Optional[str] = None
    reason: Optional[str] = None
    occurred_at: datetime

class OptimisticState(str, Enum):
    PENDING_WRITE = "pending_write"
    PERSISTED = "persisted"
    ROLLED_BACK = "rolled_back"

class OptimisticBooking(BaseModel):
    """
    Local placeholder shown while a booking write is in flight.

    It never stands in for a stored booking: `booking` is only set once the
    write is reconciled, and a failed write leaves the placeholder rolled back
    with the error message for the UI.
    """
    local_id: str
    trainer_id: str
    booking_date: date
    start_time: time
    end_time: time
    state: OptimisticState = OptimisticState.PENDING_WRITE
    booking: Optional[Booking] = None
    error: Optional[str] = None

    @classmethod
    def begin(cls, trainer_id: str, booking_date: date, start_time: time, end_time: time) -> "OptimisticBooking":
        return cls(
            local_id=f"local-{uuid.uuid4()}",
            trainer_id=trainer_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time
        )

    @property
    def is_persisted(self) -> bool:
        return self.state == OptimisticState.PERSISTED

    def reconcile(self, booking: Booking) -> "OptimisticBooking":
        if self.state != OptimisticState.PENDING_WRITE:
            raise ValueError(f"Cannot reconcile an optimistic booking in state {self.state.value}")
        self.booking = booking
        self.state = OptimisticState.PERSISTED
        return self

    def roll_back(self, error: str) -> "OptimisticBooking":
        if self.state != OptimisticState.PENDING_WRITE:
            raise ValueError(f"Cannot roll back an optimistic booking in state {self.state.value}")
        self.error = error
        self.state = OptimisticState.ROLLED_BACK
        return self
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime, time
from decimal import Decimal
from trainerbook.models.mod_booking import BookingStatus, SessionType, SessionNotes, BookingChange
from trainerbook.models.mod_slot import ensure_whole_minute

class BookingCreate(BaseModel):
    client_id: str
    trainer_id: str
    booking_date: date
    start_time: time = Field(description="Local start time (HH:MM)")
    end_time: time = Field(description="Local end time (HH:MM)")
    duration_minutes: Optional[int] = Field(
        default=None,
        description="Derived from start and end time when omitted"
    )
    session_type: SessionType = SessionType.VIRTUAL
    hourly_rate: Decimal
    total_price: Decimal
    client_notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_whole_minutes(cls, v):
        return ensure_whole_minute(v)

class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = None

class BookingCancel(BaseModel):
    reason: str

class BookingComplete(SessionNotes):
    pass

class BookingResponse(BaseModel):
    id: str
    client_id: str
    trainer_id: str
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    session_type: SessionType
    hourly_rate: Decimal
    total_price: Decimal
    client_notes: Optional[str] = None
    trainer_notes: Optional[str] = None
    session_notes: Optional[SessionNotes] = None
    cancellation_reason: Optional[str] = None
    status: BookingStatus
    changes: List[BookingChange] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

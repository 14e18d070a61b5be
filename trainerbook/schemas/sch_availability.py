from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import date, datetime, time
from trainerbook.models.mod_slot import ensure_whole_minute, weekday_index
from trainerbook.configuration.config import Config

class AvailabilitySlotCreate(BaseModel):
    trainer_id: str
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: time
    end_time: time

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_whole_minutes(cls, v):
        return ensure_whole_minute(v)

    @model_validator(mode="after")
    def resolve_day_of_week(self):
        if self.specific_date is None and self.day_of_week is None:
            raise ValueError("day_of_week is required for recurring slots")
        if self.specific_date is not None and self.day_of_week is None:
            self.day_of_week = weekday_index(self.specific_date)
        return self

class BulkAvailabilityCreate(BaseModel):
    trainer_id: str
    start_date: date
    end_date: date
    weekdays: List[int] = Field(min_length=1, description="Sunday-based weekday numbers (0 = Sunday)")
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(default=Config.DEFAULT_SLOT_DURATION_MINUTES, gt=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_whole_minutes(cls, v):
        return ensure_whole_minute(v)

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v):
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("weekdays must be between 0 and 6")
        return sorted(set(v))

class CopyWeekRequest(BaseModel):
    trainer_id: str
    source_week_start: date
    target_week_start: date

class BulkResult(BaseModel):
    success_count: int = 0
    failure_count: int = 0
    failures: List[str] = []

class AvailabilitySlotResponse(BaseModel):
    id: str
    trainer_id: str
    day_of_week: int
    specific_date: Optional[date] = None
    start_time: time
    end_time: time
    is_recurring: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TimeWindowResponse(BaseModel):
    start_time: time
    end_time: time

    class Config:
        from_attributes = True

class DayAvailabilitySummary(BaseModel):
    available: bool
    slots_count: int
    free_count: int

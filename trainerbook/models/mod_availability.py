from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime, time
from trainerbook.models.mod_slot import TimeWindow

class AvailabilitySlot(BaseModel):
    id: str
    trainer_id: str
    day_of_week: int = Field(ge=0, le=6)   # 0 = Sunday
    specific_date: Optional[date] = None    # Set for date-specific slots only
    start_time: time
    end_time: time
    is_recurring: bool = True
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start_time=self.start_time, end_time=self.end_time)

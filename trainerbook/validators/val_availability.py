from datetime import date, time
from typing import Iterable, Optional
from trainerbook.configuration.config import Config
from trainerbook.models.mod_auth import UserRole
from trainerbook.models.mod_slot import is_whole_minute, weekday_index
from trainerbook.validators.val_errors import ValidationError, PermissionDeniedError

class AvailabilityValidator:
    @staticmethod
    def validate_time_range(start_time: time, end_time: time):
        """Validate that a window has a positive length"""
        if not (is_whole_minute(start_time) and is_whole_minute(end_time)):
            raise ValidationError("start_time and end_time must be whole minutes (HH:MM)")
        if start_time >= end_time:
            raise ValidationError("end_time must be after start_time")

    @staticmethod
    def validate_day_of_week(day_of_week: int, specific_date: Optional[date] = None):
        """Validate the weekday number and its agreement with a specific date"""
        if not (0 <= day_of_week <= 6):
            raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
        if specific_date is not None and weekday_index(specific_date) != day_of_week:
            raise ValidationError(
                f"day_of_week {day_of_week} does not match {specific_date.isoformat()}"
            )

    @staticmethod
    def validate_date_range(start_date: date, end_date: date):
        """Validate an inclusive date range used by range queries and bulk generation"""
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        if (end_date - start_date).days + 1 > Config.MAX_RANGE_DAYS:
            raise ValidationError(f"Date ranges are limited to {Config.MAX_RANGE_DAYS} days")

    @staticmethod
    def validate_slot_duration(slot_duration_minutes: int):
        if slot_duration_minutes <= 0:
            raise ValidationError("slot_duration_minutes must be positive")

    @staticmethod
    def validate_weekdays(weekdays: Iterable[int]):
        weekdays = list(weekdays)
        if not weekdays:
            raise ValidationError("At least one weekday is required")
        for day in weekdays:
            AvailabilityValidator.validate_day_of_week(day)

    @staticmethod
    def validate_owner(trainer_id: str, actor_id: str, actor_role: UserRole):
        """Only the owning trainer may change a trainer's availability"""
        if actor_role != UserRole.TRAINER or actor_id != trainer_id:
            raise PermissionDeniedError("Trainers can only manage their own availability")

    @staticmethod
    def validate_set_slot(trainer_id: str, day_of_week: int, start_time: time, end_time: time,
                          specific_date: Optional[date], actor_id: str, actor_role: UserRole):
        """Validate all rules for creating or replacing a slot"""
        AvailabilityValidator.validate_owner(trainer_id, actor_id, actor_role)
        AvailabilityValidator.validate_day_of_week(day_of_week, specific_date)
        AvailabilityValidator.validate_time_range(start_time, end_time)

    @staticmethod
    def validate_bulk_create(start_date: date, end_date: date, weekdays: Iterable[int],
                             start_time: time, end_time: time, slot_duration_minutes: int):
        """Validate all rules for bulk slot generation"""
        AvailabilityValidator.validate_date_range(start_date, end_date)
        AvailabilityValidator.validate_weekdays(weekdays)
        AvailabilityValidator.validate_time_range(start_time, end_time)
        AvailabilityValidator.validate_slot_duration(slot_duration_minutes)

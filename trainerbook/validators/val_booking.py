from datetime import datetime
from typing import Optional
from trainerbook.models.mod_auth import UserRole
from trainerbook.models.mod_booking import Booking, BookingStatus
from trainerbook.models.mod_slot import is_whole_minute, to_minutes
from trainerbook.schemas.sch_booking import BookingCreate
from trainerbook.validators.val_errors import (
    ValidationError,
    PermissionDeniedError,
    InvalidTransitionError
)

# (from, to) -> action name; anything not listed is rejected
ALLOWED_TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): "confirm",
    (BookingStatus.PENDING, BookingStatus.CANCELLED): "cancel",
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): "cancel",
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): "complete",
}

class BookingValidator:
    @staticmethod
    def _get_current_time():
        """Naive local time; scheduling never attaches a timezone"""
        return datetime.now()

    @staticmethod
    def validate_window(booking: BookingCreate) -> int:
        """Validate start/end/duration agree and return the duration in minutes"""
        if not (is_whole_minute(booking.start_time) and is_whole_minute(booking.end_time)):
            raise ValidationError("start_time and end_time must be whole minutes (HH:MM)")
        if booking.start_time >= booking.end_time:
            raise ValidationError("end_time must be after start_time")
        duration = to_minutes(booking.end_time) - to_minutes(booking.start_time)
        if booking.duration_minutes is not None and booking.duration_minutes != duration:
            raise ValidationError(
                f"duration_minutes ({booking.duration_minutes}) does not match "
                f"the {duration} minutes between start_time and end_time"
            )
        return duration

    @staticmethod
    def validate_pricing(booking: BookingCreate):
        if booking.hourly_rate < 0 or booking.total_price < 0:
            raise ValidationError("hourly_rate and total_price must not be negative")

    @staticmethod
    def validate_participants(booking: BookingCreate, actor_id: str, actor_role: UserRole):
        """Clients book for themselves, never with themselves as trainer"""
        if not booking.client_id or not booking.trainer_id:
            raise ValidationError("client_id and trainer_id are required")
        if booking.client_id == booking.trainer_id:
            raise ValidationError("A trainer cannot be booked by themselves")
        if actor_role != UserRole.CLIENT or actor_id != booking.client_id:
            raise PermissionDeniedError("You can only create bookings for yourself")

    @staticmethod
    def validate_create_booking(booking: BookingCreate, actor_id: str, actor_role: UserRole) -> int:
        """Validate all rules for creating a booking; returns the duration in minutes"""
        BookingValidator.validate_participants(booking, actor_id, actor_role)
        BookingValidator.validate_pricing(booking)
        return BookingValidator.validate_window(booking)

    @staticmethod
    def validate_transition(current: BookingStatus, new_status: BookingStatus) -> str:
        """Return the action for a permitted transition"""
        action = ALLOWED_TRANSITIONS.get((current, new_status))
        if action is None:
            raise InvalidTransitionError(
                f"Cannot change a {current.value} booking to {new_status.value}"
            )
        return action

    @staticmethod
    def validate_actor(booking: Booking, action: str, actor_id: str, actor_role: UserRole):
        """Only the trainer confirms and completes; either participant cancels"""
        is_trainer = actor_role == UserRole.TRAINER and actor_id == booking.trainer_id
        is_client = actor_role == UserRole.CLIENT and actor_id == booking.client_id
        if action in ("confirm", "complete") and not is_trainer:
            raise PermissionDeniedError(f"Only the booking's trainer can {action} it")
        if action == "cancel" and not (is_trainer or is_client):
            raise PermissionDeniedError("Only the booking's participants can cancel it")

    @staticmethod
    def validate_reason(action: str, reason: Optional[str]):
        if action == "cancel" and not (reason and reason.strip()):
            raise ValidationError("A reason is required to cancel or decline a booking")

    @staticmethod
    def validate_status_update(booking: Booking, new_status: BookingStatus, reason: Optional[str],
                               actor_id: str, actor_role: UserRole) -> str:
        """Validate all rules for a status change; returns the action name"""
        action = BookingValidator.validate_transition(booking.status, new_status)
        BookingValidator.validate_actor(booking, action, actor_id, actor_role)
        BookingValidator.validate_reason(action, reason)
        return action

    @staticmethod
    def has_session_started(booking: Booking, now: Optional[datetime] = None) -> bool:
        """True once bookingDate + startTime lies in the past"""
        now = now or BookingValidator._get_current_time()
        return booking.starts_at <= now

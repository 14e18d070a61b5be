from azure.cosmos import ContainerProxy
from trainerbook.models.mod_booking import ACTIVE_STATUSES
from trainerbook.models.mod_slot import TimeWindow, parse_time
from trainerbook.schemas.sch_availability import DayAvailabilitySummary
from trainerbook.services.svc_availability import AvailabilityService
from trainerbook.validators.val_availability import AvailabilityValidator
from datetime import date
from typing import Dict, Iterable, List
from trainerbook.configuration.monitor import log_event, log_exception, start_span

class SlotResolutionService:
    """Answers which windows a trainer can still be booked for."""

    @staticmethod
    def subtract_booked(declared: Iterable[TimeWindow], booked: Iterable[TimeWindow]) -> List[TimeWindow]:
        """
        Drop every declared window that intersects a booked one.

        A partially booked window is excluded whole; it is not carved into the
        remaining free pieces.
        """
        booked = list(booked)
        free = [
            window for window in declared
            if not any(window.overlaps(taken) for taken in booked)
        ]
        return sorted(free, key=lambda w: (w.start_time, w.end_time))

    @staticmethod
    def _active_booking_items(bookings_db: ContainerProxy, trainer_id: str, start_date: date, end_date: date):
        return bookings_db.query_items(
            query=(
                "SELECT c.booking_date, c.start_time, c.end_time FROM c "
                "WHERE c.trainer_id = @trainer_id "
                "AND c.booking_date >= @start_date AND c.booking_date <= @end_date "
                "AND ARRAY_CONTAINS(@statuses, c.status)"
            ),
            parameters=[
                {"name": "@trainer_id", "value": trainer_id},
                {"name": "@start_date", "value": start_date.isoformat()},
                {"name": "@end_date", "value": end_date.isoformat()},
                {"name": "@statuses", "value": [status.value for status in ACTIVE_STATUSES]}
            ],
            partition_key=trainer_id
        )

    @staticmethod
    def get_booked_windows(bookings_db: ContainerProxy, trainer_id: str, start_date: date, end_date: date) -> Dict[str, List[TimeWindow]]:
        """Windows held by pending or confirmed bookings, keyed by ISO date"""
        booked = {}
        for item in SlotResolutionService._active_booking_items(bookings_db, trainer_id, start_date, end_date):
            booked.setdefault(item["booking_date"], []).append(TimeWindow(
                start_time=parse_time(item["start_time"]),
                end_time=parse_time(item["end_time"])
            ))
        return booked

    @staticmethod
    async def get_available_slots(
        slots_db: ContainerProxy,
        bookings_db: ContainerProxy,
        trainer_id: str,
        day: date
    ) -> List[TimeWindow]:
        """Declared windows for the date minus those touched by active bookings, ordered by start"""
        try:
            with start_span("get_available_slots", attributes={"trainer_id": trainer_id, "date": day.isoformat()}):
                declared = (await AvailabilityService.get_trainer_slots_for_range(
                    slots_db, trainer_id, day, day
                ))[day.isoformat()]
                booked = SlotResolutionService.get_booked_windows(bookings_db, trainer_id, day, day)

                free = SlotResolutionService.subtract_booked(
                    [slot.window for slot in declared],
                    booked.get(day.isoformat(), [])
                )
                log_event("Available slots resolved", {
                    "trainer_id": trainer_id,
                    "date": day.isoformat(),
                    "declared": len(declared),
                    "free": len(free)
                })
                return free
        except Exception as e:
            log_exception(e, {"operation": "get_available_slots", "trainer_id": trainer_id, "date": day.isoformat()})
            raise

    @staticmethod
    async def is_window_free(
        slots_db: ContainerProxy,
        bookings_db: ContainerProxy,
        trainer_id: str,
        day: date,
        window: TimeWindow
    ) -> bool:
        """The requested window must sit entirely inside one free window"""
        free = await SlotResolutionService.get_available_slots(slots_db, bookings_db, trainer_id, day)
        return any(candidate.contains(window) for candidate in free)

    @staticmethod
    async def get_availability_calendar(
        slots_db: ContainerProxy,
        bookings_db: ContainerProxy,
        trainer_id: str,
        start_date: date,
        end_date: date
    ) -> Dict[str, DayAvailabilitySummary]:
        """Per-date summary for a month calendar: declared and still-free slot counts"""
        try:
            with start_span("get_availability_calendar", attributes={
                "trainer_id": trainer_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat()
            }):
                AvailabilityValidator.validate_date_range(start_date, end_date)
                declared = await AvailabilityService.get_trainer_slots_for_range(
                    slots_db, trainer_id, start_date, end_date
                )
                booked = SlotResolutionService.get_booked_windows(bookings_db, trainer_id, start_date, end_date)

                calendar = {}
                for day, slots in declared.items():
                    free = SlotResolutionService.subtract_booked(
                        [slot.window for slot in slots], booked.get(day, [])
                    )
                    calendar[day] = DayAvailabilitySummary(
                        available=bool(free),
                        slots_count=len(slots),
                        free_count=len(free)
                    )
                return calendar
        except Exception as e:
            log_exception(e, {"operation": "get_availability_calendar", "trainer_id": trainer_id})
            raise

import pytest
from datetime import datetime, time, timedelta, timezone

from trainerbook.models.mod_auth import UserRole
from trainerbook.models.mod_slot import TimeWindow
from trainerbook.services.svc_availability import AvailabilityService
from trainerbook.services.svc_slots import SlotResolutionService
from trainerbook.validators.val_errors import ValidationError

TRAINER = {"actor_id": "trainer-1", "actor_role": UserRole.TRAINER}

def window(start, end):
    return TimeWindow(start_time=start, end_time=end)

def store_booking(bookings_db, day, start, end, status="pending", booking_id=None, trainer_id="trainer-1"):
    now = datetime.now(timezone.utc).isoformat()
    bookings_db.upsert_item(body={
        "id": booking_id or f"booking-{day.isoformat()}-{start:%H%M}-{status}",
        "client_id": "client-1",
        "trainer_id": trainer_id,
        "booking_date": day.isoformat(),
        "start_time": f"{start:%H:%M}",
        "end_time": f"{end:%H:%M}",
        "duration_minutes": 60,
        "session_type": "virtual",
        "hourly_rate": "50",
        "total_price": "50",
        "status": status,
        "changes": [],
        "created_at": now,
        "updated_at": now
    })

async def declare_morning(slots_db, day):
    for start, end in ((time(9, 0), time(10, 0)), (time(10, 0), time(11, 0)), (time(11, 0), time(12, 0))):
        await AvailabilityService.set_availability_slot(
            slots_db, "trainer-1", 1, start, end, specific_date=day, **TRAINER
        )

class TestSubtractBooked:
    def test_drops_windows_touched_by_bookings(self):
        declared = [window(time(11, 0), time(12, 0)), window(time(9, 0), time(10, 0)), window(time(10, 0), time(11, 0))]
        booked = [window(time(10, 0), time(11, 0))]

        free = SlotResolutionService.subtract_booked(declared, booked)

        assert [(w.start_time, w.end_time) for w in free] == [
            (time(9, 0), time(10, 0)),
            (time(11, 0), time(12, 0)),
        ]

    def test_partially_booked_window_is_excluded_whole(self):
        declared = [window(time(9, 0), time(12, 0))]
        booked = [window(time(9, 0), time(9, 30))]

        assert SlotResolutionService.subtract_booked(declared, booked) == []

    def test_adjacent_booking_does_not_exclude(self):
        declared = [window(time(9, 0), time(10, 0))]
        booked = [window(time(10, 0), time(11, 0))]

        assert len(SlotResolutionService.subtract_booked(declared, booked)) == 1

    def test_result_never_intersects_a_booking(self):
        declared = [window(time(h, 0), time(h + 1, 0)) for h in range(6, 20)]
        booked = [window(time(7, 30), time(8, 30)), window(time(12, 0), time(14, 0)), window(time(19, 15), time(19, 45))]

        free = SlotResolutionService.subtract_booked(declared, booked)

        assert len(free) == 14 - 2 - 2 - 1
        for candidate in free:
            assert not any(candidate.overlaps(taken) for taken in booked)

class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_booked_hour_is_removed(self, slots_db, bookings_db, next_monday):
        await declare_morning(slots_db, next_monday)
        store_booking(bookings_db, next_monday, time(10, 0), time(11, 0))

        free = await SlotResolutionService.get_available_slots(slots_db, bookings_db, "trainer-1", next_monday)

        assert [(w.start_time, w.end_time) for w in free] == [
            (time(9, 0), time(10, 0)),
            (time(11, 0), time(12, 0)),
        ]

    @pytest.mark.asyncio
    async def test_cancelled_and_completed_bookings_free_the_window(self, slots_db, bookings_db, next_monday):
        await declare_morning(slots_db, next_monday)
        store_booking(bookings_db, next_monday, time(9, 0), time(10, 0), status="cancelled")
        store_booking(bookings_db, next_monday, time(10, 0), time(11, 0), status="completed")
        store_booking(bookings_db, next_monday, time(11, 0), time(12, 0), status="confirmed")

        free = await SlotResolutionService.get_available_slots(slots_db, bookings_db, "trainer-1", next_monday)

        assert [w.start_time for w in free] == [time(9, 0), time(10, 0)]

    @pytest.mark.asyncio
    async def test_other_dates_and_trainers_do_not_interfere(self, slots_db, bookings_db, next_monday):
        await declare_morning(slots_db, next_monday)
        store_booking(bookings_db, next_monday + timedelta(days=7), time(9, 0), time(10, 0))
        store_booking(bookings_db, next_monday, time(9, 0), time(10, 0), trainer_id="trainer-2")

        free = await SlotResolutionService.get_available_slots(slots_db, bookings_db, "trainer-1", next_monday)

        assert len(free) == 3

    @pytest.mark.asyncio
    async def test_no_declared_slots(self, slots_db, bookings_db, next_monday):
        assert await SlotResolutionService.get_available_slots(slots_db, bookings_db, "trainer-1", next_monday) == []

    @pytest.mark.asyncio
    async def test_is_window_free(self, slots_db, bookings_db, next_monday):
        await declare_morning(slots_db, next_monday)
        store_booking(bookings_db, next_monday, time(10, 0), time(11, 0))

        assert await SlotResolutionService.is_window_free(
            slots_db, bookings_db, "trainer-1", next_monday, window(time(9, 0), time(10, 0))
        )
        assert await SlotResolutionService.is_window_free(
            slots_db, bookings_db, "trainer-1", next_monday, window(time(11, 15), time(11, 45))
        )
        assert not await SlotResolutionService.is_window_free(
            slots_db, bookings_db, "trainer-1", next_monday, window(time(10, 0), time(11, 0))
        )
        assert not await SlotResolutionService.is_window_free(
            slots_db, bookings_db, "trainer-1", next_monday, window(time(13, 0), time(14, 0))
        )

class TestAvailabilityCalendar:
    @pytest.mark.asyncio
    async def test_counts_declared_and_free_slots_per_date(self, slots_db, bookings_db, next_monday):
        await declare_morning(slots_db, next_monday)
        await AvailabilityService.set_availability_slot(
            slots_db, "trainer-1", 2, time(9, 0), time(10, 0),
            specific_date=next_monday + timedelta(days=1), **TRAINER
        )
        store_booking(bookings_db, next_monday, time(10, 0), time(11, 0))
        store_booking(bookings_db, next_monday + timedelta(days=1), time(9, 0), time(10, 0))

        calendar = await SlotResolutionService.get_availability_calendar(
            slots_db, bookings_db, "trainer-1", next_monday, next_monday + timedelta(days=2)
        )

        monday = calendar[next_monday.isoformat()]
        tuesday = calendar[(next_monday + timedelta(days=1)).isoformat()]
        wednesday = calendar[(next_monday + timedelta(days=2)).isoformat()]
        assert (monday.available, monday.slots_count, monday.free_count) == (True, 3, 2)
        assert (tuesday.available, tuesday.slots_count, tuesday.free_count) == (False, 1, 0)
        assert (wednesday.available, wednesday.slots_count, wednesday.free_count) == (False, 0, 0)

    @pytest.mark.asyncio
    async def test_reversed_range_is_rejected(self, slots_db, bookings_db, next_monday):
        with pytest.raises(ValidationError):
            await SlotResolutionService.get_availability_calendar(
                slots_db, bookings_db, "trainer-1", next_monday, next_monday - timedelta(days=3)
            )

from fastapi import APIRouter, Depends, Query
from azure.cosmos import ContainerProxy
from trainerbook.schemas.sch_availability import (
    AvailabilitySlotCreate,
    AvailabilitySlotResponse,
    BulkAvailabilityCreate,
    BulkResult,
    CopyWeekRequest,
    DayAvailabilitySummary,
    TimeWindowResponse
)
from trainerbook.services.svc_availability import AvailabilityService
from trainerbook.services.svc_slots import SlotResolutionService
from trainerbook.configuration.database import get_slots_container, get_bookings_container
from trainerbook.dependencies.dep_auth import get_current_user, get_current_trainer
from trainerbook.models.mod_auth import AuthUser
from typing import Dict, List
from datetime import date

router = APIRouter(
    prefix="/availability",
    tags=["Availability"],
    responses={404: {"description": "Not found"}},
)

@router.post("/slots", response_model=AvailabilitySlotResponse)
async def set_availability_slot(
    slot: AvailabilitySlotCreate,
    db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_trainer)
):
    """
    Add or replace an availability slot for the authenticated trainer.

    - Without specific_date the slot recurs weekly on day_of_week (0 = Sunday)
    - Re-sending the same day and start time replaces the end time
    - With specific_date the slot applies to that date only
    """
    return await AvailabilityService.set_availability_slot(
        db, slot.trainer_id, slot.day_of_week, slot.start_time, slot.end_time,
        specific_date=slot.specific_date,
        actor_id=current_user.id, actor_role=current_user.role
    )

@router.delete("/slots/{slot_id}", status_code=204)
async def remove_availability_slot(
    slot_id: str,
    db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_trainer)
):
    """
    Delete an availability slot.

    Returns:
    - 204: Successfully deleted
    - 404: Slot not found
    """
    await AvailabilityService.remove_availability_slot(
        db, slot_id, actor_id=current_user.id, actor_role=current_user.role
    )

@router.get("/trainers", response_model=Dict[str, Dict[str, List[AvailabilitySlotResponse]]])
async def get_availability_for_trainers(
    trainer_ids: List[str] = Query(..., description="Trainers to load weekly templates for"),
    db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """Weekly templates of several trainers, keyed by trainer id then weekday name."""
    return await AvailabilityService.get_availability_for_trainers(db, trainer_ids)

@router.get("/trainers/{trainer_id}/week", response_model=Dict[str, List[AvailabilitySlotResponse]])
async def get_trainer_availability(
    trainer_id: str,
    db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """Recurring weekly template of a trainer grouped by weekday name."""
    return await AvailabilityService.get_trainer_availability(db, trainer_id)

@router.get("/trainers/{trainer_id}/range", response_model=Dict[str, List[AvailabilitySlotResponse]])
async def get_trainer_slots_for_range(
    trainer_id: str,
    start_date: date = Query(..., description="First date of the range"),
    end_date: date = Query(..., description="Last date of the range (inclusive)"),
    db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Concrete slots per date, recurring templates merged with date-specific slots.
    Powers the trainer's calendar week view.
    """
    return await AvailabilityService.get_trainer_slots_for_range(db, trainer_id, start_date, end_date)

@router.get("/trainers/{trainer_id}/available-slots", response_model=List[TimeWindowResponse])
async def get_available_slots(
    trainer_id: str,
    day: date = Query(..., alias="date", description="Date to book on"),
    slots_db: ContainerProxy = Depends(get_slots_container),
    bookings_db: ContainerProxy = Depends(get_bookings_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """Windows of the date that are not touched by a pending or confirmed booking."""
    return await SlotResolutionService.get_available_slots(slots_db, bookings_db, trainer_id, day)

@router.get("/trainers/{trainer_id}/calendar", response_model=Dict[str, DayAvailabilitySummary])
async def get_availability_calendar(
    trainer_id: str,
    start_date: date = Query(..., description="First date of the calendar"),
    end_date: date = Query(..., description="Last date of the calendar (inclusive)"),
    slots_db: ContainerProxy = Depends(get_slots_container),
    bookings_db: ContainerProxy = Depends(get_bookings_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """Per-date availability flags and slot counts for the booking date picker."""
    return await SlotResolutionService.get_availability_calendar(
        slots_db, bookings_db, trainer_id, start_date, end_date
    )

@router.post("/bulk", response_model=BulkResult)
async def bulk_create_slots(
    request: BulkAvailabilityCreate,
    db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_trainer)
):
    """
    Generate date-specific slots over a date range.

    - One slot per matching weekday and sub-slot of the time range
    - Slots that already exist are counted as failures, the rest are created
    """
    return await AvailabilityService.bulk_create_slots(
        db, request.trainer_id, request.start_date, request.end_date, request.weekdays,
        request.start_time, request.end_time, request.slot_duration_minutes,
        actor_id=current_user.id, actor_role=current_user.role
    )

@router.post("/copy-week", response_model=BulkResult)
async def copy_week(
    request: CopyWeekRequest,
    db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_trainer)
):
    """Paste the slots of one week onto the same weekdays of another week."""
    return await AvailabilityService.copy_week(
        db, request.trainer_id, request.source_week_start, request.target_week_start,
        actor_id=current_user.id, actor_role=current_user.role
    )

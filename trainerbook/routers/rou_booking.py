from fastapi import APIRouter, HTTPException, Depends, Query
from azure.cosmos import ContainerProxy
from trainerbook.schemas.sch_booking import (
    BookingCreate,
    BookingCancel,
    BookingComplete,
    BookingResponse,
    BookingStatusUpdate
)
from trainerbook.models.mod_auth import AuthUser
from trainerbook.models.mod_booking import Booking, BookingStatus
from trainerbook.services.svc_booking import BookingService
from trainerbook.validators.val_errors import NotFoundError, ValidationError
from trainerbook.configuration.database import (
    get_bookings_container,
    get_claims_container,
    get_slots_container
)
from trainerbook.dependencies.dep_auth import get_current_user
from typing import List, Optional

router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"],
    responses={404: {"description": "Not found"}},
)

BOOKING_VIEWS = ("all", "upcoming", "pending", "completed")

def _ensure_participant(booking: Booking, current_user: AuthUser):
    if current_user.id not in (booking.client_id, booking.trainer_id):
        raise HTTPException(
            status_code=403,
            detail="You don't have permission to view this booking"
        )

@router.post('/', response_model=BookingResponse)
async def create_booking(
    booking: BookingCreate,
    bookings_db: ContainerProxy = Depends(get_bookings_container),
    claims_db: ContainerProxy = Depends(get_claims_container),
    slots_db: ContainerProxy = Depends(get_slots_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Book a trainer for a free window.

    - The window must still be free when the request arrives
    - 409 means someone else took the slot: reload the free slots and pick another
    - The booking starts as pending until the trainer confirms it
    - Rate and price are stored as given and never follow later rate changes
    """
    return await BookingService.create_booking(
        bookings_db, claims_db, slots_db, booking,
        actor_id=current_user.id, actor_role=current_user.role
    )

@router.get('/{booking_id}', response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    db: ContainerProxy = Depends(get_bookings_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Get details of a specific booking by its ID.
    Only the booking's client and trainer can view it.
    """
    booking = await BookingService.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    _ensure_participant(booking, current_user)
    return booking

@router.get('/users/{user_id}', response_model=List[BookingResponse])
async def get_user_bookings(
    user_id: str,
    status: Optional[BookingStatus] = Query(None, description="Only bookings in this status"),
    view: str = Query("all", description="all, upcoming, pending or completed"),
    db: ContainerProxy = Depends(get_bookings_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Bookings of a user, ordered by date and start time.

    - Clients see the sessions they booked, trainers the sessions booked with them
    - upcoming: future sessions that are not cancelled
    """
    if current_user.id != user_id:
        raise HTTPException(
            status_code=403,
            detail="You can only view your own bookings"
        )
    if view not in BOOKING_VIEWS:
        raise ValidationError(f"view must be one of {', '.join(BOOKING_VIEWS)}")

    bookings = await BookingService.get_user_bookings(db, user_id, current_user.role, status)
    if view == "upcoming":
        return BookingService.upcoming_bookings(bookings)
    if view == "pending":
        return BookingService.bookings_with_status(bookings, BookingStatus.PENDING)
    if view == "completed":
        return BookingService.bookings_with_status(bookings, BookingStatus.COMPLETED)
    return bookings

@router.patch('/{booking_id}/status', response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate,
    bookings_db: ContainerProxy = Depends(get_bookings_container),
    claims_db: ContainerProxy = Depends(get_claims_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Move a booking to a new status.

    - pending -> confirmed (trainer), pending/confirmed -> cancelled (either side, reason required)
    - confirmed -> completed (trainer, once the session has started)
    - cancelled and completed bookings cannot change any more
    """
    if update.status == BookingStatus.COMPLETED:
        return await complete_booking(
            booking_id, BookingComplete(notes=update.reason or ""),
            bookings_db, claims_db, current_user
        )
    return await BookingService.update_booking_status(
        bookings_db, claims_db, booking_id, update.status, update.reason,
        actor_id=current_user.id, actor_role=current_user.role
    )

@router.post('/{booking_id}/confirm', response_model=BookingResponse)
async def confirm_booking(
    booking_id: str,
    bookings_db: ContainerProxy = Depends(get_bookings_container),
    claims_db: ContainerProxy = Depends(get_claims_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """Trainer accepts a pending booking."""
    return await BookingService.confirm_booking(
        bookings_db, claims_db, booking_id,
        actor_id=current_user.id, actor_role=current_user.role
    )

@router.post('/{booking_id}/cancel', response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    cancel: BookingCancel,
    bookings_db: ContainerProxy = Depends(get_bookings_container),
    claims_db: ContainerProxy = Depends(get_claims_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Cancel or decline a booking.

    - Either participant can cancel a pending or confirmed booking
    - The reason is stored on the booking and sent with the notification
    - The slot becomes bookable again
    """
    return await BookingService.cancel_booking(
        bookings_db, claims_db, booking_id, cancel.reason,
        actor_id=current_user.id, actor_role=current_user.role
    )

@router.post('/{booking_id}/complete', response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    notes: BookingComplete,
    bookings_db: ContainerProxy = Depends(get_bookings_container),
    claims_db: ContainerProxy = Depends(get_claims_container),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Trainer marks a confirmed session as completed with session notes.
    Sessions that have not started yet cannot be completed.
    """
    booking = await BookingService.get_booking(bookings_db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.status == BookingStatus.CONFIRMED and not BookingService.can_complete(booking):
        raise ValidationError("Sessions can only be completed once they have started")

    return await BookingService.complete_booking(
        bookings_db, claims_db, booking_id, notes,
        actor_id=current_user.id, actor_role=current_user.role
    )

from azure.core import MatchConditions
from azure.cosmos import ContainerProxy, exceptions
from trainerbook.models.mod_auth import UserRole
from trainerbook.models.mod_booking import (
    Booking,
    BookingChange,
    BookingStatus,
    BookingTransitionEvent,
    OptimisticBooking,
    SessionNotes
)
from trainerbook.models.mod_slot import TimeWindow, format_time
from trainerbook.schemas.sch_booking import BookingCreate
from trainerbook.services.svc_events import BookingEventDispatcher, booking_events
from trainerbook.services.svc_slots import SlotResolutionService
from trainerbook.validators.val_booking import BookingValidator
from trainerbook.configuration.config import Config
from trainerbook.validators.val_errors import (
    SchedulingError,
    NotFoundError,
    SlotUnavailableError
)
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union
from trainerbook.configuration.monitor import log_event, log_exception, start_span

class BookingService:
    @staticmethod
    def _claim_id(trainer_id: str, booking_date, start_time) -> str:
        return f"{trainer_id}|{booking_date.isoformat()}|{format_time(start_time)}"

    @staticmethod
    def _serialize_booking(booking: Booking) -> dict:
        """Convert a booking to its storage format"""
        booking_dict = booking.model_dump(mode="json")
        booking_dict["start_time"] = format_time(booking.start_time)
        booking_dict["end_time"] = format_time(booking.end_time)
        return booking_dict

    @staticmethod
    def _convert_to_model(item: dict) -> Booking:
        return Booking.model_validate({key: value for key, value in item.items() if not key.startswith("_")})

    @staticmethod
    def _release_claim(claims_db: ContainerProxy, booking: Booking):
        """Free the (trainer, date, start) claim held by this booking, if it still holds it"""
        claim_id = BookingService._claim_id(booking.trainer_id, booking.booking_date, booking.start_time)
        try:
            claim = claims_db.read_item(item=claim_id, partition_key=booking.trainer_id)
        except exceptions.CosmosResourceNotFoundError:
            log_event("Booking claim already released", {"booking_id": booking.id, "claim_id": claim_id})
            return
        if claim.get("booking_id") != booking.id:
            return
        claims_db.delete_item(item=claim_id, partition_key=booking.trainer_id)
        log_event("Booking claim released", {"booking_id": booking.id, "claim_id": claim_id})

    @staticmethod
    def _take_over_claim(bookings_db: ContainerProxy, claims_db: ContainerProxy, claim_body: dict) -> bool:
        """
        Replace a claim left behind by a booking that is gone or no longer active.

        The replace is conditioned on the etag that was read, so concurrent
        creators still conflict. A claim without a booking is only reclaimed
        after CLAIM_STALE_SECONDS, since its booking may still be in flight.
        """
        trainer_id = claim_body["trainer_id"]
        try:
            claim = claims_db.read_item(item=claim_body["id"], partition_key=trainer_id)
        except exceptions.CosmosResourceNotFoundError:
            try:
                claims_db.create_item(body=claim_body)
                return True
            except exceptions.CosmosResourceExistsError:
                return False

        try:
            holder = BookingService._convert_to_model(
                bookings_db.read_item(item=claim["booking_id"], partition_key=trainer_id)
            )
        except exceptions.CosmosResourceNotFoundError:
            holder = None

        if holder is not None and holder.is_active:
            return False
        if holder is None:
            claimed_at = datetime.fromisoformat(claim["created_at"])
            if datetime.now(timezone.utc) - claimed_at < timedelta(seconds=Config.CLAIM_STALE_SECONDS):
                return False

        try:
            claims_db.replace_item(
                item=claim_body["id"],
                body=claim_body,
                etag=claim.get("_etag"),
                match_condition=MatchConditions.IfNotModified
            )
        except (exceptions.CosmosAccessConditionFailedError, exceptions.CosmosResourceNotFoundError):
            return False

        log_event("Stale booking claim taken over", {
            "claim_id": claim_body["id"],
            "previous_booking_id": claim["booking_id"],
            "booking_id": claim_body["booking_id"]
        })
        return True

    @staticmethod
    async def create_booking(
        bookings_db: ContainerProxy,
        claims_db: ContainerProxy,
        slots_db: ContainerProxy,
        booking: BookingCreate,
        *,
        actor_id: str,
        actor_role: UserRole,
        events: BookingEventDispatcher = booking_events
    ) -> Booking:
        """
        Create a pending booking in a currently free window.

        Freedom is re-checked right before writing, then a claim document keyed
        by (trainer, date, start time) is inserted. Cosmos rejects a second claim
        with 409, so two clients racing for the same slot get exactly one booking.
        A claim whose booking is gone or no longer active is taken over.
        """
        try:
            with start_span("create_booking", attributes={
                "client_id": booking.client_id,
                "trainer_id": booking.trainer_id
            }):
                log_event("Create booking started", {
                    "client_id": booking.client_id,
                    "trainer_id": booking.trainer_id,
                    "booking_date": booking.booking_date.isoformat(),
                    "start_time": format_time(booking.start_time),
                    "end_time": format_time(booking.end_time)
                })

                # Validate business rules
                duration = BookingValidator.validate_create_booking(booking, actor_id, actor_role)
                window = TimeWindow(start_time=booking.start_time, end_time=booking.end_time)

                if not await SlotResolutionService.is_window_free(
                    slots_db, bookings_db, booking.trainer_id, booking.booking_date, window
                ):
                    raise SlotUnavailableError()

                booking_id = str(uuid.uuid4())
                current_time = datetime.now(timezone.utc)

                claim_body = {
                    "id": BookingService._claim_id(booking.trainer_id, booking.booking_date, booking.start_time),
                    "trainer_id": booking.trainer_id,
                    "booking_id": booking_id,
                    "booking_date": booking.booking_date.isoformat(),
                    "start_time": format_time(booking.start_time),
                    "created_at": current_time.isoformat()
                }
                try:
                    claims_db.create_item(body=claim_body)
                except exceptions.CosmosResourceExistsError:
                    if not BookingService._take_over_claim(bookings_db, claims_db, claim_body):
                        log_event("Booking claim conflict", {
                            "trainer_id": booking.trainer_id,
                            "booking_date": booking.booking_date.isoformat(),
                            "start_time": format_time(booking.start_time)
                        })
                        raise SlotUnavailableError()

                created = Booking(
                    id=booking_id,
                    client_id=booking.client_id,
                    trainer_id=booking.trainer_id,
                    booking_date=booking.booking_date,
                    start_time=booking.start_time,
                    end_time=booking.end_time,
                    duration_minutes=duration,
                    session_type=booking.session_type,
                    hourly_rate=booking.hourly_rate,
                    total_price=booking.total_price,
                    client_notes=booking.client_notes,
                    status=BookingStatus.PENDING,
                    changes=[BookingChange(
                        timestamp=current_time,
                        change_type="created",
                        new_status=BookingStatus.PENDING,
                        actor_id=actor_id
                    )],
                    created_at=current_time,
                    updated_at=current_time
                )

                try:
                    bookings_db.create_item(body=BookingService._serialize_booking(created))
                except Exception:
                    BookingService._release_claim(claims_db, created)
                    raise

                log_event("Booking created successfully", {
                    "booking_id": booking_id,
                    "client_id": booking.client_id,
                    "trainer_id": booking.trainer_id
                })

                await events.emit(BookingTransitionEvent(
                    booking=created,
                    new_status=BookingStatus.PENDING,
                    actor_id=actor_id,
                    occurred_at=current_time
                ))
                return created
        except Exception as e:
            log_exception(e, {
                "operation": "create_booking",
                "client_id": booking.client_id,
                "trainer_id": booking.trainer_id
            })
            raise

    @staticmethod
    async def create_booking_optimistic(
        bookings_db: ContainerProxy,
        claims_db: ContainerProxy,
        slots_db: ContainerProxy,
        booking: BookingCreate,
        *,
        actor_id: str,
        actor_role: UserRole,
        pending: Optional[OptimisticBooking] = None,
        events: BookingEventDispatcher = booking_events
    ) -> OptimisticBooking:
        """
        Run create_booking behind an optimistic placeholder.

        Business errors roll the placeholder back and return it; any other
        failure rolls it back and propagates.
        """
        pending = pending or OptimisticBooking.begin(
            booking.trainer_id, booking.booking_date, booking.start_time, booking.end_time
        )
        try:
            created = await BookingService.create_booking(
                bookings_db, claims_db, slots_db, booking,
                actor_id=actor_id, actor_role=actor_role, events=events
            )
        except SchedulingError as e:
            return pending.roll_back(e.detail)
        except Exception as e:
            pending.roll_back(str(e))
            raise
        return pending.reconcile(created)

    @staticmethod
    async def get_booking(db: ContainerProxy, booking_id: str) -> Optional[Booking]:
        try:
            with start_span("get_booking", attributes={"booking_id": booking_id}):
                log_event("Retrieving booking", {"booking_id": booking_id})

                items = list(db.query_items(
                    query="SELECT * FROM c WHERE c.id = @id",
                    parameters=[{"name": "@id", "value": booking_id}],
                    enable_cross_partition_query=True
                ))
                if items:
                    return BookingService._convert_to_model(items[0])

                log_event("Booking not found", {"booking_id": booking_id})
                return None
        except Exception as e:
            log_exception(e, {"operation": "get_booking", "booking_id": booking_id})
            raise

    @staticmethod
    async def get_user_bookings(
        db: ContainerProxy,
        user_id: str,
        role: UserRole,
        status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        """Bookings where the user is the client or the trainer, ordered by date and start time"""
        try:
            with start_span("get_user_bookings", attributes={"user_id": user_id, "role": role.value}):
                log_event("Retrieving user bookings", {"user_id": user_id, "role": role.value})

                field = "trainer_id" if role == UserRole.TRAINER else "client_id"
                query = f"SELECT * FROM c WHERE c.{field} = @user_id"
                parameters = [{"name": "@user_id", "value": user_id}]
                if status is not None:
                    query += " AND c.status = @status"
                    parameters.append({"name": "@status", "value": status.value})

                items = db.query_items(query=query, parameters=parameters, enable_cross_partition_query=True)
                bookings = sorted(
                    (BookingService._convert_to_model(item) for item in items),
                    key=lambda b: (b.booking_date, b.start_time)
                )

                log_event("User bookings retrieved", {"user_id": user_id, "count": len(bookings)})
                return bookings
        except Exception as e:
            log_exception(e, {"operation": "get_user_bookings", "user_id": user_id})
            raise

    @staticmethod
    def upcoming_bookings(bookings: List[Booking], now: Optional[datetime] = None) -> List[Booking]:
        now = now or datetime.now()
        return [b for b in bookings if b.starts_at > now and b.status != BookingStatus.CANCELLED]

    @staticmethod
    def bookings_with_status(bookings: List[Booking], status: BookingStatus) -> List[Booking]:
        return [b for b in bookings if b.status == status]

    @staticmethod
    def can_complete(booking: Booking, now: Optional[datetime] = None) -> bool:
        """The session must have started before it can be marked completed"""
        return booking.status == BookingStatus.CONFIRMED and BookingValidator.has_session_started(booking, now)

    @staticmethod
    async def update_booking_status(
        bookings_db: ContainerProxy,
        claims_db: ContainerProxy,
        booking_id: str,
        new_status: BookingStatus,
        reason: Optional[str] = None,
        *,
        actor_id: str,
        actor_role: UserRole,
        session_notes: Optional[SessionNotes] = None,
        events: BookingEventDispatcher = booking_events
    ) -> Booking:
        try:
            with start_span("update_booking_status", attributes={
                "booking_id": booking_id,
                "new_status": new_status.value
            }):
                log_event("Update booking status started", {
                    "booking_id": booking_id,
                    "new_status": new_status.value,
                    "actor_id": actor_id
                })

                existing = await BookingService.get_booking(bookings_db, booking_id)
                if existing is None:
                    raise NotFoundError("Booking not found")

                # Validate business rules
                action = BookingValidator.validate_status_update(existing, new_status, reason, actor_id, actor_role)

                current_time = datetime.now(timezone.utc)
                previous_status = existing.status
                updated = existing.model_copy(deep=True)
                updated.status = new_status
                updated.updated_at = current_time

                if action == "cancel":
                    updated.cancellation_reason = reason.strip()
                elif action == "complete" and session_notes is not None and not session_notes.is_empty():
                    updated.session_notes = session_notes
                    updated.trainer_notes = session_notes.render()
                elif action == "complete" and reason:
                    updated.trainer_notes = reason

                updated.changes.append(BookingChange(
                    timestamp=current_time,
                    change_type=new_status.value,
                    previous_status=previous_status,
                    new_status=new_status,
                    actor_id=actor_id
                ))

                bookings_db.upsert_item(body=BookingService._serialize_booking(updated))

                if not updated.is_active:
                    BookingService._release_claim(claims_db, updated)

                log_event("Booking status updated", {
                    "booking_id": booking_id,
                    "previous_status": previous_status.value,
                    "new_status": new_status.value
                })

                await events.emit(BookingTransitionEvent(
                    booking=updated,
                    previous_status=previous_status,
                    new_status=new_status,
                    actor_id=actor_id,
                    reason=reason,
                    occurred_at=current_time
                ))
                return updated
        except Exception as e:
            log_exception(e, {"operation": "update_booking_status", "booking_id": booking_id})
            raise

    # Convenience wrappers

    @staticmethod
    async def confirm_booking(bookings_db: ContainerProxy, claims_db: ContainerProxy, booking_id: str,
                              *, actor_id: str, actor_role: UserRole, **kwargs) -> Booking:
        return await BookingService.update_booking_status(
            bookings_db, claims_db, booking_id, BookingStatus.CONFIRMED,
            actor_id=actor_id, actor_role=actor_role, **kwargs
        )

    @staticmethod
    async def cancel_booking(bookings_db: ContainerProxy, claims_db: ContainerProxy, booking_id: str, reason: str,
                             *, actor_id: str, actor_role: UserRole, **kwargs) -> Booking:
        return await BookingService.update_booking_status(
            bookings_db, claims_db, booking_id, BookingStatus.CANCELLED, reason,
            actor_id=actor_id, actor_role=actor_role, **kwargs
        )

    @staticmethod
    async def complete_booking(bookings_db: ContainerProxy, claims_db: ContainerProxy, booking_id: str,
                               notes: Union[str, SessionNotes, None] = None,
                               *, actor_id: str, actor_role: UserRole, **kwargs) -> Booking:
        if isinstance(notes, SessionNotes):
            return await BookingService.update_booking_status(
                bookings_db, claims_db, booking_id, BookingStatus.COMPLETED,
                actor_id=actor_id, actor_role=actor_role, session_notes=notes, **kwargs
            )
        return await BookingService.update_booking_status(
            bookings_db, claims_db, booking_id, BookingStatus.COMPLETED, notes,
            actor_id=actor_id, actor_role=actor_role, **kwargs
        )

from azure.cosmos import ContainerProxy, exceptions
from trainerbook.models.mod_auth import UserRole
from trainerbook.models.mod_availability import AvailabilitySlot
from trainerbook.models.mod_slot import (
    WEEKDAY_NAMES,
    format_time,
    parse_time,
    range_to_slots,
    weekday_index,
    iter_dates,
    week_dates
)
from trainerbook.schemas.sch_availability import BulkResult
from trainerbook.validators.val_availability import AvailabilityValidator
from trainerbook.validators.val_errors import (
    SchedulingError,
    DuplicateSlotError,
    NotFoundError,
    ValidationError
)
from trainerbook.configuration.config import Config
import asyncio
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple
from trainerbook.configuration.monitor import log_event, log_exception, log_metric, start_span

# Namespace for deterministic slot ids derived from each slot's natural key
SLOT_NAMESPACE = uuid.UUID("6f1c7a52-3d0e-4c35-9b8e-2a4f5d8c9e10")

class AvailabilityService:
    @staticmethod
    def _slot_id(trainer_id: str, day_of_week: int, start_time: time, specific_date: Optional[date] = None) -> str:
        """Recurring slots are keyed by weekday + start, date-specific slots by date + start"""
        if specific_date is None:
            key = f"{trainer_id}|weekly|{day_of_week}|{format_time(start_time)}"
        else:
            key = f"{trainer_id}|date|{specific_date.isoformat()}|{format_time(start_time)}"
        return str(uuid.uuid5(SLOT_NAMESPACE, key))

    @staticmethod
    def _serialize_slot(slot: AvailabilitySlot) -> dict:
        """Convert a slot to its storage format"""
        return {
            "id": slot.id,
            "trainer_id": slot.trainer_id,
            "day_of_week": slot.day_of_week,
            "specific_date": slot.specific_date.isoformat() if slot.specific_date else None,
            "start_time": format_time(slot.start_time),
            "end_time": format_time(slot.end_time),
            "is_recurring": slot.is_recurring,
            "updated_at": slot.updated_at.isoformat() if slot.updated_at else None
        }

    @staticmethod
    def _convert_to_model(item: dict) -> AvailabilitySlot:
        """Convert a dictionary from storage format to model format"""
        converted = {
            "id": item["id"],
            "trainer_id": item["trainer_id"],
            "day_of_week": item["day_of_week"],
            "start_time": parse_time(item["start_time"]),
            "end_time": parse_time(item["end_time"]),
            "is_recurring": item.get("is_recurring", True)
        }
        if item.get("specific_date"):
            converted["specific_date"] = date.fromisoformat(item["specific_date"])
        if item.get("updated_at"):
            converted["updated_at"] = datetime.fromisoformat(item["updated_at"])
        return AvailabilitySlot(**converted)

    @staticmethod
    async def set_availability_slot(
        db: ContainerProxy,
        trainer_id: str,
        day_of_week: int,
        start_time: time,
        end_time: time,
        specific_date: Optional[date] = None,
        *,
        actor_id: str,
        actor_role: UserRole
    ) -> AvailabilitySlot:
        """
        Create or replace an availability slot.

        Recurring templates upsert on (trainer_id, day_of_week, start_time), so
        re-submitting a day and start time replaces the end time. Date-specific
        slots are insert-only and a repeated (trainer_id, date, start_time)
        raises DuplicateSlotError.
        """
        try:
            with start_span("set_availability_slot", attributes={"trainer_id": trainer_id}):
                log_event("Set availability slot started", {
                    "trainer_id": trainer_id,
                    "day_of_week": day_of_week,
                    "specific_date": specific_date.isoformat() if specific_date else None,
                    "start_time": format_time(start_time),
                    "end_time": format_time(end_time)
                })

                # Validate business rules
                AvailabilityValidator.validate_set_slot(
                    trainer_id, day_of_week, start_time, end_time, specific_date, actor_id, actor_role
                )

                slot = AvailabilitySlot(
                    id=AvailabilityService._slot_id(trainer_id, day_of_week, start_time, specific_date),
                    trainer_id=trainer_id,
                    day_of_week=day_of_week,
                    specific_date=specific_date,
                    start_time=start_time,
                    end_time=end_time,
                    is_recurring=specific_date is None,
                    updated_at=datetime.now(timezone.utc)
                )
                slot_dict = AvailabilityService._serialize_slot(slot)

                if slot.is_recurring:
                    db.upsert_item(body=slot_dict)
                else:
                    try:
                        db.create_item(body=slot_dict)
                    except exceptions.CosmosResourceExistsError:
                        raise DuplicateSlotError(
                            f"A slot starting at {format_time(start_time)} already exists on {specific_date.isoformat()}"
                        )

                log_event("Availability slot saved", {
                    "slot_id": slot.id,
                    "trainer_id": trainer_id,
                    "is_recurring": slot.is_recurring
                })
                return slot
        except Exception as e:
            log_exception(e, {
                "operation": "set_availability_slot",
                "trainer_id": trainer_id,
                "day_of_week": day_of_week
            })
            raise

    @staticmethod
    async def get_slot(db: ContainerProxy, slot_id: str) -> Optional[AvailabilitySlot]:
        try:
            with start_span("get_slot", attributes={"slot_id": slot_id}):
                items = list(db.query_items(
                    query="SELECT * FROM c WHERE c.id = @id",
                    parameters=[{"name": "@id", "value": slot_id}],
                    enable_cross_partition_query=True
                ))
                if items:
                    return AvailabilityService._convert_to_model(items[0])
                log_event("Availability slot not found", {"slot_id": slot_id})
                return None
        except Exception as e:
            log_exception(e, {"operation": "get_slot", "slot_id": slot_id})
            raise

    @staticmethod
    async def remove_availability_slot(db: ContainerProxy, slot_id: str, *, actor_id: str, actor_role: UserRole) -> None:
        """Hard delete. Bookings already made in this slot are left untouched."""
        try:
            with start_span("remove_availability_slot", attributes={"slot_id": slot_id}):
                log_event("Remove availability slot started", {"slot_id": slot_id})

                slot = await AvailabilityService.get_slot(db, slot_id)
                if slot is None:
                    raise NotFoundError("Availability slot not found")
                AvailabilityValidator.validate_owner(slot.trainer_id, actor_id, actor_role)

                try:
                    db.delete_item(item=slot_id, partition_key=slot.trainer_id)
                except exceptions.CosmosResourceNotFoundError:
                    raise NotFoundError("Availability slot not found")

                log_event("Availability slot removed", {"slot_id": slot_id, "trainer_id": slot.trainer_id})
        except Exception as e:
            log_exception(e, {"operation": "remove_availability_slot", "slot_id": slot_id})
            raise

    @staticmethod
    def _query_trainer_slots(db: ContainerProxy, trainer_id: str, recurring_only: bool = False) -> List[AvailabilitySlot]:
        query = "SELECT * FROM c WHERE c.trainer_id = @trainer_id"
        if recurring_only:
            query += " AND c.is_recurring = true"
        items = db.query_items(
            query=query,
            parameters=[{"name": "@trainer_id", "value": trainer_id}],
            partition_key=trainer_id
        )
        return [AvailabilityService._convert_to_model(item) for item in items]

    @staticmethod
    def _group_by_weekday(slots: Iterable[AvailabilitySlot]) -> Dict[str, List[AvailabilitySlot]]:
        schedule = {}
        for slot in sorted(slots, key=lambda s: (s.day_of_week, s.start_time)):
            schedule.setdefault(WEEKDAY_NAMES[slot.day_of_week], []).append(slot)
        return schedule

    @staticmethod
    def resolve_slots_for_date(slots: Iterable[AvailabilitySlot], day: date) -> List[AvailabilitySlot]:
        """
        Recurring templates for the date's weekday merged with the date's own
        slots, de-duplicated by (start_time, end_time) and ordered by start.
        """
        weekday = weekday_index(day)
        matching = [
            slot for slot in slots
            if (slot.is_recurring and slot.day_of_week == weekday)
            or (not slot.is_recurring and slot.specific_date == day)
        ]
        # Date-specific entries sort ahead of templates and win the de-duplication
        matching.sort(key=lambda s: (s.start_time, s.end_time, s.is_recurring))
        resolved = []
        seen = set()
        for slot in matching:
            key = (slot.start_time, slot.end_time)
            if key not in seen:
                seen.add(key)
                resolved.append(slot)
        return resolved

    @staticmethod
    async def get_trainer_availability(db: ContainerProxy, trainer_id: str) -> Dict[str, List[AvailabilitySlot]]:
        """Weekly recurring template grouped by weekday name"""
        try:
            with start_span("get_trainer_availability", attributes={"trainer_id": trainer_id}):
                log_event("Retrieving trainer availability", {"trainer_id": trainer_id})

                slots = AvailabilityService._query_trainer_slots(db, trainer_id, recurring_only=True)
                schedule = AvailabilityService._group_by_weekday(slots)

                log_event("Trainer availability retrieved", {
                    "trainer_id": trainer_id,
                    "count": len(slots)
                })
                return schedule
        except Exception as e:
            log_exception(e, {"operation": "get_trainer_availability", "trainer_id": trainer_id})
            raise

    @staticmethod
    async def get_availability_for_trainers(db: ContainerProxy, trainer_ids: List[str]) -> Dict[str, Dict[str, List[AvailabilitySlot]]]:
        """Weekly templates of several trainers in a single query"""
        if not trainer_ids:
            return {}
        try:
            with start_span("get_availability_for_trainers", attributes={"count": len(trainer_ids)}):
                items = db.query_items(
                    query="SELECT * FROM c WHERE ARRAY_CONTAINS(@trainer_ids, c.trainer_id) AND c.is_recurring = true",
                    parameters=[{"name": "@trainer_ids", "value": list(trainer_ids)}],
                    enable_cross_partition_query=True
                )
                by_trainer = {}
                for item in items:
                    slot = AvailabilityService._convert_to_model(item)
                    by_trainer.setdefault(slot.trainer_id, []).append(slot)

                return {
                    trainer_id: AvailabilityService._group_by_weekday(slots)
                    for trainer_id, slots in by_trainer.items()
                }
        except Exception as e:
            log_exception(e, {"operation": "get_availability_for_trainers", "trainer_ids": ",".join(trainer_ids)})
            raise

    @staticmethod
    async def get_trainer_slots_for_range(
        db: ContainerProxy,
        trainer_id: str,
        start_date: date,
        end_date: date
    ) -> Dict[str, List[AvailabilitySlot]]:
        """Concrete slots for every date of the inclusive range, keyed by ISO date"""
        try:
            with start_span("get_trainer_slots_for_range", attributes={
                "trainer_id": trainer_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat()
            }):
                AvailabilityValidator.validate_date_range(start_date, end_date)

                slots = AvailabilityService._query_trainer_slots(db, trainer_id)
                return {
                    day.isoformat(): AvailabilityService.resolve_slots_for_date(slots, day)
                    for day in iter_dates(start_date, end_date)
                }
        except Exception as e:
            log_exception(e, {
                "operation": "get_trainer_slots_for_range",
                "trainer_id": trainer_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat()
            })
            raise

    @staticmethod
    async def _replay_slots(
        db: ContainerProxy,
        trainer_id: str,
        targets: List[Tuple[date, time, time]],
        actor_id: str,
        actor_role: UserRole,
        delay_seconds: Optional[float],
        operation: str
    ) -> BulkResult:
        """
        Create one date-specific slot per target, one call at a time.
        Failures are counted and logged, never raised.
        """
        delay = Config.BULK_CREATE_DELAY_SECONDS if delay_seconds is None else delay_seconds
        result = BulkResult()

        for index, (day, start_time, end_time) in enumerate(targets):
            if index and delay > 0:
                await asyncio.sleep(delay)
            try:
                await AvailabilityService.set_availability_slot(
                    db, trainer_id, weekday_index(day), start_time, end_time,
                    specific_date=day, actor_id=actor_id, actor_role=actor_role
                )
                result.success_count += 1
            except (SchedulingError, exceptions.CosmosHttpResponseError) as e:
                result.failure_count += 1
                detail = getattr(e, "detail", None) or str(e)
                result.failures.append(
                    f"{day.isoformat()} {format_time(start_time)}-{format_time(end_time)}: {detail}"
                )
                log_event(f"{operation} slot failed", {
                    "trainer_id": trainer_id,
                    "date": day.isoformat(),
                    "start_time": format_time(start_time),
                    "error": detail
                })

        log_metric(f"{operation}_success", result.success_count, {"trainer_id": trainer_id})
        log_metric(f"{operation}_failure", result.failure_count, {"trainer_id": trainer_id})
        return result

    @staticmethod
    async def bulk_create_slots(
        db: ContainerProxy,
        trainer_id: str,
        start_date: date,
        end_date: date,
        weekdays: Iterable[int],
        start_time: time,
        end_time: time,
        slot_duration_minutes: int,
        *,
        actor_id: str,
        actor_role: UserRole,
        delay_seconds: Optional[float] = None
    ) -> BulkResult:
        """One date-specific slot per matching date and sub-slot of [start_time, end_time)"""
        weekdays = set(weekdays)
        with start_span("bulk_create_slots", attributes={"trainer_id": trainer_id}):
            log_event("Bulk slot creation started", {
                "trainer_id": trainer_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "weekdays": ",".join(str(d) for d in sorted(weekdays)),
                "slot_duration_minutes": slot_duration_minutes
            })
            AvailabilityValidator.validate_owner(trainer_id, actor_id, actor_role)
            AvailabilityValidator.validate_bulk_create(
                start_date, end_date, weekdays, start_time, end_time, slot_duration_minutes
            )

            sub_slots = range_to_slots(start_time, end_time, slot_duration_minutes)
            targets = [
                (day, slot_start, slot_end)
                for day in iter_dates(start_date, end_date)
                if weekday_index(day) in weekdays
                for slot_start, slot_end in sub_slots
            ]
            result = await AvailabilityService._replay_slots(
                db, trainer_id, targets, actor_id, actor_role, delay_seconds, "bulk_create"
            )
            log_event("Bulk slot creation finished", {
                "trainer_id": trainer_id,
                "success_count": result.success_count,
                "failure_count": result.failure_count
            })
            return result

    @staticmethod
    async def copy_week(
        db: ContainerProxy,
        trainer_id: str,
        source_week_start: date,
        target_week_start: date,
        *,
        actor_id: str,
        actor_role: UserRole,
        delay_seconds: Optional[float] = None
    ) -> BulkResult:
        """
        Replay one week's resolved slots onto another week, matching by weekday
        number rather than by date. A window the target date already offers,
        through a recurring template or a date-specific slot, counts as a failure
        and is not written again.
        """
        with start_span("copy_week", attributes={"trainer_id": trainer_id}):
            log_event("Copy week started", {
                "trainer_id": trainer_id,
                "source_week_start": source_week_start.isoformat(),
                "target_week_start": target_week_start.isoformat()
            })
            AvailabilityValidator.validate_owner(trainer_id, actor_id, actor_role)
            if source_week_start == target_week_start:
                raise ValidationError("Source and target week must differ")

            source = await AvailabilityService.get_trainer_slots_for_range(
                db, trainer_id, source_week_start, source_week_start + timedelta(days=6)
            )
            by_weekday = {
                weekday_index(date.fromisoformat(day)): slots
                for day, slots in source.items()
            }
            existing = await AvailabilityService.get_trainer_slots_for_range(
                db, trainer_id, target_week_start, target_week_start + timedelta(days=6)
            )

            targets = []
            already_available = []
            for day in week_dates(target_week_start):
                present = {(slot.start_time, slot.end_time) for slot in existing[day.isoformat()]}
                for slot in by_weekday.get(weekday_index(day), []):
                    if (slot.start_time, slot.end_time) in present:
                        already_available.append(
                            f"{day.isoformat()} {format_time(slot.start_time)}-{format_time(slot.end_time)}: already available"
                        )
                    else:
                        targets.append((day, slot.start_time, slot.end_time))

            result = await AvailabilityService._replay_slots(
                db, trainer_id, targets, actor_id, actor_role, delay_seconds, "copy_week"
            )
            if already_available:
                log_event("Copy week skipped existing slots", {
                    "trainer_id": trainer_id,
                    "count": len(already_available)
                })
                result.failure_count += len(already_available)
                result.failures = already_available + result.failures
            log_event("Copy week finished", {
                "trainer_id": trainer_id,
                "success_count": result.success_count,
                "failure_count": result.failure_count
            })
            return result

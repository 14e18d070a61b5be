import inspect
from typing import Awaitable, Callable, List, Optional
from trainerbook.models.mod_booking import BookingTransitionEvent
from trainerbook.configuration.monitor import log_event, log_exception, start_span

Subscriber = Callable[[BookingTransitionEvent], Optional[Awaitable[None]]]

class BookingEventDispatcher:
    """
    Fans booking status changes out to notification subscribers.

    Subscribers may be plain functions or coroutines. A failing subscriber is
    logged and skipped; the transition it reports is already persisted.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Subscriber:
        if callback not in self._subscribers:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def emit(self, event: BookingTransitionEvent):
        properties = {
            "booking_id": event.booking.id,
            "trainer_id": event.booking.trainer_id,
            "client_id": event.booking.client_id,
            "previous_status": event.previous_status.value if event.previous_status else None,
            "new_status": event.new_status.value
        }
        with start_span("emit_booking_event", attributes={"booking_id": event.booking.id}):
            log_event("Booking transition", properties)
            for callback in list(self._subscribers):
                try:
                    result = callback(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    log_exception(e, {
                        "operation": "emit_booking_event",
                        "subscriber": getattr(callback, "__name__", repr(callback)),
                        **properties
                    })

booking_events = BookingEventDispatcher()

from fastapi import HTTPException

class SchedulingError(HTTPException):
    """Base class for scheduler business errors; carries its own HTTP status."""
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)

class ValidationError(SchedulingError):
    """Malformed input. Fixed by the caller, never retried automatically."""
    status_code = 400

class PermissionDeniedError(SchedulingError):
    status_code = 403

class NotFoundError(SchedulingError):
    status_code = 404

class SlotUnavailableError(SchedulingError):
    """The requested window was taken between listing and booking."""
    status_code = 409

    def __init__(self, detail: str = "This time slot is no longer available, please pick another time"):
        super().__init__(detail)

class DuplicateSlotError(SchedulingError):
    status_code = 409

class InvalidTransitionError(SchedulingError):
    status_code = 409

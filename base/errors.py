from enum import Enum

from pydantic import BaseModel


class Errors(str, Enum):
    not_found = "not_found"
    invalid_input = "invalid_input"
    store_unavailable = "store_unavailable"


class ErrorResponse(BaseModel):
    error: Errors
    message: str


class ScheduleError(Exception):
    error: Errors
    status_code: int

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.error, message=self.message)


class NotFoundError(ScheduleError):
    """The requested entity has no schedule at all"""
    error = Errors.not_found
    status_code = 404


class InvalidInputError(ScheduleError):
    """Malformed reference date or entity selector"""
    error = Errors.invalid_input
    status_code = 400


class StoreUnavailableError(ScheduleError):
    """The lesson store timed out or failed, never retried"""
    error = Errors.store_unavailable
    status_code = 503


class InvalidDateFormatError(InvalidInputError):
    def __init__(self, value: str):
        super().__init__(f"invalid date format {value!r}, expected YYYY-MM-DD")

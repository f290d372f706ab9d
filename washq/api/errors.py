from fastapi import HTTPException, status

from washq.domain.errors import (
    WashQError, BusinessNotFoundError, JobNotFoundError, ServiceNotFoundError,
    CustomerNotFoundError, CarNotFoundError, InvalidTransitionError,
    UnknownStatusError, CapacityRejectedError, ValidationError,
    WhatsAppNotConfiguredError,
)

_STATUS_CODES: list[tuple[type[WashQError], int]] = [
    (BusinessNotFoundError, status.HTTP_404_NOT_FOUND),
    (JobNotFoundError, status.HTTP_404_NOT_FOUND),
    (ServiceNotFoundError, status.HTTP_404_NOT_FOUND),
    (CustomerNotFoundError, status.HTTP_404_NOT_FOUND),
    (CarNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (CapacityRejectedError, status.HTTP_409_CONFLICT),
    (UnknownStatusError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (WhatsAppNotConfiguredError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def to_http_exception(exc: WashQError) -> HTTPException:
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

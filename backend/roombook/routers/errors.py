from fastapi import HTTPException, status

from ..domain.errors import (
    ConflictError,
    NotAllowedError,
    NotFoundError,
    ReservationError,
    StorageError,
    ValidationError,
)

STORAGE_RETRY_AFTER_SECONDS = 1


def http_error(exc: ReservationError) -> HTTPException:
    """Translate a domain error into the matching HTTP response."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="time slot unavailable, choose another time")
    if isinstance(exc, NotAllowedError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="storage temporarily unavailable, retry",
            headers={"Retry-After": str(STORAGE_RETRY_AFTER_SECONDS)},
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="unexpected error")

class ReservationError(Exception):
    """Base class for reservation engine errors."""


class ValidationError(ReservationError):
    """Malformed booking input. Raised before any storage access."""


class ConflictError(ReservationError):
    """The requested interval overlaps a confirmed reservation for the room."""


class NotAllowedError(ReservationError):
    """A lifecycle or policy rule rejected the operation."""


class NotFoundError(ReservationError):
    """The room or reservation does not exist or is not visible to the caller."""


class StorageError(ReservationError):
    """Transient storage failure; the whole operation may be retried."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from ..models import Reservation, ReservationStatus
from .errors import ConflictError, NotAllowedError, ValidationError
from .intervals import Interval

CENT = Decimal("0.01")
DEFAULT_CANCELLATION_DEADLINE = timedelta(hours=2)
MIN_BOOKING_DURATION = timedelta(hours=1)
MAX_BOOKING_DURATION = timedelta(hours=6)
# Largest value a Numeric(10, 2) column holds.
MAX_TOTAL_AMOUNT = Decimal("99999999.99")


@dataclass(frozen=True)
class RoomSnapshot:
    room_id: int
    is_active: bool
    hourly_rate: Decimal
    confirmed: Sequence[Reservation]


def interval_of(reservation: Reservation) -> Interval:
    return Interval(reservation.starts_at, reservation.ends_at)


def find_conflicts(
    existing: Iterable[Reservation],
    candidate: Interval,
    *,
    exclude_reservation_id: int | None = None,
) -> list[Reservation]:
    """Return the confirmed reservations whose interval overlaps ``candidate``."""
    return [
        reservation
        for reservation in existing
        if reservation.status == ReservationStatus.CONFIRMED
        and reservation.id != exclude_reservation_id
        and interval_of(reservation).overlaps(candidate)
    ]


def ensure_bookable_interval(
    interval: Interval,
    *,
    min_duration: timedelta = MIN_BOOKING_DURATION,
    max_duration: timedelta = MAX_BOOKING_DURATION,
) -> None:
    # Storage keeps whole seconds; minute boundaries keep stored and priced intervals equal.
    for instant in (interval.start, interval.end):
        if instant.second or instant.microsecond:
            raise ValidationError("reservations must start and end on a whole minute")
    duration = interval.end - interval.start
    if duration < min_duration or duration > max_duration:
        raise ValidationError(f"duration must be between {min_duration} and {max_duration}")


def compute_total(hourly_rate: Decimal, interval: Interval) -> Decimal:
    if hourly_rate < 0:
        raise ValidationError("hourly_rate must not be negative")
    total = (hourly_rate * interval.duration_hours).quantize(CENT, rounding=ROUND_HALF_UP)
    if total > MAX_TOTAL_AMOUNT:
        raise ValidationError("total amount is too large")
    return total


def validate_booking(snapshot: RoomSnapshot, candidate: Interval) -> Decimal:
    """
    Pure validation: ensures the room accepts bookings and the candidate is free.
    Returns the total amount for the booking if OK. Raises domain errors otherwise.
    """
    if not snapshot.is_active:
        raise NotAllowedError("room is not accepting reservations")
    if find_conflicts(snapshot.confirmed, candidate):
        raise ConflictError("requested interval overlaps an existing reservation")
    return compute_total(snapshot.hourly_rate, candidate)


def effective_status(reservation: Reservation, now: datetime) -> ReservationStatus:
    """Confirmed reservations whose end has passed count as completed."""
    if reservation.status == ReservationStatus.CONFIRMED and now >= reservation.ends_at:
        return ReservationStatus.COMPLETED
    return reservation.status


def ensure_cancellable(
    reservation: Reservation,
    *,
    now: datetime,
    deadline: timedelta = DEFAULT_CANCELLATION_DEADLINE,
) -> None:
    status = effective_status(reservation, now)
    if status == ReservationStatus.CANCELLED:
        raise NotAllowedError("reservation is already cancelled")
    if status != ReservationStatus.CONFIRMED:
        raise NotAllowedError(f"reservation is {status.value}")
    # Exactly at the deadline still counts as in time.
    if now > reservation.starts_at - deadline:
        raise NotAllowedError("cancellation window closed")

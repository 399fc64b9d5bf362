import logging
from datetime import datetime, timedelta
from decimal import Decimal

from ..domain.errors import NotFoundError, ValidationError
from ..domain.intervals import Interval
from ..domain.repositories import ReservationRepository, RoomRepository
from ..domain.services import (
    DEFAULT_CANCELLATION_DEADLINE,
    MAX_BOOKING_DURATION,
    MIN_BOOKING_DURATION,
    RoomSnapshot,
    compute_total,
    ensure_bookable_interval,
    ensure_cancellable,
    find_conflicts,
    validate_booking,
)
from ..models import Reservation, ReservationStatus
from ..utils.time import utc_now_naive

logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = 500


async def has_conflict(
    res_repo: ReservationRepository,
    *,
    room_id: int,
    candidate: Interval,
    exclude_reservation_id: int | None = None,
) -> bool:
    confirmed = await res_repo.find(room_id, ReservationStatus.CONFIRMED, exclude_id=exclude_reservation_id)
    return bool(find_conflicts(confirmed, candidate))


async def check_availability(
    res_repo: ReservationRepository,
    *,
    room_id: int,
    candidate: Interval,
) -> bool:
    """Advisory only; ``book`` repeats the check under the room lock."""
    return not await has_conflict(res_repo, room_id=room_id, candidate=candidate)


async def book(
    room_repo: RoomRepository,
    res_repo: ReservationRepository,
    *,
    room_id: int,
    user_id: int,
    interval: Interval,
    hourly_rate: Decimal | None = None,
    note: str | None = None,
    now: datetime | None = None,
    min_duration: timedelta = MIN_BOOKING_DURATION,
    max_duration: timedelta = MAX_BOOKING_DURATION,
) -> Reservation:
    now = now or utc_now_naive()
    if interval.start < now:
        raise ValidationError("reservations cannot start in the past")
    ensure_bookable_interval(interval, min_duration=min_duration, max_duration=max_duration)
    if hourly_rate is not None:
        compute_total(hourly_rate, interval)
    if note is not None:
        note = note.strip() or None
    if note is not None and len(note) > NOTE_MAX_LENGTH:
        raise ValidationError(f"note must be at most {NOTE_MAX_LENGTH} characters")

    async with res_repo.transaction():
        # The room row lock serialises book/cancel per room until commit.
        room = await room_repo.get_for_update(room_id)
        if room is None:
            raise NotFoundError("room not found")

        confirmed = await res_repo.find(room_id, ReservationStatus.CONFIRMED)
        snapshot = RoomSnapshot(
            room_id=room.id,
            is_active=room.is_active,
            hourly_rate=room.hourly_rate if hourly_rate is None else hourly_rate,
            confirmed=confirmed,
        )
        total_amount = validate_booking(snapshot, interval)

        reservation = await res_repo.insert(
            room_id=room.id,
            user_id=user_id,
            starts_at=interval.start,
            ends_at=interval.end,
            total_amount=total_amount,
            status=ReservationStatus.CONFIRMED,
            note=note,
        )
    logger.info("reservation %s booked for room %s", reservation.id, room_id)
    return reservation


async def cancel(
    room_repo: RoomRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    actor_id: int,
    is_operator: bool = False,
    now: datetime | None = None,
    deadline: timedelta = DEFAULT_CANCELLATION_DEADLINE,
) -> tuple[Reservation, ReservationStatus]:
    """Cancel a confirmed reservation. Returns the updated row and its previous status."""
    now = now or utc_now_naive()
    async with res_repo.transaction():
        reservation = await res_repo.get(reservation_id)
        if reservation is None or (not is_operator and reservation.user_id != actor_id):
            raise NotFoundError("reservation not found")

        # Same lock as book, so a cancel cannot interleave with a booking on the room.
        await room_repo.get_for_update(reservation.room_id)
        reservation = await res_repo.get_for_update(reservation_id)
        if reservation is None:
            raise NotFoundError("reservation not found")

        ensure_cancellable(reservation, now=now, deadline=deadline)
        previous = reservation.status
        updated = await res_repo.update_status(reservation, ReservationStatus.CANCELLED)
    logger.info("reservation %s cancelled by %s", updated.id, actor_id)
    return updated, previous


async def list_upcoming_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
    now: datetime | None = None,
) -> list[Reservation]:
    now = now or utc_now_naive()
    rows = await res_repo.list_by_user(user_id, status=ReservationStatus.CONFIRMED, ends_after=now)
    return sorted(rows, key=lambda r: r.starts_at)


async def get_user_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
) -> Reservation | None:
    reservation = await res_repo.get(reservation_id)
    if reservation is None or reservation.user_id != user_id:
        return None
    return reservation

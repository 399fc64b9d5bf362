"""Operator-facing aggregates over rooms and reservations.

Everything is recomputed from a full read on each call; there are no cached
counters. Windows are half-open ``[start, end)`` on ``starts_at``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Iterable

from ..domain.repositories import ReservationRepository, RoomRepository
from ..domain.services import CENT
from ..models import Reservation, ReservationStatus
from ..utils.time import start_of_local_day, subtract_months, utc_now_naive

BILLABLE_STATUSES = frozenset({ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED})


@dataclass(frozen=True)
class AdminStats:
    total_rooms: int
    active_rooms: int
    total_reservations: int
    today_count: int
    weekly_revenue: Decimal
    monthly_revenue: Decimal


def _starting_within(reservations: Iterable[Reservation], start: datetime, end: datetime) -> list[Reservation]:
    return [r for r in reservations if start <= r.starts_at < end]


def sum_revenue(reservations: Iterable[Reservation]) -> Decimal:
    total = sum((Decimal(r.total_amount) for r in reservations), Decimal("0"))
    return total.quantize(CENT)


async def stats(
    room_repo: RoomRepository,
    res_repo: ReservationRepository,
    *,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> AdminStats:
    now = now or utc_now_naive()
    rooms = await room_repo.list_rooms()
    reservations = await res_repo.list_all()

    billable = [r for r in reservations if r.status in BILLABLE_STATUSES]

    day_start = start_of_local_day(now, tz)
    return AdminStats(
        total_rooms=len(rooms),
        active_rooms=sum(1 for room in rooms if room.is_active),
        total_reservations=len(reservations),
        today_count=len(_starting_within(billable, day_start, day_start + timedelta(hours=24))),
        weekly_revenue=sum_revenue(_starting_within(billable, now - timedelta(days=7), now)),
        monthly_revenue=sum_revenue(_starting_within(billable, subtract_months(now, 1), now)),
    )


async def recent_reservations(
    res_repo: ReservationRepository,
    *,
    limit: int = 5,
) -> list[Reservation]:
    if limit < 1:
        return []
    confirmed = await res_repo.list_by_status(ReservationStatus.CONFIRMED)
    return sorted(confirmed, key=lambda r: (r.created_at, r.id), reverse=True)[:limit]

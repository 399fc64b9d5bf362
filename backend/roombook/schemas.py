from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .models import Reservation, ReservationStatus, Room, RoomFeature
from .usecases.stats import AdminStats
from .utils.time import utc_naive_to_local


class RoomRead(BaseModel):
    room_id: int
    name: str
    description: Optional[str]
    capacity: int
    hourly_rate: Decimal
    features: list[RoomFeature]

    @field_serializer("hourly_rate")
    def _ser_amount(self, value: Decimal) -> str:
        return format(value, "f")

    @classmethod
    def from_db(cls, *, room: Room) -> "RoomRead":
        return cls(
            room_id=room.id,
            name=room.name,
            description=room.description,
            capacity=room.capacity,
            hourly_rate=room.hourly_rate,
            features=[RoomFeature(f) for f in room.features or []],
        )


class RoomAvailability(BaseModel):
    room_id: int
    starts_at: datetime
    ends_at: datetime
    available: bool

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()


class ReservationCreate(BaseModel):
    room_id: int = Field(ge=1)
    starts_at: datetime
    ends_at: datetime
    note: Optional[str] = Field(default=None, max_length=500)


class ReservationRead(BaseModel):
    reservation_id: int
    room_id: int
    user_id: int
    starts_at: datetime
    ends_at: datetime
    total_amount: Decimal
    status: ReservationStatus
    note: Optional[str] = None
    created_at: datetime

    @field_serializer("starts_at", "ends_at", "created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @field_serializer("total_amount")
    def _ser_amount(self, value: Decimal) -> str:
        return format(value, "f")

    @classmethod
    def from_db(cls, *, reservation: Reservation, status: ReservationStatus | None = None) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            room_id=reservation.room_id,
            user_id=reservation.user_id,
            starts_at=utc_naive_to_local(reservation.starts_at),
            ends_at=utc_naive_to_local(reservation.ends_at),
            total_amount=reservation.total_amount,
            status=status or reservation.status,
            note=reservation.note,
            created_at=utc_naive_to_local(reservation.created_at),
        )


class RecentReservationRead(BaseModel):
    reservation_id: int
    starts_at: datetime
    total_amount: Decimal
    user_id: int
    owner_name: Optional[str]
    room_name: Optional[str]

    @field_serializer("starts_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @field_serializer("total_amount")
    def _ser_amount(self, value: Decimal) -> str:
        return format(value, "f")

    @classmethod
    def from_db(
        cls,
        *,
        reservation: Reservation,
        owner_name: Optional[str],
        room_name: Optional[str],
    ) -> "RecentReservationRead":
        return cls(
            reservation_id=reservation.id,
            starts_at=utc_naive_to_local(reservation.starts_at),
            total_amount=reservation.total_amount,
            user_id=reservation.user_id,
            owner_name=owner_name,
            room_name=room_name,
        )


class AdminStatsRead(BaseModel):
    total_rooms: int
    active_rooms: int
    total_reservations: int
    today_count: int
    weekly_revenue: Decimal
    monthly_revenue: Decimal

    @field_serializer("weekly_revenue", "monthly_revenue")
    def _ser_amount(self, value: Decimal) -> str:
        return format(value, "f")

    @classmethod
    def from_stats(cls, stats: AdminStats) -> "AdminStatsRead":
        return cls(
            total_rooms=stats.total_rooms,
            active_rooms=stats.active_rooms,
            total_reservations=stats.total_reservations,
            today_count=stats.today_count,
            weekly_revenue=stats.weekly_revenue,
            monthly_revenue=stats.monthly_revenue,
        )

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import AsyncContextManager, Iterable, Protocol

from ..models import Reservation, ReservationStatus, Room


class RoomRepository(Protocol):
    async def get(self, room_id: int) -> Room | None: ...

    async def get_for_update(self, room_id: int) -> Room | None: ...

    async def list_rooms(self, *, active_only: bool = False) -> list[Room]:
        """Rooms ordered by name."""
        ...

    async def names_by_id(self, room_ids: Iterable[int]) -> dict[int, str]: ...


class ReservationRepository(Protocol):
    def transaction(self) -> AsyncContextManager[None]: ...

    async def find(
        self,
        room_id: int,
        status: ReservationStatus | None = None,
        *,
        exclude_id: int | None = None,
    ) -> list[Reservation]: ...

    async def insert(
        self,
        *,
        room_id: int,
        user_id: int,
        starts_at: datetime,
        ends_at: datetime,
        total_amount: Decimal,
        status: ReservationStatus,
        note: str | None,
    ) -> Reservation: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation: ...

    async def list_all(self) -> list[Reservation]: ...

    async def list_by_status(self, status: ReservationStatus) -> list[Reservation]: ...

    async def list_by_user(
        self,
        user_id: int,
        *,
        status: ReservationStatus | None = None,
        ends_after: datetime | None = None,
    ) -> list[Reservation]: ...


class UserRepository(Protocol):
    async def names_by_id(self, user_ids: Iterable[int]) -> dict[int, str]: ...

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, List

from sqlalchemy import Select, select
from sqlalchemy.engine import Result
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import Executable

from ..domain.errors import StorageError
from ..domain.repositories import ReservationRepository, RoomRepository, UserRepository
from ..models import Reservation, ReservationStatus, Room, User

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (OperationalError, PoolTimeoutError)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class _SessionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _execute(self, stmt: Executable) -> Result[Any]:
        try:
            return await self.session.execute(stmt)
        except _TRANSIENT_ERRORS as exc:
            logger.warning("storage read failed: %s", exc)
            raise StorageError("storage unavailable") from exc

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except _TRANSIENT_ERRORS as exc:
            logger.warning("storage write failed: %s", exc)
            raise StorageError("storage unavailable") from exc


class SqlAlchemyRoomRepository(_SessionRepository, RoomRepository):
    async def get(self, room_id: int) -> Room | None:
        return (await self._execute(select(Room).where(Room.id == room_id))).scalar_one_or_none()

    async def get_for_update(self, room_id: int) -> Room | None:
        stmt = select(Room).where(Room.id == room_id).with_for_update().execution_options(populate_existing=True)
        return (await self._execute(stmt)).scalar_one_or_none()

    async def list_rooms(self, *, active_only: bool = False) -> List[Room]:
        stmt = select(Room).order_by(Room.name)
        if active_only:
            stmt = stmt.where(Room.is_active.is_(True))
        return list((await self._execute(stmt)).scalars().all())

    async def names_by_id(self, room_ids: Iterable[int]) -> dict[int, str]:
        ids = set(room_ids)
        if not ids:
            return {}
        rows = await self._execute(select(Room.id, Room.name).where(Room.id.in_(ids)))
        return {room_id: name for room_id, name in rows.all()}


class SqlAlchemyReservationRepository(_SessionRepository, ReservationRepository):
    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        try:
            async with self.session.begin():
                yield
        except _TRANSIENT_ERRORS as exc:
            logger.warning("storage transaction aborted: %s", exc)
            raise StorageError("transaction aborted") from exc

    async def find(
        self,
        room_id: int,
        status: ReservationStatus | None = None,
        *,
        exclude_id: int | None = None,
    ) -> List[Reservation]:
        stmt: Select[tuple[Reservation]] = select(Reservation).where(Reservation.room_id == room_id)
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        return list((await self._execute(stmt)).scalars().all())

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
    ) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(
            room_id=room_id,
            user_id=user_id,
            starts_at=starts_at,
            ends_at=ends_at,
            total_amount=total_amount,
            status=status,
            note=note,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self._flush()
        return reservation

    async def get(self, reservation_id: int) -> Reservation | None:
        stmt = select(Reservation).where(Reservation.id == reservation_id)
        return (await self._execute(stmt)).scalar_one_or_none()

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        stmt = (
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self._execute(stmt)).scalar_one_or_none()

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation:
        reservation.status = status
        reservation.updated_at = _utc_now_naive()
        self.session.add(reservation)
        await self._flush()
        return reservation

    async def list_all(self) -> List[Reservation]:
        return list((await self._execute(select(Reservation))).scalars().all())

    async def list_by_status(self, status: ReservationStatus) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.status == status)
        return list((await self._execute(stmt)).scalars().all())

    async def list_by_user(
        self,
        user_id: int,
        *,
        status: ReservationStatus | None = None,
        ends_after: datetime | None = None,
    ) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.user_id == user_id).order_by(Reservation.starts_at)
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        if ends_after is not None:
            stmt = stmt.where(Reservation.ends_at >= ends_after)
        return list((await self._execute(stmt)).scalars().all())


class SqlAlchemyUserRepository(_SessionRepository, UserRepository):
    async def names_by_id(self, user_ids: Iterable[int]) -> dict[int, str]:
        ids = set(user_ids)
        if not ids:
            return {}
        rows = await self._execute(select(User.id, User.name).where(User.id.in_(ids)))
        return {user_id: name for user_id, name in rows.all()}

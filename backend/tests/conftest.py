import asyncio
import itertools
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Callable, Iterable, Optional

import pytest
from roombook.domain.errors import StorageError
from roombook.models import Reservation, ReservationStatus, Room

NOW = datetime(2026, 10, 18, 9, 0, 0)


class InMemoryStore:
    """Shared state standing in for the database; one per test."""

    def __init__(self) -> None:
        self.rooms: dict[int, Room] = {}
        self.reservations: dict[int, Reservation] = {}
        self.user_names: dict[int, str] = {}
        self.room_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.fail_commit = False
        self.fail_reads = False
        self._room_ids = itertools.count(1)
        self._reservation_ids = itertools.count(1)

    def next_reservation_id(self) -> int:
        return next(self._reservation_ids)

    def add_room(
        self,
        *,
        name: Optional[str] = None,
        hourly_rate: Decimal = Decimal("50.00"),
        is_active: bool = True,
        capacity: int = 6,
    ) -> Room:
        room_id = next(self._room_ids)
        room = Room(
            id=room_id,
            name=name or f"Room {room_id}",
            description=None,
            capacity=capacity,
            hourly_rate=hourly_rate,
            is_active=is_active,
            features=["microphones"],
            created_at=NOW,
            updated_at=NOW,
        )
        self.rooms[room_id] = room
        return room

    def add_reservation(
        self,
        *,
        room_id: int,
        starts_at: datetime,
        ends_at: datetime,
        total_amount: Decimal = Decimal("100.00"),
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        user_id: int = 1,
        created_at: datetime = NOW,
    ) -> Reservation:
        reservation = Reservation(
            id=self.next_reservation_id(),
            room_id=room_id,
            user_id=user_id,
            starts_at=starts_at,
            ends_at=ends_at,
            total_amount=total_amount,
            status=status,
            note=None,
            created_at=created_at,
            updated_at=created_at,
        )
        self.reservations[reservation.id] = reservation
        return reservation


class FakeUnit:
    """Per-request view of the store, like one AsyncSession.

    Writes are buffered and applied on commit; room locks are held until the
    transaction ends.
    """

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.in_transaction = False
        self._held: list[asyncio.Lock] = []
        self._inserts: list[Reservation] = []
        self._status_updates: list[tuple[Reservation, ReservationStatus]] = []
        self.rooms = FakeRoomRepo(self)
        self.reservations = FakeReservationRepo(self)
        self.users = FakeUserRepo(self)

    async def io(self) -> None:
        # Yield to the loop so concurrent requests interleave like real I/O.
        await asyncio.sleep(0)
        if self.store.fail_reads:
            raise StorageError("storage unavailable")

    async def lock_room(self, room_id: int) -> None:
        if not self.in_transaction:
            raise RuntimeError("row locks need an open transaction")
        lock = self.store.room_locks[room_id]
        if lock in self._held:
            return
        await lock.acquire()
        self._held.append(lock)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        self.in_transaction = True
        try:
            yield
            await asyncio.sleep(0)
            if self.store.fail_commit:
                raise StorageError("transaction aborted")
            for reservation in self._inserts:
                self.store.reservations[reservation.id] = reservation
            for reservation, status in self._status_updates:
                reservation.status = status
        finally:
            self._inserts.clear()
            self._status_updates.clear()
            self.in_transaction = False
            while self._held:
                self._held.pop().release()


class FakeRoomRepo:
    def __init__(self, unit: FakeUnit) -> None:
        self.unit = unit

    async def get(self, room_id: int) -> Optional[Room]:
        await self.unit.io()
        return self.unit.store.rooms.get(room_id)

    async def get_for_update(self, room_id: int) -> Optional[Room]:
        await self.unit.lock_room(room_id)
        return await self.get(room_id)

    async def list_rooms(self, *, active_only: bool = False) -> list[Room]:
        await self.unit.io()
        rooms = sorted(self.unit.store.rooms.values(), key=lambda r: r.name)
        return [r for r in rooms if r.is_active or not active_only]

    async def names_by_id(self, room_ids: Iterable[int]) -> dict[int, str]:
        await self.unit.io()
        rooms = self.unit.store.rooms
        return {room_id: rooms[room_id].name for room_id in set(room_ids) if room_id in rooms}


class FakeReservationRepo:
    def __init__(self, unit: FakeUnit) -> None:
        self.unit = unit
        self.insert_calls = 0

    def transaction(self):  # type: ignore[no-untyped-def]
        return self.unit.transaction()

    async def find(
        self,
        room_id: int,
        status: Optional[ReservationStatus] = None,
        *,
        exclude_id: Optional[int] = None,
    ) -> list[Reservation]:
        await self.unit.io()
        return [
            r
            for r in self.unit.store.reservations.values()
            if r.room_id == room_id and (status is None or r.status == status) and r.id != exclude_id
        ]

    async def insert(
        self,
        *,
        room_id: int,
        user_id: int,
        starts_at: datetime,
        ends_at: datetime,
        total_amount: Decimal,
        status: ReservationStatus,
        note: Optional[str],
    ) -> Reservation:
        await self.unit.io()
        self.insert_calls += 1
        reservation = Reservation(
            id=self.unit.store.next_reservation_id(),
            room_id=room_id,
            user_id=user_id,
            starts_at=starts_at,
            ends_at=ends_at,
            total_amount=total_amount,
            status=status,
            note=note,
            created_at=NOW,
            updated_at=NOW,
        )
        self.unit._inserts.append(reservation)
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        await self.unit.io()
        return self.unit.store.reservations.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        return await self.get(reservation_id)

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation:
        await self.unit.io()
        self.unit._status_updates.append((reservation, status))
        return reservation

    async def list_all(self) -> list[Reservation]:
        await self.unit.io()
        return list(self.unit.store.reservations.values())

    async def list_by_status(self, status: ReservationStatus) -> list[Reservation]:
        return [r for r in await self.list_all() if r.status == status]

    async def list_by_user(
        self,
        user_id: int,
        *,
        status: Optional[ReservationStatus] = None,
        ends_after: Optional[datetime] = None,
    ) -> list[Reservation]:
        return [
            r
            for r in await self.list_all()
            if r.user_id == user_id
            and (status is None or r.status == status)
            and (ends_after is None or r.ends_at >= ends_after)
        ]


class FakeUserRepo:
    def __init__(self, unit: FakeUnit) -> None:
        self.unit = unit

    async def names_by_id(self, user_ids: Iterable[int]) -> dict[int, str]:
        await self.unit.io()
        names = self.unit.store.user_names
        return {user_id: names[user_id] for user_id in set(user_ids) if user_id in names}


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def new_unit(store: InMemoryStore) -> Callable[[], FakeUnit]:
    """Factory for independent request scopes over the same store."""
    return lambda: FakeUnit(store)


@pytest.fixture
def unit(new_unit: Callable[[], FakeUnit]) -> FakeUnit:
    return new_unit()

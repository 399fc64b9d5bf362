from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import ReservationError
from ..domain.intervals import Interval
from ..infrastructure.repositories import SqlAlchemyReservationRepository, SqlAlchemyRoomRepository
from ..schemas import RoomAvailability, RoomRead
from ..usecases import reservations as reservation_usecase
from ..usecases import rooms as room_usecase
from ..utils.time import to_utc_naive
from .errors import http_error

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=List[RoomRead])
async def list_rooms(session: AsyncSession = Depends(get_session)) -> list[RoomRead]:
    room_repo = SqlAlchemyRoomRepository(session)
    try:
        rooms = await room_usecase.list_active_rooms(room_repo)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return [RoomRead.from_db(room=room) for room in rooms]


@router.get("/{room_id}/availability", response_model=RoomAvailability)
async def room_availability(
    room_id: int = Path(..., ge=1),
    start: datetime = Query(..., description="start datetime with timezone (ISO 8601)"),
    end: datetime = Query(..., description="end datetime with timezone (ISO 8601)"),
    session: AsyncSession = Depends(get_session),
) -> RoomAvailability:
    if start.tzinfo is None or end.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start/end must have timezone")
    room_repo = SqlAlchemyRoomRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        interval = Interval(to_utc_naive(start), to_utc_naive(end))
        room = await room_repo.get(room_id)
        if room is None or not room.is_active:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="room not found")
        available = await reservation_usecase.check_availability(res_repo, room_id=room_id, candidate=interval)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return RoomAvailability(room_id=room_id, starts_at=start, ends_at=end, available=available)

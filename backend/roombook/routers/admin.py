from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_session, require_operator
from ..domain.errors import ReservationError
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemyRoomRepository,
    SqlAlchemyUserRepository,
)
from ..schemas import AdminStatsRead, RecentReservationRead, ReservationRead
from ..usecases import stats as stats_usecase
from ..utils.auth import Principal
from ..utils.time import business_tz
from .errors import http_error
from .reservations import cancel_and_audit

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStatsRead)
async def get_stats(
    session: AsyncSession = Depends(get_session),
    _: Principal = Depends(require_operator),
) -> AdminStatsRead:
    room_repo = SqlAlchemyRoomRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        result = await stats_usecase.stats(room_repo, res_repo, tz=business_tz())
    except ReservationError as exc:
        raise http_error(exc) from exc
    return AdminStatsRead.from_stats(result)


@router.get("/reservations/recent", response_model=List[RecentReservationRead])
async def list_recent_reservations(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    _: Principal = Depends(require_operator),
) -> list[RecentReservationRead]:
    room_repo = SqlAlchemyRoomRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    user_repo = SqlAlchemyUserRepository(session)
    try:
        recent = await stats_usecase.recent_reservations(
            res_repo, limit=limit or get_settings().recent_reservations_limit
        )
        room_names = await room_repo.names_by_id(r.room_id for r in recent)
        owner_names = await user_repo.names_by_id(r.user_id for r in recent)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return [
        RecentReservationRead.from_db(
            reservation=r,
            owner_name=owner_names.get(r.user_id),
            room_name=room_names.get(r.room_id),
        )
        for r in recent
    ]


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_any_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_operator),
) -> ReservationRead:
    return await cancel_and_audit(
        session,
        reservation_id=reservation_id,
        principal=principal,
        initiator="operator",
    )

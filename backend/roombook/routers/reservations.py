from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import ReservationError
from ..domain.intervals import Interval
from ..domain.services import effective_status
from ..infrastructure.repositories import SqlAlchemyReservationRepository, SqlAlchemyRoomRepository
from ..schemas import ReservationCreate, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditInitiator, emit_audit_log
from ..utils.auth import Principal
from ..utils.time import to_utc_naive, utc_now_naive
from .errors import http_error

router = APIRouter(prefix="", tags=["reservations"])


def _cancellation_deadline() -> timedelta:
    return timedelta(minutes=get_settings().cancellation_deadline_minutes)


def _audit_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    if payload.starts_at.tzinfo is None or payload.ends_at.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="starts_at/ends_at must have timezone")
    settings = get_settings()
    room_repo = SqlAlchemyRoomRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        interval = Interval(to_utc_naive(payload.starts_at), to_utc_naive(payload.ends_at))
        reservation = await reservation_usecase.book(
            room_repo,
            res_repo,
            room_id=payload.room_id,
            user_id=user_id,
            interval=interval,
            note=payload.note,
            min_duration=timedelta(minutes=settings.min_booking_minutes),
            max_duration=timedelta(minutes=settings.max_booking_minutes),
        )
    except ReservationError as exc:
        raise http_error(exc) from exc

    try:
        emit_audit_log(
            action="reservation.created",
            initiator="user",
            reservation_id=reservation.id,
            room_id=reservation.room_id,
            user_id=reservation.user_id,
            actor_id=user_id,
            status_from=None,
            status_to=reservation.status,
            total_amount=reservation.total_amount,
        )
    except RuntimeError as exc:
        raise _audit_failure() from exc
    return ReservationRead.from_db(reservation=reservation)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    now = utc_now_naive()
    try:
        rows = await reservation_usecase.list_upcoming_reservations(res_repo, user_id=user_id, now=now)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return [ReservationRead.from_db(reservation=res, status=effective_status(res, now)) for res in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_user_reservation(
            res_repo, reservation_id=reservation_id, user_id=user_id
        )
    except ReservationError as exc:
        raise http_error(exc) from exc
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    return ReservationRead.from_db(reservation=reservation, status=effective_status(reservation, utc_now_naive()))


async def cancel_and_audit(
    session: AsyncSession,
    *,
    reservation_id: int,
    principal: Principal,
    initiator: AuditInitiator,
) -> ReservationRead:
    room_repo = SqlAlchemyRoomRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        updated, previous = await reservation_usecase.cancel(
            room_repo,
            res_repo,
            reservation_id=reservation_id,
            actor_id=principal.user_id,
            is_operator=principal.is_operator,
            deadline=_cancellation_deadline(),
        )
    except ReservationError as exc:
        raise http_error(exc) from exc

    try:
        emit_audit_log(
            action="reservation.cancelled",
            initiator=initiator,
            reservation_id=updated.id,
            room_id=updated.room_id,
            user_id=updated.user_id,
            actor_id=principal.user_id,
            status_from=previous,
            status_to=updated.status,
            total_amount=updated.total_amount,
        )
    except RuntimeError as exc:
        raise _audit_failure() from exc
    return ReservationRead.from_db(reservation=updated)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    # Owners go through the owner check even when the token carries the operator flag.
    return await cancel_and_audit(
        session,
        reservation_id=reservation_id,
        principal=Principal(user_id=user_id),
        initiator="user",
    )

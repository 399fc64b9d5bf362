from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .utils.auth import Principal, decode_access_token


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(authorization: str | None = Header(default=None)) -> Principal:
    if authorization is None:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("Bearer token required")
    settings = get_settings()
    try:
        return decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise _unauthorized("invalid token") from exc


async def get_current_user_id(principal: Principal = Depends(get_current_principal)) -> int:
    return principal.user_id


async def require_operator(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_operator:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="operator access required")
    return principal

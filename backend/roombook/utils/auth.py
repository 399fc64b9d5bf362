from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


@dataclass(frozen=True)
class Principal:
    user_id: int
    is_operator: bool = False


def create_access_token(
    *,
    user_id: int,
    secret: str,
    is_operator: bool = False,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {"sub": str(user_id), "op": is_operator, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> Principal:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if sub is None:
        raise ValueError("token missing sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not an integer") from exc
    return Principal(user_id=user_id, is_operator=payload.get("op") is True)

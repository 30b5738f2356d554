import jwt
from datetime import datetime, timedelta, timezone
from app.core.config import settings

ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"
RESET = "reset"


def _encode(data: dict, expires_delta: timedelta, secret: str) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def _claims(user, token_type: str) -> dict:
    return {"sub": str(user.id), "type": token_type, "ver": user.token_version, "role": user.role}


def create_access_token(user, expires_delta: timedelta | None = None) -> str:
    expires_delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(_claims(user, ACCESS), expires_delta, settings.SECRET_KEY)


def create_refresh_token(user, expires_delta: timedelta | None = None) -> str:
    expires_delta = expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    # Signed with a different secret so access/refresh tokens can't be swapped
    return _encode(_claims(user, REFRESH), expires_delta, settings.REFRESH_SECRET_KEY)


def create_reset_token(user, expires_delta: timedelta | None = None) -> str:
    expires_delta = expires_delta or timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    return _encode(_claims(user, RESET), expires_delta, settings.SECRET_KEY)


def decode_token(token: str, expected_type: str | None = None) -> dict | None:
    """Decode with whichever secret signed the token; None if expired or invalid."""
    for secret in [settings.SECRET_KEY, settings.REFRESH_SECRET_KEY]:
        try:
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            continue
        if expected_type and payload.get("type") != expected_type:
            return None
        return payload
    return None

from typing import Iterable
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.jwt import ACCESS, RESET, decode_token
from app.core.logger import logger
from app.modules.auth.model import User

# auto_error=False: a missing header yields None and is answered with 401 below
bearer_scheme = HTTPBearer(auto_error=False)


def _user_from_token(
    credentials: HTTPAuthorizationCredentials | None,
    db: Session,
    token_type: str,
    invalid_detail: str,
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    payload = decode_token(credentials.credentials, expected_type=token_type)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=invalid_detail)

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    if payload.get("ver") != user.token_version:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=invalid_detail)
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    return _user_from_token(credentials, db, ACCESS, "Invalid or expired access token")


def get_reset_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    return _user_from_token(credentials, db, RESET, "Invalid or expired reset token")


def authorize(roles: Iterable[str]):
    """Gate a route on the caller's role. Runs before any body validation."""
    allowed = frozenset(roles)

    def role_gate(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(
                f"[Auth] User {current_user.id} with role '{current_user.role}' "
                f"denied; allowed={sorted(allowed)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied for role '{current_user.role}'",
            )
        return current_user

    return role_gate

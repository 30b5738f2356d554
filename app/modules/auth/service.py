"""
auth/service.py

Business logic behind the auth routes. Handlers in api.py only see requests
that already passed the role gate and the field checks.

OTP lifecycle:
  signup / send-otp / forgot-password
    → issue_otp(): fresh 6-digit code, stored bcrypt-hashed with an expiry
    → dispatch_otp_email(): Celery if Redis is up, else sent inline
  verify-otp
    → code checked against hash + expiry, wrong guesses counted
    → on success: OTP cleared, account marked verified, reset token issued
  reset-password (Bearer reset token)
    → new password set, token_version bumped so the reset token is spent
"""

from datetime import datetime, timedelta, timezone
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from app.core import jwt as tokens
from app.core.config import settings
from app.core.logger import logger
from app.core.security import generate_otp, hash_password, verify_password
from app.modules.auth.model import User, ROLE_ADMIN, ROLE_LADDER
from app.modules.auth.schema import LoginRequest, SignupRequest, TokenResponse


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def get_user_by_email(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No account found for this email")
    return user


def issue_token_pair(user: User) -> dict:
    return TokenResponse(
        access_token=tokens.create_access_token(user),
        refresh_token=tokens.create_refresh_token(user),
    ).model_dump()


# ================================================================
# LOGIN / SIGNUP
# ================================================================

def authenticate(db: Session, data: LoginRequest) -> User:
    user = db.query(User).filter(User.username == data.username).first()

    if not user or not verify_password(data.password, user.hashed_password):
        logger.info(f"[Auth] Failed login for username '{data.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive. Contact support.",
        )
    if not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email not verified. Request a new code via /send-otp.",
        )
    return user


def _registration_conflict(db: Session, data: SignupRequest) -> str | None:
    if db.query(User).filter(User.username == data.username).first():
        return "Username already taken"
    if db.query(User).filter(User.email == data.email).first():
        return "Email already registered"
    return None


def register_user(db: Session, data: SignupRequest) -> User:
    conflict = _registration_conflict(db, data)
    if conflict:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=conflict)

    user = User(
        username=data.username,
        email=data.email,
        hashed_password=hash_password(data.password),
        role=data.role,
        is_active=True,
        is_verified=False,
        token_version=0,
        otp_attempts=0,
    )
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        # A concurrent signup took the username or email after the lookup above
        db.rollback()
        logger.warning(f"[Auth] Signup for '{data.username}' hit a unique constraint: {e.orig}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already registered",
        )

    logger.info(f"[Auth] New user registered: {user.username} <{user.email}> (role={user.role})")
    issue_otp(db, user, purpose="verify")
    return user


# ================================================================
# TOKENS
# ================================================================

def _user_for_payload(db: Session, payload: dict | None, detail: str) -> User:
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    if payload.get("ver") != user.token_version:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
    return user


def refresh_tokens(db: Session, token: str) -> dict:
    payload = tokens.decode_token(token, expected_type=tokens.REFRESH)
    user = _user_for_payload(db, payload, "Refresh token is invalid or expired")
    return issue_token_pair(user)


def verify_access_token(db: Session, token: str) -> User:
    payload = tokens.decode_token(token, expected_type=tokens.ACCESS)
    return _user_for_payload(db, payload, "Token is invalid or expired")


# ================================================================
# OTP
# ================================================================

def issue_otp(db: Session, user: User, purpose: str) -> None:
    otp = generate_otp()
    user.otp_hash = hash_password(otp)
    user.otp_expires_at = _now() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
    user.otp_attempts = 0
    db.commit()

    logger.info(f"[OTP] Issued {purpose} OTP for user {user.id}, expires {user.otp_expires_at.isoformat()}")
    _send_otp(user.email, otp, purpose)


def _send_otp(email: str, otp: str, purpose: str) -> None:
    try:
        from app.workers.celery_worker import dispatch_otp_email
        dispatch_otp_email(email, otp, purpose)
    except Exception as e:
        logger.error(f"[OTP] Email dispatch failed for {email}: {e}")


def _clear_otp(user: User) -> None:
    user.otp_hash = None
    user.otp_expires_at = None
    user.otp_attempts = 0


def verify_otp(db: Session, email: str, otp: str) -> User:
    user = get_user_by_email(db, email)

    if not user.otp_hash or not user.otp_expires_at:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No pending OTP. Request a new one.")

    if _as_utc(user.otp_expires_at) < _now():
        _clear_otp(user)
        db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OTP has expired. Request a new one.")

    if not verify_password(otp, user.otp_hash):
        user.otp_attempts += 1
        if user.otp_attempts >= settings.OTP_MAX_ATTEMPTS:
            logger.warning(f"[OTP] User {user.id} hit {user.otp_attempts} wrong attempts; OTP invalidated.")
            _clear_otp(user)
        db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")

    _clear_otp(user)
    user.is_verified = True
    db.commit()
    db.refresh(user)
    logger.info(f"[OTP] User {user.id} verified OTP")
    return user


# ================================================================
# PASSWORDS
# ================================================================

def _set_password(db: Session, user: User, new_password: str) -> None:
    user.hashed_password = hash_password(new_password)
    user.token_version += 1
    db.commit()
    db.refresh(user)


def change_password(db: Session, user: User, old_password: str, new_password: str) -> None:
    if not verify_password(old_password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Old password is incorrect")
    _set_password(db, user, new_password)
    logger.info(f"[Auth] User {user.id} changed password; existing tokens revoked.")


def reset_password(db: Session, user: User, new_password: str) -> None:
    _set_password(db, user, new_password)
    logger.info(f"[Auth] User {user.id} reset password via OTP.")


# ================================================================
# ROLES
# ================================================================

def _get_user_by_path_id(db: Session, user_id: str) -> User:
    # The router does not validate :id, any non-integer simply matches no user
    try:
        pk = int(user_id)
    except (TypeError, ValueError):
        pk = None
    user = db.query(User).filter(User.id == pk).first() if pk is not None else None
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def change_role(db: Session, acting_user: User, user_id: str, step: int) -> User:
    """Move a user `step` rungs along ROLE_LADDER (+1 promote, -1 demote)."""
    user = _get_user_by_path_id(db, user_id)

    if step < 0 and user.id == acting_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot demote themselves")

    rung = ROLE_LADDER.index(user.role) if user.role in ROLE_LADDER else 0
    target = rung + step
    if target >= len(ROLE_LADDER):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"User is already {ROLE_ADMIN}")
    if target < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"User is already {ROLE_LADDER[0]}")

    old_role = user.role
    user.role = ROLE_LADDER[target]
    db.commit()
    db.refresh(user)

    logger.info(f"[Auth] Admin {acting_user.id} changed user {user.id} role {old_role} → {user.role}")
    return user

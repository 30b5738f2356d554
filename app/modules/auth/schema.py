from pydantic import BaseModel, ConfigDict
from datetime import datetime


# ---------------- Request Schemas ----------------
# Field constraints live in the route checks (app/routes/auth.py); these
# models only carry the sanitized values into the handlers.

class _RequestBody(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")


class LoginRequest(_RequestBody):
    username: str
    password: str


class SignupRequest(_RequestBody):
    username: str
    password: str
    email: str
    role: str


class TokenRequest(_RequestBody):
    token: str


class EmailRequest(_RequestBody):
    email: str


class VerifyOtpRequest(_RequestBody):
    otp: str
    email: str


class ChangePasswordRequest(_RequestBody):
    old_password: str
    new_password: str


class ResetPasswordRequest(_RequestBody):
    new_password: str


# ---------------- Response Schemas ----------------
class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    is_verified: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

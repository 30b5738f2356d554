from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.modules.auth.model import User, ROLE_ADMIN
from app.modules.auth.schema import (
    LoginRequest, SignupRequest, TokenRequest, EmailRequest,
    VerifyOtpRequest, ChangePasswordRequest, ResetPasswordRequest, UserResponse,
)
from app.modules.auth import service
from app.core.jwt import create_reset_token
from app.core.dependencies import authorize, get_current_user, get_reset_user
from app.core.response import success
from app.core.validation import validated_body

from app.routes.auth import AUTH_ROUTES, AUTH_PREFIX, AUTH_TAG

router = APIRouter(prefix=AUTH_PREFIX, tags=[AUTH_TAG])

_CLEAN_RESPONSES = {
    422: {"description": "Field validation failed"},
    500: {"description": "excluded"},
}

_GATED_RESPONSES = {
    401: {"description": "Missing or invalid access token"},
    403: {"description": "Role not allowed"},
}


def _body(name: str, schema):
    """Validated request fields for route `name`, as `schema`."""
    return Depends(validated_body(list(AUTH_ROUTES[name].checks), schema))


def auth_route(name: str, schema=None, status_code: int = 200, responses: dict | None = None):
    """
    Mount `endpoint` at the method + path declared in AUTH_ROUTES[name].

    The role gate goes in the route-level dependencies, which FastAPI resolves
    before the endpoint's own parameters, so authorization always runs ahead
    of the field checks.
    """
    route = AUTH_ROUTES[name]

    def decorator(endpoint):
        dependencies = [Depends(authorize(route.roles))] if route.roles else []
        all_responses = {**(responses or {}), **_CLEAN_RESPONSES}
        if route.roles:
            all_responses.update(_GATED_RESPONSES)

        openapi_extra = None
        if schema is not None:
            openapi_extra = {
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": schema.model_json_schema()}},
                }
            }

        router.add_api_route(
            route.path,
            endpoint,
            methods=[route.method],
            name=name,
            status_code=status_code,
            dependencies=dependencies,
            responses=all_responses,
            openapi_extra=openapi_extra,
        )
        return endpoint

    return decorator


# ================================================================
# LOGIN / SIGNUP
# ================================================================

@auth_route("login", LoginRequest, responses={
    200: {"description": "Login successful"},
    401: {"description": "Invalid credentials"},
    403: {"description": "Account inactive or email not verified"},
})
def login(data: LoginRequest = _body("login", LoginRequest), db: Session = Depends(get_db)):
    user = service.authenticate(db, data)
    return success(
        data={**service.issue_token_pair(user), "user": _serialize_user(user)},
        message="Login successful",
    )


@auth_route("signup", SignupRequest, status_code=201, responses={
    201: {"description": "User registered, verification OTP sent"},
    400: {"description": "Username or email already registered"},
})
def signup(data: SignupRequest = _body("signup", SignupRequest), db: Session = Depends(get_db)):
    user = service.register_user(db, data)
    return success(
        data=_serialize_user(user),
        message="User registered successfully. Check your email for the verification code.",
        status_code=201,
    )


# ================================================================
# TOKENS
# ================================================================

@auth_route("refresh_token", TokenRequest, responses={
    200: {"description": "Token refreshed successfully"},
    401: {"description": "Invalid or expired refresh token"},
})
def refresh_token(data: TokenRequest = _body("refresh_token", TokenRequest), db: Session = Depends(get_db)):
    return success(data=service.refresh_tokens(db, data.token), message="Token refreshed successfully")


@auth_route("verify_token", TokenRequest, responses={
    200: {"description": "Token is valid"},
    401: {"description": "Invalid or expired access token"},
})
def verify_token(data: TokenRequest = _body("verify_token", TokenRequest), db: Session = Depends(get_db)):
    user = service.verify_access_token(db, data.token)
    return success(data={"valid": True, "user": _serialize_user(user)}, message="Token is valid")


# ================================================================
# OTP
# ================================================================

@auth_route("resend_otp", EmailRequest, responses={
    200: {"description": "OTP sent"},
    404: {"description": "No account for this email"},
})
def resend_otp(data: EmailRequest = _body("resend_otp", EmailRequest), db: Session = Depends(get_db)):
    user = service.get_user_by_email(db, data.email)
    service.issue_otp(db, user, purpose="verify")
    return success(data={"email": user.email}, message="OTP sent successfully")


@auth_route("verify_otp", VerifyOtpRequest, responses={
    200: {"description": "OTP verified, reset token issued"},
    400: {"description": "OTP invalid, expired, or not requested"},
    404: {"description": "No account for this email"},
})
def verify_otp(data: VerifyOtpRequest = _body("verify_otp", VerifyOtpRequest), db: Session = Depends(get_db)):
    user = service.verify_otp(db, data.email, data.otp)
    return success(
        data={"reset_token": create_reset_token(user), "token_type": "bearer", "user": _serialize_user(user)},
        message="OTP verified successfully",
    )


# ================================================================
# PASSWORDS
# ================================================================

@auth_route("forgot_password", EmailRequest, responses={
    200: {"description": "Password reset OTP sent"},
    404: {"description": "No account for this email"},
})
def forgot_password(data: EmailRequest = _body("forgot_password", EmailRequest), db: Session = Depends(get_db)):
    user = service.get_user_by_email(db, data.email)
    service.issue_otp(db, user, purpose="reset")
    return success(data={"email": user.email}, message="Password reset OTP sent successfully")


@auth_route("change_password", ChangePasswordRequest, responses={
    200: {"description": "Password changed"},
    400: {"description": "Old password is incorrect"},
})
def change_password(
    data: ChangePasswordRequest = _body("change_password", ChangePasswordRequest),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service.change_password(db, current_user, data.old_password, data.new_password)
    return success(data=None, message="Password changed successfully. Please log in again.")


@auth_route("reset_password", ResetPasswordRequest, responses={
    200: {"description": "Password reset"},
    401: {"description": "Missing, invalid or already used reset token"},
})
def reset_password(
    data: ResetPasswordRequest = _body("reset_password", ResetPasswordRequest),
    db: Session = Depends(get_db),
    user: User = Depends(get_reset_user),
):
    service.reset_password(db, user, data.new_password)
    return success(data=None, message="Password reset successfully")


# ================================================================
# ROLES (Admin only)
# ================================================================

@auth_route("promote", responses={
    200: {"description": "User promoted"},
    400: {"description": f"User is already {ROLE_ADMIN}"},
    404: {"description": "User not found"},
})
def promote(id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user = service.change_role(db, current_user, id, step=1)
    return success(data=_serialize_user(user), message=f"User promoted to {user.role}")


@auth_route("demote", responses={
    200: {"description": "User demoted"},
    400: {"description": "User is already at the lowest role, or is the acting admin"},
    404: {"description": "User not found"},
})
def demote(id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user = service.change_role(db, current_user, id, step=-1)
    return success(data=_serialize_user(user), message=f"User demoted to {user.role}")


# ================================================================
# SERIALIZER
# ================================================================

def _serialize_user(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")

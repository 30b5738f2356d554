from typing import NamedTuple, Optional
from app.core.validation import FieldCheck, check
from app.modules.auth.model import ROLE_ADMIN, ROLE_BUYER, ROLE_SELLER


class AuthRoute(NamedTuple):
    method: str
    path: str
    checks: tuple[FieldCheck, ...] = ()
    roles: Optional[frozenset[str]] = None


def _email_checks(empty_message: str, invalid_message: str) -> tuple[FieldCheck, ...]:
    return (
        check("email").not_empty().with_message(empty_message),
        check("email").normalize_email().is_email().with_message(invalid_message),
    )


AUTH_ROUTES: dict[str, AuthRoute] = {
    "login": AuthRoute(
        "POST", "/login",
        checks=(
            check("username").not_empty().with_message("username is required"),
            check("password").not_empty().with_message("password is required"),
        ),
    ),
    "signup": AuthRoute(
        "POST", "/signup",
        checks=(
            check("username").is_length(min=3).with_message("minimum username length is 3"),
            check("username").is_length(max=100).with_message("maximum username length is 100"),
            check("password").is_length(min=6).with_message("minimum password length is 6"),
            *_email_checks("email is required", "email is invalid"),
            check("role").is_in([ROLE_SELLER, ROLE_BUYER]).with_message("Role must be either Seller or Buyer"),
        ),
    ),
    "refresh_token": AuthRoute(
        "POST", "/refresh-token",
        checks=(check("token").not_empty().with_message("token is required"),),
    ),
    "verify_token": AuthRoute(
        "POST", "/verify-token",
        checks=(check("token").not_empty().with_message("token is required"),),
    ),
    "resend_otp": AuthRoute(
        "POST", "/send-otp",
        checks=_email_checks("email cant be empty", "invalid email"),
    ),
    "verify_otp": AuthRoute(
        "PATCH", "/verify-otp",
        checks=(
            check("otp").not_empty().with_message("otp is required"),
            *_email_checks("email is required", "email is invalid"),
        ),
    ),
    "forgot_password": AuthRoute(
        "PATCH", "/forgot-password",
        checks=_email_checks("email is required", "email is invalid"),
    ),
    "change_password": AuthRoute(
        "PATCH", "/change-password",
        checks=(
            # Declared twice on purpose: a missing old_password reports two errors
            check("old_password").not_empty().with_message("old_password is required"),
            check("old_password").not_empty().with_message("old_password is required"),
            check("new_password").is_length(min=6).with_message("minimum password length is 6"),
        ),
        roles=frozenset({ROLE_SELLER, ROLE_ADMIN, ROLE_BUYER}),
    ),
    "reset_password": AuthRoute(
        "PATCH", "/reset-password",
        checks=(check("new_password").is_length(min=6).with_message("minimum password length is 6"),),
    ),
    "promote": AuthRoute("PATCH", "/promote/{id}", roles=frozenset({ROLE_ADMIN})),
    "demote": AuthRoute("PATCH", "/demote/{id}", roles=frozenset({ROLE_ADMIN})),
}

AUTH_PREFIX = "/api/auth"
AUTH_TAG    = "Auth"


# ────────────────────────────────────────────────────────────────
# HELPER FUNCTIONS
# ────────────────────────────────────────────────────────────────

def get_auth_endpoint(action: str, **path_params) -> str:
    """Get full endpoint path for an auth action"""
    return AUTH_PREFIX + AUTH_ROUTES[action].path.format(**path_params)

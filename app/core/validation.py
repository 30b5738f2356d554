"""
Declarative request-field validation.

Each route declares an ordered list of checks built with `check(field)`:

    check("email").normalize_email().is_email().with_message("email is invalid")

A check is a chain of steps. Validators assert a shape constraint and record
an error when they fail; sanitizers rewrite the value in place so later
steps (and the handler) see the transformed value.

Every check runs, every step of every check runs, and errors accumulate in
declaration order. Nothing short-circuits inside the chain; the dependency
raises FieldValidationError once all checks are done.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from app.core.logger import logger

DEFAULT_MESSAGE = "Invalid value"

GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}
OUTLOOK_DOMAINS = {
    "outlook.com", "outlook.de", "outlook.fr", "hotmail.com", "hotmail.co.uk",
    "hotmail.de", "hotmail.fr", "live.com", "live.co.uk", "live.fr", "msn.com", "passport.com",
}
YAHOO_DOMAINS = {
    "yahoo.com", "yahoo.co.uk", "yahoo.de", "yahoo.fr", "yahoo.ca", "ymail.com", "rocketmail.com",
}
ICLOUD_DOMAINS = {"icloud.com", "me.com"}


class FieldValidationError(Exception):
    """Raised after the check chain when at least one rule failed."""

    def __init__(self, errors: list[dict]):
        self.errors = errors
        super().__init__(errors[0]["message"] if errors else DEFAULT_MESSAGE)


@dataclass
class _Step:
    name: str
    fn: Callable[[str], Any]
    sanitizer: bool = False
    message: str = DEFAULT_MESSAGE


# ================================================================
# VALUE HELPERS
# ================================================================

def to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def normalize_email(value: str) -> str:
    """
    Lowercase the address and drop provider subaddresses: `+tag` for gmail,
    outlook and icloud, `-tag` for yahoo. Gmail also loses dots and
    googlemail.com becomes gmail.com.
    """
    if value.count("@") != 1:
        return value
    local, domain = value.split("@")
    if not local or not domain:
        return value

    local, domain = local.lower(), domain.lower()
    if domain in GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    elif domain in OUTLOOK_DOMAINS or domain in ICLOUD_DOMAINS:
        local = local.split("+", 1)[0]
    elif domain in YAHOO_DOMAINS:
        local = local.split("-", 1)[0]
    return f"{local}@{domain}"


def is_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


# ================================================================
# CHECK BUILDER
# ================================================================

class FieldCheck:
    def __init__(self, field: str):
        self.field = field
        self.steps: list[_Step] = []

    def __repr__(self):
        return f"<FieldCheck {self.field}: {[s.name for s in self.steps]}>"

    # ── validators ────────────────────────────────────────────────
    def not_empty(self) -> "FieldCheck":
        self.steps.append(_Step("not_empty", lambda v: v != ""))
        return self

    def is_length(self, min: Optional[int] = None, max: Optional[int] = None) -> "FieldCheck":
        def _within(v: str) -> bool:
            if min is not None and len(v) < min:
                return False
            if max is not None and len(v) > max:
                return False
            return True

        self.steps.append(_Step(f"is_length(min={min}, max={max})", _within))
        return self

    def is_in(self, values: Iterable[str]) -> "FieldCheck":
        allowed = tuple(to_string(v) for v in values)
        self.steps.append(_Step(f"is_in{allowed}", lambda v: v in allowed))
        return self

    def is_email(self) -> "FieldCheck":
        self.steps.append(_Step("is_email", is_email))
        return self

    # ── sanitizers ────────────────────────────────────────────────
    def normalize_email(self) -> "FieldCheck":
        self.steps.append(_Step("normalize_email", normalize_email, sanitizer=True))
        return self

    def with_message(self, message: str) -> "FieldCheck":
        """Set the message of the most recently added validator."""
        for step in reversed(self.steps):
            if not step.sanitizer:
                step.message = message
                return self
        raise ValueError(f"with_message() on '{self.field}' has no validator to attach to")

    # ── execution ─────────────────────────────────────────────────
    def run(self, data: dict) -> list[dict]:
        errors = []
        value = to_string(data.get(self.field))
        touched = False

        for step in self.steps:
            if step.sanitizer:
                value = step.fn(value)
                touched = True
            elif not step.fn(value):
                errors.append({"field": self.field, "message": step.message, "value": value})

        if touched:
            data[self.field] = value
        return errors


def check(field: str) -> FieldCheck:
    return FieldCheck(field)


def run_checks(checks: Iterable[FieldCheck], data: dict) -> list[dict]:
    """Run every check against `data` (sanitizing it in place) and return all errors."""
    errors = []
    for field_check in checks:
        errors.extend(field_check.run(data))
    return errors


# ================================================================
# FASTAPI DEPENDENCY
# ================================================================

async def read_json_body(request: Request) -> dict:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body must be a JSON object")
    return body


def validated_body(checks: list[FieldCheck], schema: type[BaseModel]):
    """
    Build a dependency that runs `checks` over the request fields and returns
    the sanitized fields as `schema`. Body fields win over query fields.
    """

    async def dependency(request: Request) -> BaseModel:
        body = await read_json_body(request)
        data = {**dict(request.query_params), **body}

        errors = run_checks(checks, data)
        if errors:
            logger.info(
                f"[Validation] {request.method} {request.url.path} rejected: "
                f"{[e['field'] + ': ' + e['message'] for e in errors]}"
            )
            raise FieldValidationError(errors)

        try:
            return schema.model_validate(data)
        except ValidationError as e:
            # Passed the checks but the value is the wrong shape, e.g. an object for a string
            raise FieldValidationError([
                {"field": ".".join(str(l) for l in err["loc"]), "message": DEFAULT_MESSAGE, "value": err.get("input")}
                for err in e.errors()
            ])

    return dependency

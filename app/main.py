from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.modules.auth.api import router as auth_router
from app.core.config import settings
from app.core.response import (
    http_exception_handler, validation_exception_handler, field_validation_exception_handler,
)
from app.core.validation import FieldValidationError
from fastapi.middleware.cors import CORSMiddleware
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
)

# ── CORS ──────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register global exception handlers ────────────────────────────
# These ensure 401, 403, 404, 422 etc all return the unified response format
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(FieldValidationError, field_validation_exception_handler)

# ── Routers ───────────────────────────────────────────────────────
app.include_router(auth_router)


@app.get("/", tags=["Health"])
def root():
    return {"status": 200, "success": True, "message": "API is running", "data": None}


@app.get("/health", tags=["Health"])
def health():
    return {"status": 200, "success": True, "message": "OK", "data": None}

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings
from .core.logging import configure_logging
from .api.routes_runs import router as runs_router
from .api.routes_tasks import router as tasks_router
from .api.routes_user import router as user_router
from .api.routes_free_tools import router as free_tools_router
from .api.routes_free_audit import router as free_audit_router
from .api.routes_webhooks import router as webhooks_router
from .api.routes_codes import router as codes_router
from .api.routes_cron import router as cron_router

configure_logging()
settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(title="Boost API")

# CORS:
# - The session cookie needs credentials, so "*" is never an option.
# - In prod, FRONTEND_ORIGIN is required.
# - In non-prod, APP_URL is the fallback origin.
if settings.ENV.lower() == "prod" and not settings.FRONTEND_ORIGIN:
    raise RuntimeError(
        "FRONTEND_ORIGIN must be set in production – refusing to start without a CORS origin."
    )

if settings.FRONTEND_ORIGIN:
    origins = [
        o.strip()
        for o in settings.FRONTEND_ORIGIN.split(",")
        if o.strip()
    ]
else:
    origins = [settings.APP_URL]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Every error body is `{"error": ...}`, plus any extra fields the route set."""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def first_validation_message(exc: RequestValidationError) -> str:
    """Human-readable message for the first failing field."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    message = str(first.get("msg") or "Invalid request")
    # pydantic prefixes messages raised from validators
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    if first.get("type") in ("value_error", "assertion_error") or not field:
        return message
    return f"{field}: {message}"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": first_validation_message(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        extra={"step": "http"},
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(runs_router, prefix=settings.API_PREFIX)
app.include_router(tasks_router, prefix=settings.API_PREFIX)
app.include_router(user_router, prefix=settings.API_PREFIX)
app.include_router(free_tools_router, prefix=settings.API_PREFIX)
app.include_router(free_audit_router, prefix=settings.API_PREFIX)
app.include_router(webhooks_router, prefix=settings.API_PREFIX)
app.include_router(codes_router, prefix=settings.API_PREFIX)
app.include_router(cron_router, prefix=settings.API_PREFIX)

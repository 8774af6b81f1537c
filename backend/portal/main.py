from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.api.routes import (
    activity,
    announcements,
    assignments,
    auth,
    health,
    lectures,
    leaves,
    notifications,
    settings as settings_routes,
    students,
    subjects,
    teachers,
)
from portal.core.config import get_settings
from portal.core.exceptions import AppError
from portal.core.middleware import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from portal.db.bootstrap import ensure_runtime_schema_compatibility

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(level=settings.log_level.upper())
    ensure_runtime_schema_compatibility()
    logger.info("%s started", settings.project_name)
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "details": exc.details},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = None if isinstance(exc.detail, str) else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message, "details": details},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Request validation failed",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


def install_error_handlers(application: FastAPI) -> None:
    """Render every failure as the {success, message, details} envelope."""
    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(StarletteHTTPException, http_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)


# (router, mount path below api_prefix)
ROUTERS = (
    (health.router, ""),
    (auth.router, "/auth"),
    (teachers.router, "/teachers"),
    (students.router, "/students"),
    (subjects.router, "/subjects"),
    (lectures.router, ""),
    (leaves.router, ""),
    (notifications.router, ""),
    (settings_routes.router, ""),
    (activity.router, ""),
    (announcements.router, "/announcements"),
    (assignments.router, "/assignments"),
)

app = FastAPI(title=settings.project_name, lifespan=lifespan)
install_error_handlers(app)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router, path in ROUTERS:
    app.include_router(router, prefix=f"{settings.api_prefix}{path}")

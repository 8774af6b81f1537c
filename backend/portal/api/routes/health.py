from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from portal.core.config import get_settings
from portal.db.bootstrap import missing_schema_items
from portal.db.session import engine
from portal.services.email import smtp_configured

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _database_check() -> dict:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = missing_schema_items(connection)
    except SQLAlchemyError as exc:
        logger.warning("Readiness check could not reach the database: %s", exc)
        return {"ok": False, "schema_ok": False, "missing_tables": [], "missing_columns": {}, "error": str(exc)}
    return {
        "ok": True,
        "schema_ok": not missing_tables and not missing_columns,
        "missing_tables": missing_tables,
        "missing_columns": missing_columns,
        "error": None,
    }


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    """Ready once the database answers and carries every column the portal reads."""
    database = _database_check()
    ready = database["ok"] and database["schema_ok"]
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now(),
        "database": database,
        # Mail is best-effort, so an unconfigured relay does not block readiness.
        "smtp": {"configured": smtp_configured(settings), "host": settings.smtp_host, "port": settings.smtp_port},
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)

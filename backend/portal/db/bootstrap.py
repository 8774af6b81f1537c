from __future__ import annotations

import logging

from sqlalchemy import inspect, text

from portal.db.base import Base
from portal.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role", "department", "is_acting_hod"},
    "lectures": {"id", "day_of_week", "time_slot", "start_time", "scheduled_teacher_id", "status"},
    "leave_requests": {
        "id",
        "teacher_id",
        "start_date",
        "end_date",
        "affected_lectures",
        "leave_type",
        "delegate_responsibilities",
        "status",
    },
    "substitute_assignments": {"id", "lecture_id", "lecture_date", "substitute_teacher_id", "status"},
    "notifications": {"id", "user_id", "notification_type", "priority", "is_read"},
    "settings": {"key", "value"},
    "announcements": {"id", "created_by_id", "title", "message", "department", "is_pinned", "expires_at"},
    "assignments": {"id", "teacher_id", "subject", "class_year", "title", "max_marks"},
    "submissions": {"id", "assignment_id", "student_id", "marks", "status"},
}

# Columns introduced after the first release of their table.
LEAVE_REQUEST_PATCHES: dict[str, str] = {
    "leave_type": "VARCHAR(7) NOT NULL DEFAULT 'casual'",
    "is_hod_request": "BOOLEAN NOT NULL DEFAULT 0",
    "delegate_responsibilities": "TEXT",
}

USER_PATCHES: dict[str, str] = {
    "is_acting_hod": "BOOLEAN NOT NULL DEFAULT 0",
}

COLUMN_PATCHES: dict[str, dict[str, str]] = {
    "users": USER_PATCHES,
    "leave_requests": LEAVE_REQUEST_PATCHES,
}


def _ensure_patched_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        for table_name, patches in COLUMN_PATCHES.items():
            if table_name not in table_names:
                continue
            column_names = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name, ddl in patches.items():
                if column_name in column_names:
                    continue
                if connection.dialect.name == "postgresql" and ddl.startswith("BOOLEAN"):
                    ddl = "BOOLEAN NOT NULL DEFAULT FALSE"
                connection.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {ddl}"))
                logger.info("Added %s.%s", table_name, column_name)


def missing_schema_items(connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = missing_schema_items(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flattened = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flattened)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _ensure_patched_columns()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc

"""create users and lectures

Revision ID: 20261018_0001
Revises: None
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "hod", "teacher", name="user_role")
day_of_week_enum = sa.Enum(
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", name="day_of_week"
)
lecture_status_enum = sa.Enum("scheduled", "cancelled", name="lecture_status")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("designation", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_department", "users", ["department"])

    op.create_table(
        "lectures",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("class_year", sa.String(length=50), nullable=False),
        sa.Column("division", sa.String(length=20), nullable=True),
        sa.Column("day_of_week", day_of_week_enum, nullable=False),
        sa.Column("time_slot", sa.String(length=50), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=True),
        sa.Column("end_time", sa.String(length=5), nullable=True),
        sa.Column("room", sa.String(length=100), nullable=True),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("scheduled_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("status", lecture_status_enum, nullable=False, server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_lectures_scheduled_teacher_id", "lectures", ["scheduled_teacher_id"])


def downgrade() -> None:
    op.drop_index("ix_lectures_scheduled_teacher_id", table_name="lectures")
    op.drop_table("lectures")
    op.drop_index("ix_users_department", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    lecture_status_enum.drop(op.get_bind(), checkfirst=True)
    day_of_week_enum.drop(op.get_bind(), checkfirst=True)
    user_role_enum.drop(op.get_bind(), checkfirst=True)

"""create leave workflow tables

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


leave_reason_enum = sa.Enum("Medical", "Personal", "Emergency", "Official", "Other", name="leave_reason")
leave_type_enum = sa.Enum("casual", "medical", "earned", "duty", "unpaid", "custom", name="leave_type")
leave_status_enum = sa.Enum("pending", "approved", "rejected", name="leave_status")
assignment_status_enum = sa.Enum("assigned", "cancelled", name="substitute_assignment_status")
notification_type_enum = sa.Enum(
    "leave_request", "leave_status", "substitution", "system", name="notification_type"
)
notification_priority_enum = sa.Enum("normal", "high", name="notification_priority")


def upgrade() -> None:
    op.create_table(
        "leave_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("reason", leave_reason_enum, nullable=False),
        sa.Column("leave_type", leave_type_enum, nullable=False, server_default="casual"),
        sa.Column("affected_lectures", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_hod_request", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delegate_responsibilities", sa.Text(), nullable=True),
        sa.Column("status", leave_status_enum, nullable=False, server_default="pending"),
        sa.Column("review_comments", sa.Text(), nullable=True),
        sa.Column("reviewed_by_id", sa.String(length=36), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_leave_requests_teacher_id", "leave_requests", ["teacher_id"])
    op.create_index("ix_leave_requests_status", "leave_requests", ["status"])

    op.create_table(
        "substitute_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("leave_request_id", sa.String(length=36), nullable=False),
        sa.Column("lecture_id", sa.String(length=36), nullable=False),
        sa.Column("lecture_date", sa.Date(), nullable=False),
        sa.Column("original_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("substitute_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("assigned_by_id", sa.String(length=36), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", assignment_status_enum, nullable=False, server_default="assigned"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_substitute_assignments_leave_request_id", "substitute_assignments", ["leave_request_id"])
    op.create_index("ix_substitute_assignments_lecture_id", "substitute_assignments", ["lecture_id"])
    op.create_index(
        "ix_substitute_assignments_substitute_teacher_id",
        "substitute_assignments",
        ["substitute_teacher_id"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", notification_type_enum, nullable=False, server_default="system"),
        sa.Column("priority", notification_priority_enum, nullable=False, server_default="normal"),
        sa.Column("action_url", sa.String(length=255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_substitute_assignments_substitute_teacher_id", table_name="substitute_assignments")
    op.drop_index("ix_substitute_assignments_lecture_id", table_name="substitute_assignments")
    op.drop_index("ix_substitute_assignments_leave_request_id", table_name="substitute_assignments")
    op.drop_table("substitute_assignments")
    op.drop_index("ix_leave_requests_status", table_name="leave_requests")
    op.drop_index("ix_leave_requests_teacher_id", table_name="leave_requests")
    op.drop_table("leave_requests")
    for enum in (
        notification_priority_enum,
        notification_type_enum,
        assignment_status_enum,
        leave_status_enum,
        leave_type_enum,
        leave_reason_enum,
    ):
        enum.drop(op.get_bind(), checkfirst=True)

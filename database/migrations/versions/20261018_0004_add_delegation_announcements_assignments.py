"""add acting hod delegation, announcements and assignments

Revision ID: 20261018_0004
Revises: 20261018_0003
Create Date: 2026-10-18 00:30:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0004"
down_revision = "20261018_0003"
branch_labels = None
depends_on = None

announcement_priority_enum = sa.Enum("normal", "high", "urgent", name="announcement_priority")
announcement_audience_enum = sa.Enum("all", "teachers", "students", name="announcement_audience")
submission_status_enum = sa.Enum("pending", "graded", name="submission_status")


def upgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(sa.Column("is_acting_hod", sa.Boolean(), nullable=False, server_default=sa.false()))

    op.create_table(
        "announcements",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", announcement_priority_enum, nullable=False, server_default="normal"),
        sa.Column("target_audience", announcement_audience_enum, nullable=False, server_default="all"),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_announcements_created_by_id", "announcements", ["created_by_id"])
    op.create_index("ix_announcements_department", "announcements", ["department"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("class_year", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("max_marks", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_assignments_teacher_id", "assignments", ["teacher_id"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("assignment_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("marks", sa.Integer(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("status", submission_status_enum, nullable=False, server_default="pending"),
    )
    op.create_index("ix_submissions_assignment_id", "submissions", ["assignment_id"])
    op.create_index("ix_submissions_student_id", "submissions", ["student_id"])


def downgrade() -> None:
    op.drop_index("ix_submissions_student_id", table_name="submissions")
    op.drop_index("ix_submissions_assignment_id", table_name="submissions")
    op.drop_table("submissions")
    op.drop_index("ix_assignments_teacher_id", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_announcements_department", table_name="announcements")
    op.drop_index("ix_announcements_created_by_id", table_name="announcements")
    op.drop_table("announcements")
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_column("is_acting_hod")

    bind = op.get_bind()
    submission_status_enum.drop(bind, checkfirst=True)
    announcement_audience_enum.drop(bind, checkfirst=True)
    announcement_priority_enum.drop(bind, checkfirst=True)

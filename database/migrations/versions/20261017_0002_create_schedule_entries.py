"""create schedule entries

Revision ID: 20261017_0002
Revises: 20261017_0001
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261017_0002"
down_revision = "20261017_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "schedule_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("subjects.id"), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("classroom_id", sa.Integer(), sa.ForeignKey("classrooms.id"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("specific_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_schedule_entries_day_of_week"),
        sa.CheckConstraint("start_time < end_time", name="ck_schedule_entries_time_order"),
    )
    op.create_index("ix_schedule_entries_group_id", "schedule_entries", ["group_id"])
    op.create_index("ix_schedule_entries_teacher_id", "schedule_entries", ["teacher_id"])
    op.create_index("ix_schedule_entries_classroom_id", "schedule_entries", ["classroom_id"])
    op.create_index("ix_schedule_entries_day_of_week", "schedule_entries", ["day_of_week"])
    op.create_index(
        "uq_schedule_entries_group_day_start",
        "schedule_entries",
        ["group_id", "day_of_week", "start_time"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_schedule_entries_group_day_start", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_day_of_week", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_classroom_id", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_teacher_id", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_group_id", table_name="schedule_entries")
    op.drop_table("schedule_entries")

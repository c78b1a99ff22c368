"""create reference tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("course_number", sa.Integer(), nullable=True),
    )
    op.create_index("ix_groups_name", "groups", ["name"], unique=True)

    op.create_table(
        "teachers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
    )

    op.create_table(
        "subjects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("credit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("semester_number", sa.Integer(), nullable=True),
    )

    op.create_table(
        "classrooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("building_number", sa.String(length=20), nullable=False),
        sa.Column("room_number", sa.String(length=20), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_classrooms_is_active", "classrooms", ["is_active"])
    op.create_index("ix_classrooms_is_available", "classrooms", ["is_available"])


def downgrade() -> None:
    op.drop_index("ix_classrooms_is_available", table_name="classrooms")
    op.drop_index("ix_classrooms_is_active", table_name="classrooms")
    op.drop_table("classrooms")
    op.drop_table("subjects")
    op.drop_table("teachers")
    op.drop_index("ix_groups_name", table_name="groups")
    op.drop_table("groups")

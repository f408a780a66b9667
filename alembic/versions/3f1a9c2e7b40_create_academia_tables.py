"""create students, professors, subjects and enrollments tables

Revision ID: 3f1a9c2e7b40
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1a9c2e7b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _common_columns() -> list:
    return [
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    ]


def upgrade() -> None:
    """Create the four academia tables."""
    op.create_table(
        "students",
        *_common_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("semester", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("gpa", sa.Float(), nullable=False, server_default="0"),
        sa.Column("max_credits", sa.Integer(), nullable=False, server_default="9"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_students_name", "students", ["name"])
    op.create_index("ix_students_email", "students", ["email"], unique=True)

    op.create_table(
        "professors",
        *_common_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("max_subjects", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_professors_name", "professors", ["name"])
    op.create_index("ix_professors_email", "professors", ["email"], unique=True)

    op.create_table(
        "subjects",
        *_common_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("schedule", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("professor_id", sa.String(length=32), nullable=False),
        sa.Column("prerequisites", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["professor_id"], ["professors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subjects_name", "subjects", ["name"])
    op.create_index("ix_subjects_professor_id", "subjects", ["professor_id"])
    op.create_index("ix_subjects_is_active", "subjects", ["is_active"])

    op.create_table(
        "enrollments",
        *_common_columns(),
        sa.Column("student_id", sa.String(length=32), nullable=False),
        sa.Column("subject_id", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "subject_id", name="uq_enrollment_pair"),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_subject_id", "enrollments", ["subject_id"])


def downgrade() -> None:
    """Drop the academia tables."""
    op.drop_index("ix_enrollments_subject_id", table_name="enrollments")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_table("enrollments")

    op.drop_index("ix_subjects_is_active", table_name="subjects")
    op.drop_index("ix_subjects_professor_id", table_name="subjects")
    op.drop_index("ix_subjects_name", table_name="subjects")
    op.drop_table("subjects")

    op.drop_index("ix_professors_email", table_name="professors")
    op.drop_index("ix_professors_name", table_name="professors")
    op.drop_table("professors")

    op.drop_index("ix_students_email", table_name="students")
    op.drop_index("ix_students_name", table_name="students")
    op.drop_table("students")

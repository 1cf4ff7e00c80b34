# migrations/versions/0001_initial_schema.py
"""eventos, sessões, alunos e presenças

Revision ID: 0001_initial_schema
Revises:
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("venue", sa.String(length=160), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id", name="pk_events"),
    )

    op.create_table(
        "event_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time_in_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("time_in_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("time_out_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("time_out_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("qr_seed", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE",
                                name="fk_event_sessions_event_id_events"),
        sa.PrimaryKeyConstraint("id", name="pk_event_sessions"),
    )
    op.create_index("ix_event_sessions_event_id", "event_sessions", ["event_id"])

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("email", sa.String(length=160), nullable=False),
        sa.Column("ra", sa.String(length=40), nullable=True),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_students"),
        sa.UniqueConstraint("email", name="uq_student_email"),
    )

    op.create_table(
        "attendances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("scan_type", sa.String(length=10), nullable=False),
        sa.Column("scanned_by", sa.String(length=80), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"],
                                name="fk_attendances_student_id_students"),
        sa.ForeignKeyConstraint(["session_id"], ["event_sessions.id"], ondelete="CASCADE",
                                name="fk_attendances_session_id_event_sessions"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE",
                                name="fk_attendances_event_id_events"),
        sa.PrimaryKeyConstraint("id", name="pk_attendances"),
        # backstop de unicidade para leituras concorrentes
        sa.UniqueConstraint("student_id", "session_id", "scan_type",
                            name="uq_attendance_student_session_type"),
    )
    op.create_index("ix_attendances_student_id", "attendances", ["student_id"])
    op.create_index("ix_attendances_session_id", "attendances", ["session_id"])
    op.create_index("ix_attendances_event_id", "attendances", ["event_id"])


def downgrade():
    op.drop_index("ix_attendances_event_id", table_name="attendances")
    op.drop_index("ix_attendances_session_id", table_name="attendances")
    op.drop_index("ix_attendances_student_id", table_name="attendances")
    op.drop_table("attendances")
    op.drop_table("students")
    op.drop_index("ix_event_sessions_event_id", table_name="event_sessions")
    op.drop_table("event_sessions")
    op.drop_table("events")

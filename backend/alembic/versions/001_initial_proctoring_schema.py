"""create proctoring_sessions, violation_events and integrity_reports

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "proctoring_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("candidate_name", sa.String(length=200), nullable=False),
        sa.Column("candidate_email", sa.String(length=320), nullable=False),
        sa.Column("interviewer_name", sa.String(length=200), nullable=True),
        sa.Column("interviewer_notes", sa.Text(), nullable=True),
        sa.Column("candidate_info", sa.JSON(), nullable=True),
        sa.Column("max_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index(op.f("ix_proctoring_sessions_id"), "proctoring_sessions", ["id"], unique=False)
    op.create_index(op.f("ix_proctoring_sessions_session_id"), "proctoring_sessions", ["session_id"], unique=True)
    op.create_index(op.f("ix_proctoring_sessions_status"), "proctoring_sessions", ["status"], unique=False)

    op.create_table(
        "violation_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(length=64),
            sa.ForeignKey("proctoring_sessions.session_id"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="live-signal"),
        sa.Column("sustained_seconds", sa.Float(), nullable=True),
        sa.Column("object_classes", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_violation_events_id"), "violation_events", ["id"], unique=False)
    op.create_index(
        "ix_violation_events_session_timestamp",
        "violation_events",
        ["session_id", "timestamp", "id"],
        unique=False,
    )

    op.create_table(
        "integrity_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(length=64),
            sa.ForeignKey("proctoring_sessions.session_id"),
            nullable=False,
        ),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("total_deductions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("risk_tier", sa.String(length=16), nullable=False),
        sa.Column("breakdown", sa.JSON(), nullable=False),
        sa.Column("violations", sa.JSON(), nullable=False),
        sa.Column("time_analysis", sa.JSON(), nullable=False),
        sa.Column("events", sa.JSON(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("session_status", sa.String(length=20), nullable=True),
        sa.Column("candidate_name", sa.String(length=200), nullable=True),
        sa.Column("candidate_email", sa.String(length=320), nullable=True),
        sa.Column("interviewer_name", sa.String(length=200), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("report_version", sa.String(length=10), nullable=False, server_default="1.0"),
    )
    op.create_index(op.f("ix_integrity_reports_id"), "integrity_reports", ["id"], unique=False)
    op.create_index(op.f("ix_integrity_reports_session_id"), "integrity_reports", ["session_id"], unique=True)
    op.create_index(op.f("ix_integrity_reports_risk_tier"), "integrity_reports", ["risk_tier"], unique=False)
    op.create_index(op.f("ix_integrity_reports_generated_at"), "integrity_reports", ["generated_at"], unique=False)


def downgrade() -> None:
    op.drop_table("integrity_reports")
    op.drop_table("violation_events")
    op.drop_table("proctoring_sessions")

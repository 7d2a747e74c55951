"""results and leaderboard

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "test_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("test_type_id", sa.String(length=50), sa.ForeignKey("test_types.id"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("accuracy", sa.Float(), nullable=False, server_default="0"),
        sa.Column("percentile", sa.Float(), nullable=False, server_default="0"),
        sa.Column("correct_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("questions_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("time_taken_seconds", sa.Float(), nullable=False, server_default="0"),
        sa.Column("duration", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("iq_score", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_test_results_user_id", "test_results", ["user_id"], unique=False)
    op.create_index("ix_test_results_test_type_id", "test_results", ["test_type_id"], unique=False)
    op.create_index("ix_test_results_completed_at", "test_results", ["completed_at"], unique=False)

    op.create_table(
        "test_result_answers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("test_result_id", sa.Integer(), sa.ForeignKey("test_results.id"), nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("user_answer", sa.String(), nullable=False, server_default=""),
        sa.Column("is_correct", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_test_result_answers_test_result_id", "test_result_answers", ["test_result_id"], unique=False)
    op.create_index("ix_test_result_answers_question_id", "test_result_answers", ["question_id"], unique=False)

    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("test_type_id", sa.String(length=50), sa.ForeignKey("test_types.id"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rank", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("percentile", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tests_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("best_time", sa.String(length=50), nullable=True),
        sa.Column("average_time", sa.String(length=50), nullable=True),
        sa.Column("iq_score", sa.Integer(), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "test_type_id", name="uq_leaderboard_user_test_type"),
    )
    op.create_index("ix_leaderboard_entries_user_id", "leaderboard_entries", ["user_id"], unique=False)
    op.create_index("ix_leaderboard_entries_test_type_id", "leaderboard_entries", ["test_type_id"], unique=False)
    op.create_index("ix_leaderboard_entries_score", "leaderboard_entries", ["score"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_leaderboard_entries_score", table_name="leaderboard_entries")
    op.drop_index("ix_leaderboard_entries_test_type_id", table_name="leaderboard_entries")
    op.drop_index("ix_leaderboard_entries_user_id", table_name="leaderboard_entries")
    op.drop_table("leaderboard_entries")
    op.drop_index("ix_test_result_answers_question_id", table_name="test_result_answers")
    op.drop_index("ix_test_result_answers_test_result_id", table_name="test_result_answers")
    op.drop_table("test_result_answers")
    op.drop_index("ix_test_results_completed_at", table_name="test_results")
    op.drop_index("ix_test_results_test_type_id", table_name="test_results")
    op.drop_index("ix_test_results_user_id", table_name="test_results")
    op.drop_table("test_results")

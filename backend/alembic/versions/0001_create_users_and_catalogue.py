"""create users and test catalogue

Revision ID: 0001
Revises: 
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("user", "admin", name="userrole")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    test_types = op.create_table(
        "test_types",
        sa.Column("id", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("questions_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("time_limit_seconds", sa.Integer(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    )

    op.bulk_insert(
        test_types,
        [
            {
                "id": "number-logic",
                "title": "Numerical Reasoning",
                "description": "Analyze patterns, solve equations, and demonstrate mathematical intelligence",
                "questions_count": 24,
                "time_limit_seconds": 1500,
                "order_index": 1,
            },
            {
                "id": "word-logic",
                "title": "Verbal Intelligence",
                "description": "Process language, understand relationships between words, and analyze text",
                "questions_count": 28,
                "time_limit_seconds": 1800,
                "order_index": 2,
            },
            {
                "id": "memory",
                "title": "Memory & Recall",
                "description": "Test working memory capacity, recall accuracy, and information retention",
                "questions_count": 20,
                "time_limit_seconds": 1320,
                "order_index": 3,
            },
            {
                "id": "mixed",
                "title": "Comprehensive IQ",
                "description": "Full cognitive assessment combining all major intelligence domains",
                "questions_count": 40,
                "time_limit_seconds": 2700,
                "order_index": 4,
            },
        ],
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("test_type_id", sa.String(length=50), sa.ForeignKey("test_types.id"), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("text", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=200), nullable=True),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("correct_answer", sa.String(), nullable=False, server_default=""),
        sa.Column("weight", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("memorization_time", sa.Integer(), nullable=True),
        sa.Column("pairs", sa.JSON(), nullable=True),
        sa.Column("missing_indices", sa.JSON(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_questions_test_type_id", "questions", ["test_type_id"], unique=False)
    op.create_index("ix_questions_type", "questions", ["type"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_questions_type", table_name="questions")
    op.drop_index("ix_questions_test_type_id", table_name="questions")
    op.drop_table("questions")
    op.drop_table("test_types")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS userrole")

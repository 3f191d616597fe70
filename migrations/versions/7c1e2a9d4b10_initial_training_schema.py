"""initial_training_schema

Projects, source material, program matrices, chapter/session structure,
generated deliverables, the workflow step log and chat turns.

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-19 12:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e2a9d4b10"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="information_gathering"),
            sa.Column("language", sa.String(length=30), nullable=False, server_default="swedish"),
            sa.Column("learning_objectives", sa.Text(), nullable=True),
            sa.Column("target_audience", sa.Text(), nullable=True),
            sa.Column("desired_outcomes", sa.Text(), nullable=True),
            sa.Column("constraints", sa.Text(), nullable=True),
            sa.Column("particular_angle", sa.Text(), nullable=True),
            sa.Column("deliverables", sa.String(length=50), nullable=False, server_default="articles"),
            sa.Column("strict_fidelity", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("quiz_questions", sa.Integer(), nullable=False, server_default="3"),
            sa.Column("num_chapters", sa.Integer(), nullable=True),
            sa.Column("company_context", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )

    if "source_materials" not in existing_tables:
        op.create_table(
            "source_materials",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("filename", sa.String(length=255), nullable=False),
            sa.Column("file_type", sa.String(length=100), nullable=True),
            sa.Column("file_size", sa.Integer(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=False, server_default="context"),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_source_materials_project_id", "source_materials", ["project_id"])

    if "program_matrices" not in existing_tables:
        op.create_table(
            "program_matrices",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("overview", sa.Text(), nullable=True),
            sa.Column("full_text", sa.Text(), nullable=True),
            sa.Column("pedagogical_approach", sa.String(length=200), nullable=True),
            sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_program_matrices_project_id", "program_matrices", ["project_id"])

    if "chapters" not in existing_tables:
        op.create_table(
            "chapters",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("number", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "number", name="uq_chapter_project_number"),
        )
        op.create_index("ix_chapters_project_id", "chapters", ["project_id"])

    if "sessions" not in existing_tables:
        op.create_table(
            "sessions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("chapter_id", sa.Integer(), nullable=False),
            sa.Column("number", sa.Integer(), nullable=False),
            sa.Column("label", sa.String(length=30), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("content_outline", sa.Text(), nullable=True),
            sa.Column("learning_objective", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["chapter_id"], ["chapters.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("chapter_id", "number", name="uq_session_chapter_number"),
            sa.UniqueConstraint("chapter_id", "label", name="uq_session_chapter_label"),
        )
        op.create_index("ix_sessions_chapter_id", "sessions", ["chapter_id"])

    if "articles" not in existing_tables:
        op.create_table(
            "articles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("session_id", sa.Integer(), nullable=False, unique=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("hist_review", sa.Text(), nullable=True),
            sa.Column("fact_check_notes", sa.Text(), nullable=True),
            sa.Column("feedback", sa.Text(), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )

    if "video_scripts" not in existing_tables:
        op.create_table(
            "video_scripts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("session_id", sa.Integer(), nullable=False, unique=True),
            sa.Column("script", sa.Text(), nullable=False),
            sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("feedback", sa.Text(), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )

    if "quizzes" not in existing_tables:
        op.create_table(
            "quizzes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("session_id", sa.Integer(), nullable=False, unique=True),
            sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("feedback", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )

    if "quiz_questions" not in existing_tables:
        op.create_table(
            "quiz_questions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("quiz_id", sa.Integer(), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("question", sa.Text(), nullable=False),
            sa.Column("option_a", sa.Text(), nullable=False),
            sa.Column("option_b", sa.Text(), nullable=False),
            sa.Column("option_c", sa.Text(), nullable=False),
            sa.Column("correct_answer", sa.String(length=10), nullable=False),
            sa.ForeignKeyConstraint(["quiz_id"], ["quizzes.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"])

    if "workflow_steps" not in existing_tables:
        op.create_table(
            "workflow_steps",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("phase", sa.String(length=40), nullable=False),
            sa.Column("step_name", sa.String(length=100), nullable=False),
            sa.Column("agent_name", sa.String(length=80), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("result", sa.Text(), nullable=True),
            *_timestamps(),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflow_steps_project_id", "workflow_steps", ["project_id"])
        op.create_index("ix_workflow_steps_step_name", "workflow_steps", ["step_name"])

    if "conversation_turns" not in existing_tables:
        op.create_table(
            "conversation_turns",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("conversation_key", sa.String(length=120), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_conversation_turns_conversation_key", "conversation_turns", ["conversation_key"])


def downgrade():
    for table in (
        "conversation_turns", "workflow_steps", "quiz_questions", "quizzes",
        "video_scripts", "articles", "sessions", "chapters",
        "program_matrices", "source_materials", "projects",
    ):
        op.drop_table(table)

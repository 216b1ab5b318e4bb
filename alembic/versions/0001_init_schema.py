"""Initial schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    campaign_status_enum = sa.Enum("draft", "active", "completed", name="campaign_status")
    schedule_status_enum = sa.Enum("draft", "approved", "published", name="schedule_status")
    content_category_enum = sa.Enum("Organic Post", "Promotional Post", name="content_category")

    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("objectives", sa.Text(), nullable=False),
        sa.Column("target_audience", sa.Text(), nullable=False),
        sa.Column("budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", campaign_status_enum, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("start_date <= end_date", name="ck_campaigns_date_range"),
    )
    op.create_index("idx_campaigns_user_created_at", "campaigns", ["user_id", "created_at"])

    op.create_table(
        "schedule",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("campaign_id", sa.String(36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("platform", sa.Text(), nullable=False),
        sa.Column("content_pillar", sa.Text(), nullable=False),
        sa.Column("content_category", content_category_enum, nullable=False),
        sa.Column("content_angle", sa.Text(), nullable=False),
        sa.Column("content_brief", sa.Text(), nullable=False),
        sa.Column("status", schedule_status_enum, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_schedule_user_date", "schedule", ["user_id", "scheduled_date"])
    op.create_index("idx_schedule_campaign_date", "schedule", ["campaign_id", "scheduled_date"])

    op.create_table(
        "chat_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("chat_session_id", sa.String(64), nullable=False),
        sa.Column("question", sa.Text(), nullable=True),
        sa.Column("ai_response", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "idx_chat_history_user_session_created",
        "chat_history",
        ["user_id", "chat_session_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_chat_history_user_session_created", table_name="chat_history")
    op.drop_table("chat_history")
    op.drop_index("idx_schedule_campaign_date", table_name="schedule")
    op.drop_index("idx_schedule_user_date", table_name="schedule")
    op.drop_table("schedule")
    op.drop_index("idx_campaigns_user_created_at", table_name="campaigns")
    op.drop_table("campaigns")
    sa.Enum(name="content_category").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="schedule_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="campaign_status").drop(op.get_bind(), checkfirst=True)

"""Add notification_logs with a unique delivery key for idempotent SMS sends.

Revision ID: 002
Revises: 001
Create Date: 2026-09-21

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notification_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("address_id", sa.Integer(), nullable=False),
        sa.Column("notification_preference_id", sa.Integer(), nullable=False),
        sa.Column("waste_type_ids", sa.JSON(), nullable=False),
        sa.Column("scheduled_date", sa.String(10), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("sms_content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("serwersms_message_id", sa.String(64), nullable=True),
        sa.Column("serwersms_status", sa.String(32), nullable=True),
        sa.Column("message_parts", sa.Integer(), nullable=True),
        sa.Column("attempts", sa.Integer(), server_default="1", nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["address_id"], ["addresses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["notification_preference_id"], ["notification_preferences.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "address_id",
            "scheduled_date",
            "notification_preference_id",
            name="uq_notification_log_delivery",
        ),
    )
    op.create_index("ix_notification_logs_user_id", "notification_logs", ["user_id"], unique=False)
    op.create_index("ix_notification_logs_scheduled_date", "notification_logs", ["scheduled_date"], unique=False)
    op.create_index("ix_notification_logs_status", "notification_logs", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notification_logs_status", table_name="notification_logs")
    op.drop_index("ix_notification_logs_scheduled_date", table_name="notification_logs")
    op.drop_index("ix_notification_logs_user_id", table_name="notification_logs")
    op.drop_table("notification_logs")

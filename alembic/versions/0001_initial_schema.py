from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("facebook_id", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("nickname", sa.String(length=24), nullable=True),
        sa.Column("msg_state", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("gender", sa.String(length=16), nullable=True),
        sa.Column("locale", sa.String(length=16), nullable=True),
        sa.Column("is_registered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("usos_course", sa.Integer(), nullable=True),
        sa.Column("usos_token_key", sa.String(), nullable=True),
        sa.Column("usos_token_secret", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("facebook_id"),
    )
    op.create_index("idx_users_gender", "users", ["gender"], unique=False)
    op.create_index("idx_users_locale", "users", ["locale"], unique=False)

    op.create_table(
        "msg_messages",
        sa.Column("id", sa.String(length=128), autoincrement=False, nullable=False),
        sa.Column("sender", sa.String(length=64), nullable=True),
        sa.Column("recipient", sa.String(length=64), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_msg_messages_sender", "msg_messages", ["sender", "timestamp"], unique=False)
    op.create_index("idx_msg_messages_recipient", "msg_messages", ["recipient", "timestamp"], unique=False)

    op.create_table(
        "msg_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("sender", sa.String(length=64), nullable=False),
        sa.Column("recipient", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("payload", sa.String(length=1000), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("uq_msg_events_delivery", "msg_events", ["sender", "recipient", "timestamp"], unique=True)

    op.create_table(
        "feedback_tickets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("text", sa.String(length=500), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_feedback_user", "feedback_tickets", ["user_id", "created_at"], unique=False)

    op.create_table(
        "bot_login",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("messenger_linking_token", sa.String(), nullable=False),
        sa.Column("messenger_callback_url", sa.Text(), nullable=False),
        sa.Column("messenger_auth_code", sa.String(length=64), nullable=False),
        sa.Column("usos_oauth_token", sa.String(length=128), nullable=False),
        sa.Column("usos_oauth_secret", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("messenger_auth_code"),
        sa.UniqueConstraint("usos_oauth_token"),
    )
    op.create_index("idx_bot_login_created", "bot_login", ["created_at"], unique=False)

    op.create_table(
        "studia3_sessions",
        sa.Column("program_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("program_name", sa.String(), nullable=False),
        sa.Column("cookie", sa.String(), nullable=True),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("program_id"),
    )


def downgrade() -> None:
    op.drop_table("studia3_sessions")

    op.drop_index("idx_bot_login_created", table_name="bot_login")
    op.drop_table("bot_login")

    op.drop_index("idx_feedback_user", table_name="feedback_tickets")
    op.drop_table("feedback_tickets")

    op.drop_index("uq_msg_events_delivery", table_name="msg_events")
    op.drop_table("msg_events")

    op.drop_index("idx_msg_messages_recipient", table_name="msg_messages")
    op.drop_index("idx_msg_messages_sender", table_name="msg_messages")
    op.drop_table("msg_messages")

    op.drop_index("idx_users_locale", table_name="users")
    op.drop_index("idx_users_gender", table_name="users")
    op.drop_table("users")

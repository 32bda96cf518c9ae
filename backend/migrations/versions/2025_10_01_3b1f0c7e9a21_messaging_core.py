"""users, friendships, direct messages and groups

Revision ID: 3b1f0c7e9a21
Revises:
Create Date: 2025-10-01 18:04:12.517203

"""

from alembic import op
import sqlalchemy as sa
import sqlmodel

from models import UtcAwareDateTime

# revision identifiers, used by Alembic.
revision = "3b1f0c7e9a21"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("password_hash", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("role", sa.Enum("student", "admin", name="userrole"), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column(
            "verification_token", sqlmodel.sql.sqltypes.AutoString(), nullable=True
        ),
        sa.Column("reset_token", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column(
            "reset_token_expires", UtcAwareDateTime(timezone=True), nullable=True
        ),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column("updated_at", UtcAwareDateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_users_email"), ["email"], unique=True)
        batch_op.create_index(
            batch_op.f("ix_users_verification_token"), ["verification_token"]
        )
        batch_op.create_index(batch_op.f("ix_users_reset_token"), ["reset_token"])

    op.create_table(
        "friend_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sender_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("receiver_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "accepted", "rejected", name="friendrequeststatus"),
            nullable=False,
        ),
        sa.Column("pair_low_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("pair_high_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column("updated_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["pair_low_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["pair_high_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("friend_requests", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_friend_requests_sender_id"), ["sender_id"])
        batch_op.create_index(
            batch_op.f("ix_friend_requests_receiver_id"), ["receiver_id"]
        )
        batch_op.create_index(batch_op.f("ix_friend_requests_status"), ["status"])
        batch_op.create_index(
            "uq_friend_requests_pending_pair",
            ["pair_low_id", "pair_high_id"],
            unique=True,
            sqlite_where=sa.text("status = 'pending'"),
            postgresql_where=sa.text("status = 'pending'"),
        )

    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user1_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("user2_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.CheckConstraint("user1_id < user2_id", name="ck_friend_order"),
        sa.ForeignKeyConstraint(["user1_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["user2_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_friend_pair"),
    )
    with op.batch_alter_table("friendships", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_friendships_user1_id"), ["user1_id"])
        batch_op.create_index(batch_op.f("ix_friendships_user2_id"), ["user2_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sender_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("receiver_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("message", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("attachment_path", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("attachment_name", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("attachment_size", sa.Integer(), nullable=True),
        sa.Column("attachment_type", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "message IS NOT NULL OR attachment_path IS NOT NULL",
            name="ck_message_has_content",
        ),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("messages", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_messages_created_at"), ["created_at"])
        batch_op.create_index(
            "ix_messages_pair_created", ["sender_id", "receiver_id", "created_at"]
        )
        batch_op.create_index("ix_messages_unread", ["receiver_id", "is_read"])

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("created_by", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("groups", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_groups_created_by"), ["created_by"])

    op.create_table(
        "group_members",
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("joined_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("group_id", "user_id"),
    )
    with op.batch_alter_table("group_members", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_group_members_user_id"), ["user_id"])

    op.create_table(
        "group_messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sender_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("message", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("group_messages", schema=None) as batch_op:
        batch_op.create_index(
            "ix_group_messages_group_created", ["group_id", "created_at"]
        )


def downgrade() -> None:
    op.drop_table("group_messages")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("messages")
    op.drop_table("friendships")
    op.drop_table("friend_requests")
    op.drop_table("users")

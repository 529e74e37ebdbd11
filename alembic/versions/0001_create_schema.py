from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    existing = set(inspect(bind).get_table_names())

    if "tenants" not in existing:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("settings", sa.JSON(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("is_deleted", sa.Boolean(), nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_tenants_name", "tenants", ["name"], unique=True)

    if "user_groups" not in existing:
        op.create_table(
            "user_groups",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("group_type", sa.String(), nullable=False),
            sa.Column("custom_permissions", sa.JSON(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("is_deleted", sa.Boolean(), nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_user_groups_tenant_id", "user_groups", ["tenant_id"], unique=False)
        op.create_index("ix_user_groups_tenant_name", "user_groups", ["tenant_id", "name"], unique=False)

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("user_group_id", sa.Integer(), sa.ForeignKey("user_groups.id"), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("password_hash", sa.String(), nullable=False),
            sa.Column("first_name", sa.String(), nullable=False),
            sa.Column("last_name", sa.String(), nullable=False),
            sa.Column("phone_number", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("is_email_verified", sa.Boolean(), nullable=False),
            sa.Column("is_deleted", sa.Boolean(), nullable=False),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_users_id", "users", ["id"], unique=False)
        op.create_index("ix_users_tenant_id", "users", ["tenant_id"], unique=False)
        op.create_index("ix_users_user_group_id", "users", ["user_group_id"], unique=False)
        op.create_index("ix_users_email", "users", ["email"], unique=False)
        op.create_index("ix_users_tenant_email", "users", ["tenant_id", "email"], unique=False)

    if "whatsapp_devices" not in existing:
        op.create_table(
            "whatsapp_devices",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("device_id", sa.String(), nullable=False),
            sa.Column("device_name", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("phone_number", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=False),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("qr_code", sa.Text(), nullable=True),
            sa.Column("qr_code_expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("messages_sent", sa.Integer(), nullable=False),
            sa.Column("messages_received", sa.Integer(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("is_deleted", sa.Boolean(), nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_whatsapp_devices_tenant_id", "whatsapp_devices", ["tenant_id"], unique=False)
        op.create_index("ix_whatsapp_devices_device_id", "whatsapp_devices", ["device_id"], unique=True)
        op.create_index(
            "ix_whatsapp_devices_tenant_status", "whatsapp_devices", ["tenant_id", "status"], unique=False
        )

    if "messages" not in existing:
        op.create_table(
            "messages",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("sent_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("device_id", sa.String(), nullable=False),
            sa.Column("phone_number", sa.String(), nullable=False),
            sa.Column("message_type", sa.String(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("caption", sa.Text(), nullable=True),
            sa.Column("group_id", sa.String(), nullable=True),
            sa.Column("reply_to_message_id", sa.String(), nullable=True),
            sa.Column("mentioned_phone_numbers", sa.JSON(), nullable=False),
            sa.Column("broadcast", sa.Boolean(), nullable=False),
            sa.Column("status", sa.String(), nullable=False),
            sa.Column("whatsapp_message_id", sa.String(), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_deleted", sa.Boolean(), nullable=False),
        )
        op.create_index("ix_messages_tenant_id", "messages", ["tenant_id"], unique=False)
        op.create_index("ix_messages_device_id", "messages", ["device_id"], unique=False)
        op.create_index("ix_messages_group_id", "messages", ["group_id"], unique=False)
        op.create_index("ix_messages_whatsapp_message_id", "messages", ["whatsapp_message_id"], unique=False)
        op.create_index("ix_messages_tenant_sent_at", "messages", ["tenant_id", "sent_at"], unique=False)
        op.create_index("ix_messages_tenant_phone", "messages", ["tenant_id", "phone_number"], unique=False)

    if "contacts" not in existing:
        op.create_table(
            "contacts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("phone_number", sa.String(), nullable=False),
            sa.Column("first_name", sa.String(), nullable=True),
            sa.Column("last_name", sa.String(), nullable=True),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("company", sa.String(), nullable=True),
            sa.Column("job_title", sa.String(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("tags", sa.JSON(), nullable=False),
            sa.Column("messages_sent", sa.Integer(), nullable=False),
            sa.Column("messages_received", sa.Integer(), nullable=False),
            sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_deleted", sa.Boolean(), nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_contacts_tenant_id", "contacts", ["tenant_id"], unique=False)
        op.create_index("ix_contacts_tenant_phone", "contacts", ["tenant_id", "phone_number"], unique=False)

    if "chat_groups" not in existing:
        op.create_table(
            "chat_groups",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("group_id", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("invite_code", sa.String(), nullable=True),
            sa.Column("invite_link", sa.String(), nullable=True),
            sa.Column("is_announcement", sa.Boolean(), nullable=False),
            sa.Column("is_community", sa.Boolean(), nullable=False),
            sa.Column("participants", sa.JSON(), nullable=False),
            sa.Column("profile_picture_url", sa.String(), nullable=True),
            sa.Column("is_deleted", sa.Boolean(), nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_chat_groups_tenant_id", "chat_groups", ["tenant_id"], unique=False)
        op.create_index("ix_chat_groups_tenant_group", "chat_groups", ["tenant_id", "group_id"], unique=False)


def downgrade() -> None:
    for table in ("chat_groups", "contacts", "messages", "whatsapp_devices", "users", "user_groups", "tenants"):
        op.drop_table(table)

"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "tenant_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("value", sa.Text),
        sa.UniqueConstraint("tenant_id", "key", name="uq_tenant_settings_key"),
    )

    op.create_table(
        "lines",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("number", sa.String(64)),
        sa.Column("greeting_message", sa.Text),
        sa.Column("greeting_media_path", sa.Text),
        sa.Column("status", sa.String(32), server_default="CONNECTED"),
    )

    op.create_table(
        "queues",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("color", sa.String(32)),
    )

    op.create_table(
        "line_queues",
        sa.Column("line_id", sa.Integer, sa.ForeignKey("lines.id"), primary_key=True),
        sa.Column("queue_id", sa.Integer, sa.ForeignKey("queues.id"), primary_key=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
    )

    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("line_id", sa.Integer, sa.ForeignKey("lines.id")),
        sa.Column("name", sa.String(255)),
        sa.Column("number", sa.String(64), nullable=False),
        sa.Column("remote_jid", sa.String(128)),
        sa.Column("is_group", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "number", name="uq_contacts_number"),
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("line_id", sa.Integer, sa.ForeignKey("lines.id")),
        sa.Column("contact_id", sa.Integer, sa.ForeignKey("contacts.id"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("last_message", sa.Text),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id")),
        sa.Column("queue_id", sa.Integer, sa.ForeignKey("queues.id")),
        sa.Column("is_group", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("unread_messages", sa.Integer, nullable=False, server_default="0"),
        sa.Column("from_me", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_tickets_contact", "tickets", ["tenant_id", "line_id", "contact_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), primary_key=True),
        sa.Column("ticket_id", sa.Integer, sa.ForeignKey("tickets.id"), nullable=False),
        sa.Column("contact_id", sa.Integer, sa.ForeignKey("contacts.id")),
        sa.Column("body", sa.Text),
        sa.Column("media_type", sa.String(64)),
        sa.Column("media_url", sa.Text),
        sa.Column("from_me", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("ack", sa.Integer, nullable=False, server_default="0"),
        sa.Column("quoted_msg_id", sa.String(128)),
        sa.Column("remote_jid", sa.String(128)),
        sa.Column("participant", sa.String(128)),
        sa.Column("data_json", sa.Text),
        sa.Column("is_edited", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_messages_ticket_created", "messages", ["ticket_id", "created_at"])

    op.create_table(
        "old_messages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("message_id", sa.String(128), nullable=False),
        sa.Column("ticket_id", sa.Integer, sa.ForeignKey("tickets.id")),
        sa.Column("body", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("tenant_id", "message_id", name="uq_old_messages_message"),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("line_id", sa.Integer, sa.ForeignKey("lines.id")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("confirmation", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(32)),
    )

    op.create_table(
        "campaign_shippings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("campaign_id", sa.Integer, sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("number", sa.String(64), nullable=False),
        sa.Column("message", sa.Text),
        sa.Column("confirmation_message", sa.Text),
        sa.Column("confirmation", sa.Boolean),
        sa.Column("confirmation_requested_at", sa.DateTime(timezone=True)),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("message_id", sa.String(128)),
        sa.Column("ticket_id", sa.Integer, sa.ForeignKey("tickets.id")),
    )
    op.create_index("ix_campaign_shippings_number", "campaign_shippings", ["tenant_id", "number"])

    op.create_table(
        "event_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, nullable=False),
        sa.Column("ticket_id", sa.Integer),
        sa.Column("message_id", sa.String(128)),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("latency_ms", sa.Integer),
        sa.Column("payload", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    for table in (
        "event_logs",
        "campaign_shippings",
        "campaigns",
        "old_messages",
        "messages",
        "tickets",
        "contacts",
        "users",
        "line_queues",
        "queues",
        "lines",
        "tenant_settings",
        "tenants",
    ):
        op.drop_table(table)

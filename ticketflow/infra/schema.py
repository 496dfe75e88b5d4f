"""Table definitions shared by the Alembic migration and the test database."""

import sqlalchemy as sa

metadata = sa.MetaData()

tenants = sa.Table(
    "tenants",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
)

tenant_settings = sa.Table(
    "tenant_settings",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
    sa.Column("key", sa.String(128), nullable=False),
    sa.Column("value", sa.Text),
    sa.UniqueConstraint("tenant_id", "key", name="uq_tenant_settings_key"),
)

lines = sa.Table(
    "lines",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("number", sa.String(64)),
    sa.Column("greeting_message", sa.Text),
    sa.Column("greeting_media_path", sa.Text),
    sa.Column("status", sa.String(32), server_default="CONNECTED"),
)

queues = sa.Table(
    "queues",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("color", sa.String(32)),
)

line_queues = sa.Table(
    "line_queues",
    metadata,
    sa.Column("line_id", sa.Integer, sa.ForeignKey("lines.id"), primary_key=True),
    sa.Column("queue_id", sa.Integer, sa.ForeignKey("queues.id"), primary_key=True),
)

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
    sa.Column("name", sa.String(255), nullable=False),
)

contacts = sa.Table(
    "contacts",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
    sa.Column("line_id", sa.Integer, sa.ForeignKey("lines.id")),
    sa.Column("name", sa.String(255)),
    sa.Column("number", sa.String(64), nullable=False),
    sa.Column("remote_jid", sa.String(128)),
    sa.Column("is_group", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
    sa.UniqueConstraint("tenant_id", "number", name="uq_contacts_number"),
)

tickets = sa.Table(
    "tickets",
    metadata,
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
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
    sa.Index("ix_tickets_contact", "tenant_id", "line_id", "contact_id"),
)

messages = sa.Table(
    "messages",
    metadata,
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
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
    sa.Index("ix_messages_ticket_created", "ticket_id", "created_at"),
)

old_messages = sa.Table(
    "old_messages",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
    sa.Column("message_id", sa.String(128), nullable=False),
    sa.Column("ticket_id", sa.Integer, sa.ForeignKey("tickets.id")),
    sa.Column("body", sa.Text),
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.UniqueConstraint("tenant_id", "message_id", name="uq_old_messages_message"),
)

campaigns = sa.Table(
    "campaigns",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
    sa.Column("line_id", sa.Integer, sa.ForeignKey("lines.id")),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("confirmation", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("status", sa.String(32)),
)

campaign_shippings = sa.Table(
    "campaign_shippings",
    metadata,
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
    sa.Index("ix_campaign_shippings_number", "tenant_id", "number"),
)

event_logs = sa.Table(
    "event_logs",
    metadata,
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

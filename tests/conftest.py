"""Pytest configuration and fixtures."""

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Test environment must be in place before ticketflow modules read config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ticketflow.infra import database, realtime
from ticketflow.infra.config import config
from ticketflow.infra.schema import metadata
from ticketflow.services import ticket_service

TENANT_ID = 1
LINE_ID = 1
LINE_NUMBER = "5511900000000"
CONTACT_NUMBER = "5511988887777"
CONTACT_JID = f"{CONTACT_NUMBER}@s.whatsapp.net"


class FakeRedis:
    """In-memory stand-in recording publishes and counter updates."""

    def __init__(self):
        self.published: List[tuple] = []
        self.values: Dict[str, Any] = {}

    def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, json.loads(message)))
        return 1

    def incr(self, key: str) -> int:
        self.values[key] = int(self.values.get(key, 0)) + 1
        return self.values[key]

    def set(self, key: str, value: Any) -> bool:
        self.values[key] = value
        return True

    def ping(self) -> bool:
        return True

    def events(self, channel: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.published if name == channel]


@pytest.fixture
def db_engine(monkeypatch):
    """In-memory database with the full schema, swapped in for the app engine."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    monkeypatch.setattr(database, "SessionLocal", sessionmaker(autocommit=False, autoflush=False, bind=engine))
    yield engine
    engine.dispose()


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(realtime, "redis_conn", fake)
    monkeypatch.setattr(ticket_service, "redis_conn", fake)
    return fake


@pytest.fixture
def public_root(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "PUBLIC_ROOT", str(tmp_path))
    return tmp_path


def execute(engine, sql: str, params: Optional[Dict[str, Any]] = None) -> None:
    with engine.begin() as conn:
        conn.execute(text(sql), params or {})


def insert_returning(engine, sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """Run an INSERT ... RETURNING id and return the id."""
    with engine.begin() as conn:
        return conn.execute(text(sql), params or {}).scalar()


def fetch_all(engine, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    with engine.connect() as conn:
        return [dict(row._mapping) for row in conn.execute(text(sql), params or {})]


def seed_line(
    engine,
    greeting_message: Optional[str] = None,
    greeting_media_path: Optional[str] = None,
    settings: Optional[Dict[str, str]] = None,
    queue_count: int = 0,
) -> None:
    """Tenant 1 with line 1 and optional settings/queues."""
    execute(engine, "INSERT INTO tenants (id, name) VALUES (:id, 'Acme')", {"id": TENANT_ID})
    execute(
        engine,
        """
        INSERT INTO lines (id, tenant_id, name, number, greeting_message, greeting_media_path)
        VALUES (:id, :tenant_id, 'Support', :number, :greeting, :media)
        """,
        {
            "id": LINE_ID,
            "tenant_id": TENANT_ID,
            "number": LINE_NUMBER,
            "greeting": greeting_message,
            "media": greeting_media_path,
        },
    )
    for key, value in (settings or {}).items():
        execute(
            engine,
            "INSERT INTO tenant_settings (tenant_id, key, value) VALUES (:tenant_id, :key, :value)",
            {"tenant_id": TENANT_ID, "key": key, "value": value},
        )
    for index in range(queue_count):
        queue_id = insert_returning(
            engine,
            "INSERT INTO queues (tenant_id, name) VALUES (:tenant_id, :name) RETURNING id",
            {"tenant_id": TENANT_ID, "name": f"Queue {index}"},
        )
        execute(
            engine,
            "INSERT INTO line_queues (line_id, queue_id) VALUES (:line_id, :queue_id)",
            {"line_id": LINE_ID, "queue_id": queue_id},
        )


def seed_ticket(
    engine,
    status: str = "open",
    user_id: Optional[int] = None,
    number: str = CONTACT_NUMBER,
    name: str = "Maria",
) -> Dict[str, int]:
    """Contact plus one ticket on line 1; returns their ids."""
    now = datetime.now(timezone.utc)
    if user_id is not None:
        execute(
            engine,
            "INSERT INTO users (id, tenant_id, name) VALUES (:id, :tenant_id, 'Agent')",
            {"id": user_id, "tenant_id": TENANT_ID},
        )
    contact_id = insert_returning(
        engine,
        """
        INSERT INTO contacts (tenant_id, line_id, name, number, remote_jid, is_group, created_at, updated_at)
        VALUES (:tenant_id, :line_id, :name, :number, :jid, :is_group, :now, :now)
        RETURNING id
        """,
        {
            "tenant_id": TENANT_ID,
            "line_id": LINE_ID,
            "name": name,
            "number": number,
            "jid": f"{number}@s.whatsapp.net",
            "is_group": False,
            "now": now,
        },
    )
    ticket_id = insert_returning(
        engine,
        """
        INSERT INTO tickets (tenant_id, line_id, contact_id, status, user_id, is_group,
                             unread_messages, from_me, created_at, updated_at)
        VALUES (:tenant_id, :line_id, :contact_id, :status, :user_id, :is_group, 0, :from_me, :now, :now)
        RETURNING id
        """,
        {
            "tenant_id": TENANT_ID,
            "line_id": LINE_ID,
            "contact_id": contact_id,
            "status": status,
            "user_id": user_id,
            "is_group": False,
            "from_me": False,
            "now": now,
        },
    )
    return {"contact_id": contact_id, "ticket_id": ticket_id}


def seed_shipping(
    engine,
    number: str = CONTACT_NUMBER,
    campaign_confirmation: bool = True,
    confirmation_requested: bool = True,
    message_id: Optional[str] = None,
    ticket_id: Optional[int] = None,
    message: str = "Your order shipped",
) -> Dict[str, int]:
    """Campaign with one shipping row; returns their ids."""
    campaign_id = insert_returning(
        engine,
        """
        INSERT INTO campaigns (tenant_id, line_id, name, confirmation, status)
        VALUES (:tenant_id, :line_id, 'Promo', :confirmation, 'PROGRAMMED')
        RETURNING id
        """,
        {"tenant_id": TENANT_ID, "line_id": LINE_ID, "confirmation": campaign_confirmation},
    )
    shipping_id = insert_returning(
        engine,
        """
        INSERT INTO campaign_shippings (tenant_id, campaign_id, number, message, confirmation_message,
                                        confirmation_requested_at, message_id, ticket_id)
        VALUES (:tenant_id, :campaign_id, :number, :message, 'Reply to confirm',
                :requested_at, :message_id, :ticket_id)
        RETURNING id
        """,
        {
            "tenant_id": TENANT_ID,
            "campaign_id": campaign_id,
            "number": number,
            "message": message,
            "requested_at": datetime.now(timezone.utc) if confirmation_requested else None,
            "message_id": message_id,
            "ticket_id": ticket_id,
        },
    )
    return {"campaign_id": campaign_id, "shipping_id": shipping_id}


def inbound_event(
    message_id: str = "MSG1",
    message: Optional[Dict[str, Any]] = None,
    remote_jid: str = CONTACT_JID,
    from_me: bool = False,
    **extra: Any,
) -> Dict[str, Any]:
    """Raw `messages.upsert` item as the gateway posts it."""
    event = {
        "key": {"id": message_id, "remoteJid": remote_jid, "fromMe": from_me},
        "message": message if message is not None else {"conversation": "hello"},
        "pushName": "Maria",
        "messageTimestamp": 1760000000,
    }
    event.update(extra)
    return event

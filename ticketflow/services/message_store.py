"""Idempotent persistence of canonical message records."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.orm import Session

from ticketflow.models.message import CanonicalMessage

_MESSAGE_COLUMNS = """
    id, tenant_id, ticket_id, contact_id, body, media_type, media_url,
    from_me, read, ack, quoted_msg_id, remote_jid, participant, data_json,
    is_edited, is_deleted
"""


def _row_to_dict(row) -> Dict[str, Any]:
    data = dict(row._mapping)
    for flag in ("from_me", "read", "is_edited", "is_deleted"):
        if flag in data:
            data[flag] = bool(data[flag])
    return data


def find_message(session: Session, tenant_id: int, message_id: str) -> Optional[Dict[str, Any]]:
    """Stored message by protocol id within a tenant."""
    row = session.execute(
        text(f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE tenant_id = :tenant_id AND id = :id"),
        {"tenant_id": tenant_id, "id": message_id},
    ).fetchone()
    return _row_to_dict(row) if row else None


def find_quoted_id(session: Session, tenant_id: int, stanza_id: Optional[str]) -> Optional[str]:
    """Resolve a quoted stanza id to a stored message id; unknown ids yield None."""
    if not stanza_id:
        return None
    row = session.execute(
        text("SELECT id FROM messages WHERE tenant_id = :tenant_id AND id = :id"),
        {"tenant_id": tenant_id, "id": stanza_id},
    ).fetchone()
    return row.id if row else None


def save_message(session: Session, record: CanonicalMessage) -> Tuple[bool, Dict[str, Any]]:
    """
    Insert a message, degrading to a metadata update when it already exists.

    Safe to call repeatedly for the same id: the first call creates the row,
    later calls only refresh ack (never lowering it), participant and the raw
    payload mirror.

    Args:
        session: Open database session
        record: Canonical message built from the event

    Returns:
        Tuple of (created, stored row)
    """
    now = datetime.now(timezone.utc)
    params = record.model_dump()
    params.update({"created_at": now, "updated_at": now})

    inserted = session.execute(
        text("""
            INSERT INTO messages (
                id, tenant_id, ticket_id, contact_id, body, media_type, media_url,
                from_me, read, ack, quoted_msg_id, remote_jid, participant, data_json,
                is_edited, is_deleted, created_at, updated_at
            ) VALUES (
                :id, :tenant_id, :ticket_id, :contact_id, :body, :media_type, :media_url,
                :from_me, :read, :ack, :quoted_msg_id, :remote_jid, :participant, :data_json,
                :is_edited, :is_deleted, :created_at, :updated_at
            )
            ON CONFLICT (id, tenant_id) DO NOTHING
            RETURNING id
        """),
        {**params, "is_deleted": False},
    ).fetchone()

    if inserted is None:
        update_metadata(session, record.tenant_id, record.id, record.ack, record.participant, record.data_json)

    stored = find_message(session, record.tenant_id, record.id)
    return inserted is not None, stored


def update_metadata(
    session: Session,
    tenant_id: int,
    message_id: str,
    ack: int,
    participant: Optional[str],
    data_json: Optional[str],
) -> None:
    """Replay branch: refresh ack, participant and raw mirror of an existing row."""
    session.execute(
        text("""
            UPDATE messages
            SET ack = CASE WHEN :ack > ack THEN :ack ELSE ack END,
                participant = COALESCE(:participant, participant),
                data_json = COALESCE(:data_json, data_json),
                updated_at = :now
            WHERE tenant_id = :tenant_id AND id = :id
        """),
        {
            "ack": ack,
            "participant": participant,
            "data_json": data_json,
            "now": datetime.now(timezone.utc),
            "tenant_id": tenant_id,
            "id": message_id,
        },
    )


def apply_edit(session: Session, tenant_id: int, message_id: str, new_body: str) -> Optional[Dict[str, Any]]:
    """
    Replace the body of a stored message, keeping the previous one.

    The pre-edit body is upserted into old_messages before the overwrite.

    Returns:
        Updated row, or None when the target message is not stored
    """
    current = find_message(session, tenant_id, message_id)
    if current is None:
        return None

    now = datetime.now(timezone.utc)
    session.execute(
        text("""
            INSERT INTO old_messages (tenant_id, message_id, ticket_id, body, created_at)
            VALUES (:tenant_id, :message_id, :ticket_id, :body, :created_at)
            ON CONFLICT (tenant_id, message_id)
            DO UPDATE SET body = excluded.body, created_at = excluded.created_at
        """),
        {
            "tenant_id": tenant_id,
            "message_id": message_id,
            "ticket_id": current["ticket_id"],
            "body": current["body"],
            "created_at": now,
        },
    )
    session.execute(
        text("""
            UPDATE messages
            SET body = :body, is_edited = :is_edited, updated_at = :now
            WHERE tenant_id = :tenant_id AND id = :id
        """),
        {"body": new_body, "is_edited": True, "now": now, "tenant_id": tenant_id, "id": message_id},
    )
    return find_message(session, tenant_id, message_id)


def mark_deleted(session: Session, tenant_id: int, message_id: str) -> Optional[Dict[str, Any]]:
    """Soft-delete a revoked message; the row is kept. None when not stored."""
    result = session.execute(
        text("""
            UPDATE messages
            SET is_deleted = :is_deleted, updated_at = :now
            WHERE tenant_id = :tenant_id AND id = :id
        """),
        {"is_deleted": True, "now": datetime.now(timezone.utc), "tenant_id": tenant_id, "id": message_id},
    )
    if result.rowcount == 0:
        return None
    return find_message(session, tenant_id, message_id)


def update_ack(
    session: Session,
    tenant_id: int,
    message_id: str,
    ack: int,
    correction: bool = False,
) -> Tuple[str, Optional[Dict[str, Any]]]:
    """
    Apply a delivery status change.

    Ack only moves forward unless the transport flags the update as a
    correction.

    Returns:
        Tuple of (outcome, row) where outcome is 'applied', 'stale' or 'not_found'
    """
    current = find_message(session, tenant_id, message_id)
    if current is None:
        return "not_found", None
    if not correction and ack <= current["ack"]:
        return "stale", current

    session.execute(
        text("UPDATE messages SET ack = :ack, updated_at = :now WHERE tenant_id = :tenant_id AND id = :id"),
        {"ack": ack, "now": datetime.now(timezone.utc), "tenant_id": tenant_id, "id": message_id},
    )
    current["ack"] = ack
    return "applied", current


def has_recent_outbound(session: Session, ticket_id: int, window_seconds: int) -> bool:
    """True when the line sent anything on the ticket within the window."""
    since = datetime.now(timezone.utc) - timedelta(seconds=window_seconds)
    row = session.execute(
        text("""
            SELECT 1 FROM messages
            WHERE ticket_id = :ticket_id AND from_me = :from_me AND created_at >= :since
            LIMIT 1
        """),
        {"ticket_id": ticket_id, "from_me": True, "since": since},
    ).fetchone()
    return row is not None


def message_event(row: Dict[str, Any]) -> Dict[str, Any]:
    """Realtime payload for a stored row."""
    record = CanonicalMessage(**{k: v for k, v in row.items() if k in CanonicalMessage.model_fields})
    payload = record.to_event()
    payload["isDeleted"] = bool(row.get("is_deleted"))
    return payload

"""Contact/ticket lookup and serialized ticket mutations."""

import asyncio
import logging
import weakref
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ticketflow.infra import realtime
from ticketflow.infra.database import get_db_session
from ticketflow.infra.queue import redis_conn
from ticketflow.models.ticket import TicketState, TicketStatus
from ticketflow.services.ticket_state import MessageFacts, TicketTransition, close, transition

logger = logging.getLogger(__name__)

# One lock per ticket id; entries disappear once no coroutine holds them
_ticket_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def ticket_lock(ticket_id: int) -> asyncio.Lock:
    lock = _ticket_locks.get(ticket_id)
    if lock is None:
        lock = asyncio.Lock()
        _ticket_locks[ticket_id] = lock
    return lock


def unread_key(contact_id: int) -> str:
    return f"contacts:{contact_id}:unreads"


def upsert_contact(
    session: Session,
    tenant_id: int,
    line_id: int,
    number: str,
    name: Optional[str] = None,
    remote_jid: Optional[str] = None,
    is_group: bool = False,
) -> Dict[str, Any]:
    """Create or refresh a contact identified by number within the tenant."""
    now = datetime.now(timezone.utc)
    row = session.execute(
        text("""
            INSERT INTO contacts (tenant_id, line_id, name, number, remote_jid, is_group, created_at, updated_at)
            VALUES (:tenant_id, :line_id, :name, :number, :remote_jid, :is_group, :now, :now)
            ON CONFLICT (tenant_id, number)
            DO UPDATE SET name = COALESCE(excluded.name, contacts.name),
                          remote_jid = COALESCE(excluded.remote_jid, contacts.remote_jid),
                          updated_at = excluded.updated_at
            RETURNING id, name, number, remote_jid, is_group
        """),
        {
            "tenant_id": tenant_id,
            "line_id": line_id,
            "name": name,
            "number": number,
            "remote_jid": remote_jid,
            "is_group": is_group,
            "now": now,
        },
    ).fetchone()
    contact = dict(row._mapping)
    contact["is_group"] = bool(contact["is_group"])
    return contact


def _row_to_ticket(row) -> TicketState:
    return TicketState(
        id=row.id,
        tenant_id=row.tenant_id,
        contact_id=row.contact_id,
        status=TicketStatus(row.status),
        line_id=row.line_id,
        last_message=row.last_message,
        user_id=row.user_id,
        queue_id=row.queue_id,
        is_group=bool(row.is_group),
        unread_messages=row.unread_messages or 0,
    )


_TICKET_COLUMNS = """
    id, tenant_id, line_id, contact_id, status, last_message, user_id,
    queue_id, is_group, unread_messages
"""


def load_ticket(session: Session, ticket_id: int) -> Optional[TicketState]:
    row = session.execute(
        text(f"SELECT {_TICKET_COLUMNS} FROM tickets WHERE id = :id"),
        {"id": ticket_id},
    ).fetchone()
    return _row_to_ticket(row) if row else None


def find_or_create_ticket(
    session: Session,
    tenant_id: int,
    line_id: int,
    contact_id: int,
    is_group: bool = False,
) -> TicketState:
    """
    Latest ticket of the contact on the line, or a new pending one.

    Closed tickets are returned as-is; reopening is decided by transition().
    """
    row = session.execute(
        text(f"""
            SELECT {_TICKET_COLUMNS} FROM tickets
            WHERE tenant_id = :tenant_id AND line_id = :line_id AND contact_id = :contact_id
            ORDER BY updated_at DESC, id DESC
            LIMIT 1
        """),
        {"tenant_id": tenant_id, "line_id": line_id, "contact_id": contact_id},
    ).fetchone()
    if row:
        return _row_to_ticket(row)

    now = datetime.now(timezone.utc)
    created = session.execute(
        text(f"""
            INSERT INTO tickets (tenant_id, line_id, contact_id, status, is_group, unread_messages, from_me, created_at, updated_at)
            VALUES (:tenant_id, :line_id, :contact_id, :status, :is_group, 0, :from_me, :now, :now)
            RETURNING {_TICKET_COLUMNS}
        """),
        {
            "tenant_id": tenant_id,
            "line_id": line_id,
            "contact_id": contact_id,
            "status": TicketStatus.PENDING.value,
            "is_group": is_group,
            "from_me": False,
            "now": now,
        },
    ).fetchone()
    logger.info(f"Created ticket {created.id} for contact {contact_id} on line {line_id}")
    return _row_to_ticket(created)


def save_ticket(session: Session, ticket: TicketState, from_me: Optional[bool] = None) -> None:
    session.execute(
        text("""
            UPDATE tickets
            SET status = :status, last_message = :last_message, user_id = :user_id,
                queue_id = :queue_id, unread_messages = :unread_messages,
                from_me = COALESCE(:from_me, from_me), updated_at = :now
            WHERE id = :id
        """),
        {
            "status": ticket.status.value,
            "last_message": ticket.last_message,
            "user_id": ticket.user_id,
            "queue_id": ticket.queue_id,
            "unread_messages": ticket.unread_messages,
            "from_me": from_me,
            "now": datetime.now(timezone.utc),
            "id": ticket.id,
        },
    )


def load_associations(session: Session, ticket: TicketState) -> Dict[str, Any]:
    """Joined contact/queue/user data the UI renders alongside a ticket."""
    row = session.execute(
        text("""
            SELECT c.id AS contact_id, c.name AS contact_name, c.number AS contact_number,
                   q.id AS queue_id, q.name AS queue_name, q.color AS queue_color,
                   u.id AS user_id, u.name AS user_name
            FROM tickets t
            JOIN contacts c ON c.id = t.contact_id
            LEFT JOIN queues q ON q.id = t.queue_id
            LEFT JOIN users u ON u.id = t.user_id
            WHERE t.id = :id
        """),
        {"id": ticket.id},
    ).fetchone()
    if not row:
        return {}
    return {
        "contact": {"id": row.contact_id, "name": row.contact_name, "number": row.contact_number},
        "queue": {"id": row.queue_id, "name": row.queue_name, "color": row.queue_color} if row.queue_id else None,
        "user": {"id": row.user_id, "name": row.user_name} if row.user_id else None,
    }


def bump_unreads(contact_id: int, fallback: int) -> int:
    """Increment the cached unread counter; falls back to the ticket's own count."""
    try:
        return int(redis_conn.incr(unread_key(contact_id)))
    except Exception as e:
        logger.warning(f"Unread counter unavailable for contact {contact_id}: {e}")
        return fallback + 1


def reset_unreads(contact_id: int) -> None:
    try:
        redis_conn.set(unread_key(contact_id), 0)
    except Exception as e:
        logger.warning(f"Unread counter reset failed for contact {contact_id}: {e}")


async def apply_message(ticket_id: int, tenant_id: int, facts: MessageFacts) -> TicketTransition:
    """
    Run the ticket transition for one persisted message and notify clients.

    Serialized per ticket: the read-transition-write happens under the
    ticket's lock so near-simultaneous events cannot interleave.

    Emits ticket 'delete' then 'update' on reopen, 'update' otherwise.
    """
    async with ticket_lock(ticket_id):
        with get_db_session(tenant_id) as session:
            current = load_ticket(session, ticket_id)
            if current is None:
                raise LookupError(f"Ticket {ticket_id} not found")

            if facts.created and not facts.from_me:
                unread = bump_unreads(current.contact_id, current.unread_messages)
                facts = replace(facts, unread_count=unread)
            elif facts.from_me and facts.created:
                reset_unreads(current.contact_id)

            result = transition(current, facts)
            if result.warning:
                logger.warning(f"Ticket {ticket_id}: {result.warning}")

            save_ticket(session, result.ticket, from_me=facts.from_me)

            if result.reload_associations:
                associations = load_associations(session, result.ticket)
                result = replace(result, ticket=result.ticket.evolve(associations=associations))

    payload = result.ticket.to_event()
    if result.reopened:
        realtime.emit_ticket(tenant_id, "delete", payload)
    realtime.emit_ticket(tenant_id, "update", payload)
    return result


async def close_ticket(ticket_id: int, tenant_id: int) -> Optional[TicketState]:
    """Close a ticket and emit 'delete' then 'update'. None when the ticket is gone."""
    async with ticket_lock(ticket_id):
        with get_db_session(tenant_id) as session:
            current = load_ticket(session, ticket_id)
            if current is None:
                return None
            closed = close(current)
            save_ticket(session, closed)

    payload = closed.to_event()
    realtime.emit_ticket(tenant_id, "delete", payload)
    realtime.emit_ticket(tenant_id, "update", payload)
    return closed

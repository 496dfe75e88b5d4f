"""Campaign confirmation detection and re-dispatch."""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import text

from ticketflow.infra.database import get_db_session
from ticketflow.infra.metrics import campaign_dispatch_enqueued_total
from ticketflow.infra.queue import enqueue_campaign_dispatch
from ticketflow.logging.event_logger import log_event
from ticketflow.models.ticket import TicketState
from ticketflow.services import ticket_service

logger = logging.getLogger(__name__)

# Zero-width non-joiner embedded in every campaign-generated body
CAMPAIGN_MARKER = "\u200c"
_MARKER_PATTERN = re.compile(CAMPAIGN_MARKER)


def is_campaign_body(body: Optional[str]) -> bool:
    return isinstance(body, str) and _MARKER_PATTERN.search(body) is not None


def strip_marker(body: Optional[str]) -> Optional[str]:
    if not isinstance(body, str):
        return body
    return _MARKER_PATTERN.sub("", body)


def mark_body(body: str) -> str:
    """Prefix a body with the campaign marker so its echo can be recognized."""
    return f"{CAMPAIGN_MARKER}{body}"


async def close_campaign_ticket(tenant_id: int, message_id: str) -> Optional[TicketState]:
    """
    Close the ticket linked to the shipping row that sent a campaign message.

    Args:
        tenant_id: Tenant scope
        message_id: Protocol id of the self-sent campaign message

    Returns:
        Closed ticket, or None when no shipping row/ticket matches
    """
    with get_db_session(tenant_id) as session:
        row = session.execute(
            text("""
                SELECT id, ticket_id FROM campaign_shippings
                WHERE tenant_id = :tenant_id AND message_id = :message_id
                LIMIT 1
            """),
            {"tenant_id": tenant_id, "message_id": message_id},
        ).fetchone()

    if not row or row.ticket_id is None:
        return None

    closed = await ticket_service.close_ticket(row.ticket_id, tenant_id)
    if closed is not None:
        logger.info(f"Closed ticket {closed.id} after campaign shipping {row.id} was sent")
    return closed


def confirm_pending_shippings(tenant_id: int, number: str) -> List[dict]:
    """
    Mark in-flight confirmation requests for a number as confirmed.

    Only rows whose confirmation is still unset, whose confirmation was
    requested, and whose campaign requires confirmation are touched. The
    flag moves from unset to true once; replays match nothing.

    Returns:
        Confirmed rows as {"id", "campaign_id"} dicts
    """
    if not number:
        return []

    now = datetime.now(timezone.utc)
    confirmed = []
    with get_db_session(tenant_id) as session:
        rows = session.execute(
            text("""
                SELECT cs.id, cs.campaign_id
                FROM campaign_shippings cs
                JOIN campaigns c ON c.id = cs.campaign_id
                WHERE cs.tenant_id = :tenant_id
                  AND cs.number = :number
                  AND cs.confirmation IS NULL
                  AND cs.confirmation_requested_at IS NOT NULL
                  AND c.confirmation = :required
            """),
            {"tenant_id": tenant_id, "number": number, "required": True},
        ).fetchall()

        for row in rows:
            result = session.execute(
                text("""
                    UPDATE campaign_shippings
                    SET confirmation = :confirmation, confirmed_at = :now
                    WHERE id = :id AND confirmation IS NULL
                """),
                {"confirmation": True, "now": now, "id": row.id},
            )
            if result.rowcount:
                confirmed.append({"id": row.id, "campaign_id": row.campaign_id})

    return confirmed


async def handle_inbound_reply(tenant_id: int, number: str) -> List[str]:
    """
    Confirm pending shippings for a replying number and re-dispatch them.

    The confirmation is committed before any job is enqueued; enqueue
    failures are logged and never undo it.

    Returns:
        IDs of the enqueued jobs
    """
    confirmed = confirm_pending_shippings(tenant_id, number)
    job_ids = []
    for shipping in confirmed:
        try:
            job_id = enqueue_campaign_dispatch(shipping["id"], shipping["campaign_id"])
        except Exception as e:
            campaign_dispatch_enqueued_total.labels(status="failure").inc()
            logger.error(f"Failed to enqueue dispatch for campaign shipping {shipping['id']}: {e}")
            await log_event(
                tenant_id=tenant_id,
                event_type="campaign_enqueue_failed",
                status="failure",
                payload={"campaignShippingId": shipping["id"], "campaignId": shipping["campaign_id"], "error": str(e)},
            )
            continue

        campaign_dispatch_enqueued_total.labels(status="success").inc()
        logger.info(f"Enqueued dispatch job {job_id} for campaign shipping {shipping['id']}")
        job_ids.append(job_id)

    return job_ids

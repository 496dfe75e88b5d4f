"""Worker function for dispatching confirmed campaign shippings."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy import text

from ticketflow.adapters import gateway_client
from ticketflow.infra.database import get_db_session
from ticketflow.infra.metrics import queue_jobs_total
from ticketflow.services.campaign_service import close_campaign_ticket, mark_body

logger = logging.getLogger(__name__)


def dispatch_campaign_shipping(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Send the campaign message of one shipping row (called by RQ worker).

    This is a synchronous wrapper around the async gateway call. Raising
    lets RQ apply the job's retry policy.

    Args:
        payload: {"campaignShippingId": int, "campaignId": int}

    Returns:
        Result dict with status
    """
    shipping_id = payload["campaignShippingId"]
    campaign_id = payload["campaignId"]

    with get_db_session() as session:
        row = session.execute(
            text("""
                SELECT cs.id, cs.tenant_id, cs.number, cs.message, cs.delivered_at, c.line_id
                FROM campaign_shippings cs
                JOIN campaigns c ON c.id = cs.campaign_id
                WHERE cs.id = :id AND cs.campaign_id = :campaign_id
            """),
            {"id": shipping_id, "campaign_id": campaign_id},
        ).fetchone()

    if not row:
        logger.warning(f"Campaign shipping {shipping_id} of campaign {campaign_id} not found")
        queue_jobs_total.labels(queue="campaigns", status="skipped").inc()
        return {"status": "not_found", "campaignShippingId": shipping_id}

    if row.delivered_at:
        queue_jobs_total.labels(queue="campaigns", status="skipped").inc()
        return {"status": "already_delivered", "campaignShippingId": shipping_id}

    if not row.message or row.line_id is None:
        logger.warning(f"Campaign shipping {shipping_id} has nothing to send")
        queue_jobs_total.labels(queue="campaigns", status="skipped").inc()
        return {"status": "skipped", "campaignShippingId": shipping_id}

    try:
        response = asyncio.run(
            gateway_client.send_text(row.line_id, gateway_client.user_jid(row.number), mark_body(row.message))
        )
    except Exception as e:
        queue_jobs_total.labels(queue="campaigns", status="failed").inc()
        logger.error(f"Campaign shipping {shipping_id} dispatch failed: {e}")
        raise

    sent_id = (response.get("key") or {}).get("id") if isinstance(response, dict) else None

    with get_db_session(row.tenant_id) as session:
        session.execute(
            text("""
                UPDATE campaign_shippings
                SET delivered_at = :now, message_id = COALESCE(:message_id, message_id)
                WHERE id = :id
            """),
            {"now": datetime.now(timezone.utc), "message_id": sent_id, "id": shipping_id},
        )
        echo_stored = bool(sent_id) and session.execute(
            text("SELECT 1 FROM messages WHERE tenant_id = :tenant_id AND id = :id"),
            {"tenant_id": row.tenant_id, "id": sent_id},
        ).fetchone() is not None

    # The echo webhook can beat the send response; it found no shipping row then
    if echo_stored:
        asyncio.run(close_campaign_ticket(row.tenant_id, sent_id))

    queue_jobs_total.labels(queue="campaigns", status="completed").inc()
    logger.info(f"Campaign shipping {shipping_id} dispatched to {row.number}")
    return {"status": "delivered", "campaignShippingId": shipping_id, "messageId": sent_id}

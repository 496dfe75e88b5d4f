"""Event logging service."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from sqlalchemy import text
from ticketflow.infra.database import get_db_session

logger = logging.getLogger(__name__)


async def log_event(
    tenant_id: int,
    event_type: str,
    status: str = "success",
    latency_ms: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
    ticket_id: Optional[int] = None,
    message_id: Optional[str] = None,
) -> None:
    """
    Log an event to event_logs table.

    Audit logging must never break the pipeline, so storage failures are
    reported through the application logger instead of raised.

    Args:
        tenant_id: Tenant ID
        event_type: Event type (e.g., 'media_download_failed', 'campaign_enqueue_failed')
        status: 'success' | 'failure'
        latency_ms: Latency in milliseconds
        payload: Additional payload (stored as JSON text)
        ticket_id: Optional ticket ID
        message_id: Optional protocol message ID
    """
    try:
        with get_db_session(tenant_id) as session:
            session.execute(
                text("""
                    INSERT INTO event_logs (
                        tenant_id, ticket_id, message_id, event_type,
                        status, latency_ms, payload, created_at
                    ) VALUES (
                        :tenant_id, :ticket_id, :message_id, :event_type,
                        :status, :latency_ms, :payload, :created_at
                    )
                """),
                {
                    "tenant_id": tenant_id,
                    "ticket_id": ticket_id,
                    "message_id": message_id,
                    "event_type": event_type,
                    "status": status,
                    "latency_ms": latency_ms,
                    "payload": json.dumps(payload or {}, default=str),
                    "created_at": datetime.now(timezone.utc),
                }
            )
    except Exception as e:
        logger.warning(f"Failed to write event log {event_type}: {e}")

"""Realtime fan-out over Redis pub/sub, scoped by tenant."""

import json
import logging
from typing import Any, Dict, Optional

from ticketflow.infra.metrics import realtime_events_total
from ticketflow.infra.queue import redis_conn

logger = logging.getLogger(__name__)


def channel_name(tenant_id: int, event: str) -> str:
    """Channel naming convention shared with the realtime transport."""
    return f"company-{tenant_id}-{event}"


def publish(tenant_id: int, event: str, payload: Dict[str, Any]) -> None:
    """
    Publish an event to the tenant's channel.

    Fire-and-forget: publish failures are logged and never propagate.
    """
    channel = channel_name(tenant_id, event)
    try:
        redis_conn.publish(channel, json.dumps(payload, default=str))
        realtime_events_total.labels(event=event, status="success").inc()
    except Exception as e:
        realtime_events_total.labels(event=event, status="failure").inc()
        logger.warning(f"Realtime publish to {channel} failed: {e}")


def emit_ticket(tenant_id: int, action: str, ticket: Dict[str, Any]) -> None:
    """Emit a `ticket` event with action 'update' or 'delete'."""
    publish(tenant_id, "ticket", {
        "action": action,
        "ticket": ticket,
        "ticketId": ticket.get("id"),
    })


def emit_app_message(
    tenant_id: int,
    action: str,
    message: Dict[str, Any],
    ticket: Optional[Dict[str, Any]] = None,
) -> None:
    """Emit an `appMessage` event with action 'create' or 'update'."""
    payload: Dict[str, Any] = {"action": action, "message": message}
    if ticket is not None:
        payload["ticket"] = ticket
    publish(tenant_id, "appMessage", payload)

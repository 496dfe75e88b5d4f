"""Webhooks API router for events posted by the transport gateway."""

import logging
import time
import uuid

from fastapi import APIRouter, Depends, HTTPException

from ticketflow.api.models import AckBatchRequest, EventResult, InboundBatchRequest, WebhookBatchResponse
from ticketflow.infra.auth import verify_gateway_token
from ticketflow.logging.event_logger import log_event
from ticketflow.services.event_pipeline import EventOutcome, handle_ack_update, handle_inbound_event
from ticketflow.services.line_context_service import load_line_context

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_gateway_token)])


def _result(outcome: EventOutcome) -> EventResult:
    return EventResult(
        id=outcome.message_id,
        outcome=outcome.outcome,
        reason=outcome.reason,
        ticket_id=outcome.ticket_id,
    )


def _load_line(tenant_id: int, line_id: int):
    try:
        return load_line_context(tenant_id, line_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/webhooks/lines/{line_id}/messages",
    tags=["Webhooks"],
    response_model=WebhookBatchResponse,
)
async def receive_messages(line_id: int, batch: InboundBatchRequest):
    """
    Handle a batch of inbound protocol events for one line.

    Events are processed in order. A failing event is logged and reported
    in the response; the rest of the batch still runs.
    """
    start_time = time.time()
    line = _load_line(batch.tenant_id, line_id)

    results = []
    for event in batch.messages:
        try:
            outcome = await handle_inbound_event(event, line)
        except Exception as e:
            error_id = str(uuid.uuid4())
            logger.error(f"Event {event.key.id} failed (error id {error_id}): {e}", exc_info=True)
            await log_event(
                tenant_id=batch.tenant_id,
                event_type="event_processing_failed",
                status="failure",
                payload={"error": str(e), "error_id": error_id, "lineId": line_id},
                message_id=event.key.id,
            )
            outcome = EventOutcome(event.key.id, "failed", reason=f"error_id:{error_id}")
        results.append(_result(outcome))

    return WebhookBatchResponse(
        status="success",
        processed=len(results),
        results=results,
        latency_ms=int((time.time() - start_time) * 1000),
    )


@router.post(
    "/webhooks/lines/{line_id}/updates",
    tags=["Webhooks"],
    response_model=WebhookBatchResponse,
)
async def receive_updates(line_id: int, batch: AckBatchRequest):
    """Handle a batch of delivery status updates for one line."""
    start_time = time.time()
    line = _load_line(batch.tenant_id, line_id)

    results = []
    for update in batch.updates:
        try:
            outcome = await handle_ack_update(update, line)
        except Exception as e:
            error_id = str(uuid.uuid4())
            logger.error(f"Update for {update.key.id} failed (error id {error_id}): {e}", exc_info=True)
            await log_event(
                tenant_id=batch.tenant_id,
                event_type="event_processing_failed",
                status="failure",
                payload={"error": str(e), "error_id": error_id, "lineId": line_id, "update": update.update},
                message_id=update.key.id,
            )
            outcome = EventOutcome(update.key.id, "failed", reason=f"error_id:{error_id}")
        results.append(_result(outcome))

    return WebhookBatchResponse(
        status="success",
        processed=len(results),
        results=results,
        latency_ms=int((time.time() - start_time) * 1000),
    )

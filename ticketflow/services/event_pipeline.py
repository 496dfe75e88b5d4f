"""Inbound event pipeline: classify, filter, persist, update ticket, side effects."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ticketflow.infra import realtime
from ticketflow.infra.database import get_db_session
from ticketflow.infra.error_handler import MediaDownloadError
from ticketflow.infra.metrics import ack_updates_total, event_processing_duration, inbound_events_total
from ticketflow.logging.event_logger import log_event
from ticketflow.models.content import ContentKind, MEDIA_KINDS, OUTBOUND_STORABLE_KINDS, QUOTABLE_KINDS
from ticketflow.models.event import AckUpdate, InboundEvent
from ticketflow.models.message import CanonicalMessage
from ticketflow.models.tenant import LineContext
from ticketflow.services import campaign_service, media_service, message_store, ticket_service
from ticketflow.services.ack_mapper import map_ack
from ticketflow.services.body_extractor import extract_body
from ticketflow.services.greeting_service import GreetingRequest, greeting_controller
from ticketflow.services.group_gate import jid_digits, rejection_reason
from ticketflow.services.quoted_context import resolve_quoted
from ticketflow.services.ticket_state import MessageFacts
from ticketflow.services.type_classifier import classify, inner_envelope, unwrap

logger = logging.getLogger(__name__)

# protocolMessage.type for a revoked ("deleted for everyone") message
PROTOCOL_REVOKE = (0, "REVOKE")
# messageStubType carried by a revoke arriving as a status update
STUB_REVOKE = 1


@dataclass
class EventOutcome:
    message_id: str
    outcome: str  # created | updated | edited | deleted | dropped | ignored | failed | stale | not_found
    reason: Optional[str] = None
    ticket_id: Optional[int] = None


def _contact_number(jid: Optional[str]) -> str:
    """Digits of a conversation id, or its raw user part when it has none."""
    digits = jid_digits(jid)
    if digits:
        return digits
    return (jid or "").split("@", 1)[0]


def _protocol_node(message: Optional[Dict[str, Any]], kind: ContentKind) -> Optional[Dict[str, Any]]:
    """protocolMessage carried by the event, directly or inside an edit wrapper."""
    if not isinstance(message, dict):
        return None
    if kind == ContentKind.EDITED:
        inner = inner_envelope(message, kind)
        if inner is None or classify(inner) != ContentKind.PROTOCOL:
            return None
        message = inner
    elif kind != ContentKind.PROTOCOL:
        return None
    node = message.get("protocolMessage")
    return node if isinstance(node, dict) else {}


def _protocol_target(protocol: Dict[str, Any]) -> Optional[str]:
    key = protocol.get("key")
    if isinstance(key, dict) and key.get("id"):
        return str(key["id"])
    return None


def _resolve_contacts(session, line: LineContext, event: InboundEvent) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """
    Upsert the conversation contact and the sender contact.

    Returns:
        (ticket contact, sender contact); the sender is None for self-sent
        group events
    """
    key = event.key
    push_name = None if key.from_me else event.push_name

    if event.is_group:
        group = ticket_service.upsert_contact(
            session, line.tenant_id, line.line_id,
            number=_contact_number(key.remote_jid),
            remote_jid=key.remote_jid,
            is_group=True,
        )
        participant = event.participant_jid
        sender = None
        if participant and not key.from_me:
            sender = ticket_service.upsert_contact(
                session, line.tenant_id, line.line_id,
                number=_contact_number(participant),
                name=push_name,
                remote_jid=participant,
            )
        return group, sender

    contact = ticket_service.upsert_contact(
        session, line.tenant_id, line.line_id,
        number=_contact_number(key.remote_jid),
        name=push_name,
        remote_jid=key.remote_jid,
    )
    return contact, contact


async def handle_inbound_event(event: InboundEvent, line: LineContext) -> EventOutcome:
    """
    Process one inbound protocol event end to end.

    Media download failures abort the event (no message, no ticket change)
    and are recorded in the event log. Any other error propagates to the
    caller.

    Args:
        event: Event as delivered by the gateway
        line: Line context the event arrived on

    Returns:
        EventOutcome describing what happened
    """
    start_time = time.time()
    kind = classify(event.message, event.message_stub_type)

    try:
        outcome = await _process_event(event, line, kind)
    except MediaDownloadError as e:
        logger.error(f"Dropping event {event.key.id}: {e}")
        await log_event(
            tenant_id=line.tenant_id,
            event_type="media_download_failed",
            status="failure",
            latency_ms=int((time.time() - start_time) * 1000),
            payload={"kind": kind.value, "lineId": line.line_id, "error": str(e)},
            message_id=event.key.id,
        )
        outcome = EventOutcome(event.key.id, "failed", reason="media_download_failed")

    inbound_events_total.labels(kind=kind.value, outcome=outcome.outcome).inc()
    event_processing_duration.labels(kind=kind.value).observe(time.time() - start_time)
    return outcome


async def _process_event(event: InboundEvent, line: LineContext, kind: ContentKind) -> EventOutcome:
    key = event.key
    tenant_id = line.tenant_id

    reason = rejection_reason(event, line)
    if reason:
        return EventOutcome(key.id, "dropped", reason=reason)

    protocol = _protocol_node(event.message, kind)
    if protocol is not None:
        target_id = _protocol_target(protocol)
        if protocol.get("type") in PROTOCOL_REVOKE and target_id:
            return await _apply_revoke(line, key.id, target_id)

        edited = protocol.get("editedMessage")
        if not isinstance(edited, dict):
            return EventOutcome(key.id, "ignored", reason="protocol")

        new_body = extract_body(edited, classify(edited))
        if target_id and new_body is not None:
            outcome = await _apply_edit(line, key.id, target_id, new_body)
            if outcome is not None:
                return outcome
        # Edit of a message we never stored: keep it as a new message

    inner_kind, envelope = unwrap(event.message)
    if kind == ContentKind.CALL:
        inner_kind = kind

    if key.from_me and inner_kind not in OUTBOUND_STORABLE_KINDS:
        return EventOutcome(key.id, "ignored", reason="outbound_kind")

    is_media = inner_kind in MEDIA_KINDS
    body = extract_body(event.message, kind)
    if body is None and not is_media:
        return EventOutcome(key.id, "dropped", reason="inert")

    campaign_echo = key.from_me and campaign_service.is_campaign_body(body)
    body = campaign_service.strip_marker(body)

    with get_db_session(tenant_id) as session:
        existing = message_store.find_message(session, tenant_id, key.id)

    stored_media = None
    if is_media and existing is None:
        stored_media = await media_service.acquire_media(line, event.raw(), envelope, inner_kind, message_id=key.id)
        caption = media_service.media_node(envelope, inner_kind).get("caption")
        body = media_service.media_body(campaign_service.strip_marker(caption), stored_media)

    with get_db_session(tenant_id) as session:
        contact, sender = _resolve_contacts(session, line, event)
        ticket = ticket_service.find_or_create_ticket(
            session, tenant_id, line.line_id, contact["id"], is_group=event.is_group,
        )

        quoted_msg_id = None
        if inner_kind in QUOTABLE_KINDS:
            quoted = resolve_quoted(envelope)
            if quoted is not None:
                quoted_msg_id = message_store.find_quoted_id(session, tenant_id, quoted.stanza_id)

        record = CanonicalMessage(
            id=key.id,
            tenant_id=tenant_id,
            ticket_id=ticket.id,
            contact_id=None if key.from_me or sender is None else sender["id"],
            body=body,
            media_type=stored_media.media_type if stored_media else inner_kind.value,
            media_url=stored_media.filename if stored_media else None,
            from_me=key.from_me,
            read=key.from_me,
            ack=map_ack(event.status, key.from_me, inner_kind),
            quoted_msg_id=quoted_msg_id,
            remote_jid=key.remote_jid,
            participant=event.participant_jid,
            data_json=json.dumps(event.raw(), default=str),
        )
        created, row = message_store.save_message(session, record)

    result = await ticket_service.apply_message(
        row["ticket_id"],
        tenant_id,
        MessageFacts(
            from_me=key.from_me,
            created=created,
            is_media=is_media,
            body=row["body"],
            media_filename=row["media_url"],
        ),
    )
    realtime.emit_app_message(
        tenant_id,
        "create" if created else "update",
        message_store.message_event(row),
        ticket=result.ticket.to_event(),
    )

    if created and not key.from_me:
        _maybe_greet(line, event, result.ticket, contact)

    if campaign_echo:
        await campaign_service.close_campaign_ticket(tenant_id, key.id)
    elif created and not key.from_me and not event.is_group:
        await campaign_service.handle_inbound_reply(tenant_id, jid_digits(key.remote_jid))

    return EventOutcome(key.id, "created" if created else "updated", ticket_id=row["ticket_id"])


def _maybe_greet(line: LineContext, event: InboundEvent, ticket, contact: Dict[str, Any]) -> None:
    """Hand the event to the greeting controller; never fails the event."""
    try:
        greeting_controller.trigger(
            GreetingRequest(
                line=line,
                ticket_id=ticket.id,
                remote_jid=event.key.remote_jid,
                contact_name=contact.get("name"),
                contact_number=contact["number"],
            ),
            ticket_user_id=ticket.user_id,
            from_me=event.key.from_me,
            is_group=event.is_group,
        )
    except Exception as e:
        logger.warning(f"Greeting trigger failed for ticket {ticket.id}: {e}")


async def _apply_edit(line: LineContext, event_id: str, target_id: str, new_body: str) -> Optional[EventOutcome]:
    """Apply an edit to a stored message; None when the target is unknown."""
    tenant_id = line.tenant_id
    with get_db_session(tenant_id) as session:
        row = message_store.apply_edit(session, tenant_id, target_id, campaign_service.strip_marker(new_body))
    if row is None:
        return None

    result = await ticket_service.apply_message(
        row["ticket_id"],
        tenant_id,
        MessageFacts(from_me=row["from_me"], created=False, body=row["body"], media_filename=row["media_url"]),
    )
    realtime.emit_app_message(tenant_id, "update", message_store.message_event(row), ticket=result.ticket.to_event())
    logger.info(f"Message {target_id} edited by event {event_id}")
    return EventOutcome(event_id, "edited", ticket_id=row["ticket_id"])


async def _apply_revoke(line: LineContext, event_id: str, target_id: str) -> EventOutcome:
    tenant_id = line.tenant_id
    with get_db_session(tenant_id) as session:
        row = message_store.mark_deleted(session, tenant_id, target_id)
    if row is None:
        return EventOutcome(event_id, "ignored", reason="revoke_target_unknown")

    realtime.emit_app_message(tenant_id, "update", message_store.message_event(row))
    return EventOutcome(event_id, "deleted", ticket_id=row["ticket_id"])


async def handle_ack_update(update: AckUpdate, line: LineContext) -> EventOutcome:
    """
    Apply one delivery status update to a stored message.

    Ack only increases unless the update is flagged as a correction; a
    revoke stub soft-deletes the message instead.
    """
    key = update.key
    if update.stub_type == STUB_REVOKE:
        outcome = await _apply_revoke(line, key.id, key.id)
        ack_updates_total.labels(outcome=outcome.outcome).inc()
        return outcome

    if update.status is None:
        ack_updates_total.labels(outcome="ignored").inc()
        return EventOutcome(key.id, "ignored", reason="no_status")

    ack = map_ack(update.status, key.from_me)
    with get_db_session(line.tenant_id) as session:
        outcome, row = message_store.update_ack(session, line.tenant_id, key.id, ack, correction=update.correction)

    ack_updates_total.labels(outcome=outcome).inc()
    if outcome != "applied":
        return EventOutcome(key.id, outcome)

    realtime.emit_app_message(line.tenant_id, "update", message_store.message_event(row))
    return EventOutcome(key.id, "updated", ticket_id=row["ticket_id"])

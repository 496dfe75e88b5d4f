"""Ticket status transitions driven by persisted messages.

`transition` is a pure function: it takes the current ticket snapshot and
the facts of one persisted message and returns the next snapshot together
with the notifications the change requires. Callers apply it under the
per-ticket lock held by ticket_service.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ticketflow.models.ticket import TicketState, TicketStatus


@dataclass(frozen=True)
class MessageFacts:
    """What the pipeline learned about one persisted message."""
    from_me: bool
    created: bool  # False for replays and metadata-only updates
    is_media: bool = False
    body: Any = None
    media_filename: Optional[str] = None
    unread_count: Optional[int] = None


@dataclass(frozen=True)
class TicketTransition:
    ticket: TicketState
    reopened: bool = False
    # Media reopenings notify with freshly joined contact/queue/user data
    reload_associations: bool = False
    # Set when last_message fell back to the filename because the body was not a string
    warning: Optional[str] = None


def resolve_last_message(body: Any, media_filename: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return (last_message, warning)."""
    if isinstance(body, str):
        return body, None
    warning = None
    if body is not None:
        warning = f"Non-string message body of type {type(body).__name__}; using media filename"
    return media_filename, warning


def transition(ticket: TicketState, facts: MessageFacts) -> TicketTransition:
    """
    Compute the ticket state after a message is persisted.

    - closed + new inbound message: reopen as pending; the assignee is
      cleared for conversational messages and kept for media.
    - open/pending: status and assignee untouched.
    - last_message follows the resolved body, or the media filename.
    - unread counter: copied from the cache for inbound, reset by new outbound.
    """
    changes = {}
    reopened = False

    if not facts.from_me and facts.created and ticket.status == TicketStatus.CLOSED:
        reopened = True
        changes["status"] = TicketStatus.PENDING
        if not facts.is_media:
            changes["user_id"] = None

    last_message, warning = resolve_last_message(facts.body, facts.media_filename)
    if last_message is not None:
        changes["last_message"] = last_message

    if facts.from_me and facts.created:
        changes["unread_messages"] = 0
    elif facts.unread_count is not None:
        changes["unread_messages"] = facts.unread_count

    return TicketTransition(
        ticket=ticket.evolve(**changes),
        reopened=reopened,
        reload_associations=reopened and facts.is_media,
        warning=warning,
    )


def close(ticket: TicketState) -> TicketState:
    """Closed snapshot of a ticket (campaign replies and manual closes)."""
    return ticket.evolve(status=TicketStatus.CLOSED)

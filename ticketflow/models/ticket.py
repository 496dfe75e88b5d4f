"""Ticket state as seen by the event pipeline."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Dict, Any


class TicketStatus(str, Enum):
    OPEN = "open"
    PENDING = "pending"
    CLOSED = "closed"


@dataclass(frozen=True)
class TicketState:
    """Snapshot of the mutable ticket fields this core reads and writes."""
    id: int
    tenant_id: int
    contact_id: int
    status: TicketStatus
    line_id: Optional[int] = None
    last_message: Optional[str] = None
    user_id: Optional[int] = None
    queue_id: Optional[int] = None
    is_group: bool = False
    unread_messages: int = 0
    # Joined data reloaded for UI notifications (contact/queue/user)
    associations: Dict[str, Any] = field(default_factory=dict, compare=False)

    def evolve(self, **changes) -> "TicketState":
        return replace(self, **changes)

    def to_event(self) -> Dict[str, Any]:
        """Realtime payload shape."""
        payload = {
            "id": self.id,
            "status": self.status.value,
            "lastMessage": self.last_message,
            "contactId": self.contact_id,
            "userId": self.user_id,
            "queueId": self.queue_id,
            "whatsappId": self.line_id,
            "isGroup": self.is_group,
            "unreadMessages": self.unread_messages,
        }
        payload.update(self.associations)
        return payload

from .content import ContentKind
from .event import InboundEvent, AckUpdate, MessageKey
from .message import CanonicalMessage
from .ticket import TicketState, TicketStatus
from .tenant import LineContext

__all__ = [
    "ContentKind",
    "InboundEvent",
    "AckUpdate",
    "MessageKey",
    "CanonicalMessage",
    "TicketState",
    "TicketStatus",
    "LineContext",
]

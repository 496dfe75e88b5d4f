"""Map transport delivery statuses onto the canonical 0-3 ack level."""

from typing import Optional, Union

from ticketflow.models.content import ContentKind

ACK_QUEUED = 0
ACK_SENT = 1
ACK_DELIVERED = 2
ACK_READ = 3

# Numeric codes the transport uses for the same statuses
STATUS_CODES = {
    0: "ERROR",
    1: "PENDING",
    2: "SERVER_ACK",
    3: "DELIVERY_ACK",
    4: "READ",
    5: "PLAYED",
}


def normalize_status(status: Optional[Union[int, str]]) -> Optional[str]:
    """Return the status name for a name or numeric code, None if unknown."""
    if status is None or isinstance(status, bool):
        return None
    if isinstance(status, int):
        return STATUS_CODES.get(status)
    text = str(status).strip()
    if text.isdigit():
        return STATUS_CODES.get(int(text))
    text = text.upper()
    return text if text in STATUS_CODES.values() else None


def map_ack(status: Optional[Union[int, str]], from_me: bool, kind: Optional[ContentKind] = None) -> int:
    """
    Compute the canonical ack level for a transport status.

    Rows are evaluated top to bottom; a self-sent reaction still pending
    is shown as read since reactions get no further receipts.
    """
    name = normalize_status(status)

    if name == "PENDING" and from_me and kind == ContentKind.REACTION:
        return ACK_READ
    if name in ("PENDING", "SERVER_ACK"):
        return ACK_SENT
    if name == "DELIVERY_ACK":
        return ACK_DELIVERED
    if name in ("READ", "PLAYED"):
        return ACK_READ
    return ACK_QUEUED

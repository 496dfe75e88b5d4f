"""Early admission filters applied before any persistence."""

import re
from typing import Optional

from ticketflow.models.event import BROADCAST_JID, GROUP_SUFFIX, InboundEvent
from ticketflow.models.tenant import LineContext


def is_group_jid(remote_jid: Optional[str]) -> bool:
    return bool(remote_jid) and remote_jid.endswith(GROUP_SUFFIX)


def jid_digits(jid: Optional[str]) -> str:
    """Digits of the user part of a conversation id (`5511999@s.whatsapp.net` -> `5511999`)."""
    if not jid:
        return ""
    user = jid.split("@", 1)[0].split(":", 1)[0]
    return re.sub(r"\D", "", user)


def should_block_group(remote_jid: Optional[str], block_group_messages: bool) -> bool:
    """True when a group event must be dropped for this tenant."""
    return block_group_messages and is_group_jid(remote_jid)


def rejection_reason(event: InboundEvent, line: LineContext) -> Optional[str]:
    """
    Decide whether an event is admitted.

    Returns:
        None when admitted, otherwise a short reason used for logs and metrics
    """
    remote_jid = event.key.remote_jid
    if remote_jid == BROADCAST_JID:
        return "broadcast"
    if should_block_group(remote_jid, line.block_group_messages):
        return "group_blocked"
    if line.line_number and not is_group_jid(remote_jid) and jid_digits(remote_jid) == line.line_number:
        return "own_number"
    return None

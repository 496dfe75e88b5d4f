"""Automatic greeting replies for unattended lines.

A greeting is sent at most once per ticket/contact within the suppression
window, and bursts of inbound messages on one ticket coalesce into a single
send through a per-ticket debounce timer.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Hashable, Optional, Set

from ticketflow.adapters import gateway_client
from ticketflow.infra.config import config
from ticketflow.infra.database import get_db_session
from ticketflow.infra.metrics import greetings_sent_total
from ticketflow.models.tenant import LineContext
from ticketflow.services import message_store
from ticketflow.services.group_gate import jid_digits
from ticketflow.services.media_service import tenant_directory

logger = logging.getLogger(__name__)


class RecencyMap:
    """Bounded map of recently greeted keys with TTL expiry and LRU eviction."""

    def __init__(self, ttl_seconds: float, capacity: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.capacity = capacity
        self._clock = clock
        self._entries: "OrderedDict[Hashable, float]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _purge_expired(self, now: float) -> None:
        while self._entries:
            key, expires_at = next(iter(self._entries.items()))
            if expires_at > now:
                break
            self._entries.popitem(last=False)

    def seen(self, key: Hashable) -> bool:
        now = self._clock()
        expires_at = self._entries.get(key)
        if expires_at is None:
            return False
        if expires_at <= now:
            del self._entries[key]
            return False
        return True

    def mark(self, key: Hashable) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = now + self.ttl_seconds
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)


@dataclass(frozen=True)
class GreetingRequest:
    line: LineContext
    ticket_id: int
    remote_jid: str
    contact_name: Optional[str]
    contact_number: str


def render_greeting(template: str, contact_name: Optional[str]) -> str:
    return template.replace("{{name}}", contact_name or "")


class GreetingController:
    """Decides, debounces and sends greeting replies."""

    def __init__(
        self,
        debounce_seconds: float = config.GREETING_DEBOUNCE_SECONDS,
        suppression_seconds: float = config.GREETING_SUPPRESSION_SECONDS,
        capacity: int = config.GREETING_RECENCY_CAPACITY,
    ):
        self.debounce_seconds = debounce_seconds
        self.suppression_seconds = suppression_seconds
        self.recent = RecencyMap(suppression_seconds, capacity)
        self._timers: Dict[int, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    def rejection_reason(
        self,
        line: LineContext,
        ticket_user_id: Optional[int],
        from_me: bool,
        is_group: bool,
        remote_jid: str,
    ) -> Optional[str]:
        """Static gates; None when the event may trigger a greeting."""
        if from_me:
            return "outbound"
        if line.queue_count > 0:
            return "line_has_queues"
        if ticket_user_id is not None:
            return "ticket_assigned"
        if not line.greeting_message:
            return "no_greeting"
        if is_group and jid_digits(remote_jid) not in line.greeting_allow_list:
            return "group"
        return None

    def is_suppressed(self, ticket_id: int, contact_number: str) -> bool:
        if self.recent.seen(("ticket", ticket_id)) or self.recent.seen(("contact", contact_number)):
            return True
        with get_db_session() as session:
            return message_store.has_recent_outbound(session, ticket_id, int(self.suppression_seconds))

    def trigger(
        self,
        request: GreetingRequest,
        ticket_user_id: Optional[int],
        from_me: bool,
        is_group: bool,
    ) -> bool:
        """
        Admit a greeting trigger and (re)start the ticket's debounce timer.

        Returns:
            True when a send was scheduled
        """
        reason = self.rejection_reason(request.line, ticket_user_id, from_me, is_group, request.remote_jid)
        if reason is None and self.is_suppressed(request.ticket_id, request.contact_number):
            reason = "recently_greeted"
        if reason is not None:
            logger.debug(f"Greeting skipped for ticket {request.ticket_id}: {reason}")
            return False

        self.schedule(request)
        return True

    def schedule(self, request: GreetingRequest) -> None:
        """Cancel the pending timer for the ticket, if any, and start a new one."""
        loop = asyncio.get_running_loop()
        pending = self._timers.pop(request.ticket_id, None)
        if pending is not None:
            pending.cancel()
        self._timers[request.ticket_id] = loop.call_later(self.debounce_seconds, self._fire, request)

    def pending(self, ticket_id: int) -> bool:
        return ticket_id in self._timers

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _fire(self, request: GreetingRequest) -> None:
        self._timers.pop(request.ticket_id, None)
        if self.recent.seen(("ticket", request.ticket_id)) or self.recent.seen(("contact", request.contact_number)):
            return
        self.recent.mark(("ticket", request.ticket_id))
        self.recent.mark(("contact", request.contact_number))
        task = asyncio.ensure_future(self.send(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def send(self, request: GreetingRequest) -> bool:
        """Send the greeting; failures are logged and swallowed."""
        line = request.line
        body = render_greeting(line.greeting_message or "", request.contact_name)
        try:
            if line.greeting_media_path:
                media_path = Path(line.greeting_media_path)
                if not media_path.is_absolute():
                    media_path = tenant_directory(line.tenant_id) / media_path
                await gateway_client.send_media(line.line_id, request.remote_jid, str(media_path), caption=body)
            else:
                await gateway_client.send_text(line.line_id, request.remote_jid, body)
        except Exception as e:
            greetings_sent_total.labels(status="failure").inc()
            logger.warning(f"Greeting send failed for ticket {request.ticket_id}: {e}")
            return False

        greetings_sent_total.labels(status="success").inc()
        logger.info(f"Greeting sent for ticket {request.ticket_id}")
        return True


greeting_controller = GreetingController()

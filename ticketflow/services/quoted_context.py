"""Resolve which earlier message an event replies to."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotedContext:
    stanza_id: str
    participant: Optional[str] = None
    quoted_message: Optional[Dict[str, Any]] = None


Strategy = Callable[[Dict[str, Any]], Optional[QuotedContext]]


def _from_context_info(content_key: str) -> Strategy:
    def strategy(message: Dict[str, Any]) -> Optional[QuotedContext]:
        content = message.get(content_key)
        if not isinstance(content, dict):
            return None
        context = content.get("contextInfo")
        if not isinstance(context, dict):
            return None
        stanza_id = context.get("stanzaId")
        if not stanza_id:
            return None
        quoted = context.get("quotedMessage")
        return QuotedContext(
            stanza_id=str(stanza_id),
            participant=context.get("participant"),
            quoted_message=quoted if isinstance(quoted, dict) else None,
        )
    strategy.__name__ = f"from_{content_key}"
    return strategy


def _from_reaction_key(message: Dict[str, Any]) -> Optional[QuotedContext]:
    reaction = message.get("reactionMessage")
    if not isinstance(reaction, dict):
        return None
    key = reaction.get("key")
    if not isinstance(key, dict) or not key.get("id"):
        return None
    return QuotedContext(stanza_id=str(key["id"]), participant=key.get("participant"))


# Precedence is significant: the first strategy yielding a context wins
STRATEGIES: List[Strategy] = [
    _from_context_info("extendedTextMessage"),
    _from_context_info("imageMessage"),
    _from_context_info("videoMessage"),
    _from_context_info("audioMessage"),
    _from_context_info("documentMessage"),
    _from_context_info("stickerMessage"),
    _from_context_info("locationMessage"),
    _from_context_info("contactMessage"),
    _from_context_info("buttonsResponseMessage"),
    _from_context_info("listResponseMessage"),
    _from_context_info("templateButtonReplyMessage"),
    _from_reaction_key,
]


def resolve_quoted(message: Optional[Dict[str, Any]]) -> Optional[QuotedContext]:
    """
    Find the quoted-message reference of a content envelope.

    Args:
        message: Content envelope

    Returns:
        QuotedContext from the first matching strategy, or None
    """
    if not isinstance(message, dict):
        return None

    for strategy in STRATEGIES:
        try:
            found = strategy(message)
        except Exception as e:
            logger.debug(f"Quoted context strategy {strategy.__name__} failed: {e}")
            continue
        if found is not None:
            return found
    return None

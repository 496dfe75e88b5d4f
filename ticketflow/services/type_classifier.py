"""Classify a protocol content envelope into a ContentKind."""

from typing import Any, Dict, Optional, Tuple

from ticketflow.models.content import ContentKind, WRAPPER_KINDS

# Envelope keys that describe the message rather than carry content
METADATA_KEYS = frozenset({"messageContextInfo", "senderKeyDistributionMessage"})

# Stub types the transport uses for missed voice/video calls (1:1 and group)
CALL_STUB_TYPES = frozenset({40, 41, 45, 46})

# Kinds that never appear as envelope keys
_SYNTHETIC_KINDS = frozenset({ContentKind.ADVERTISING, ContentKind.UNCLASSIFIED})

_KIND_BY_KEY = {kind.value: kind for kind in ContentKind if kind not in _SYNTHETIC_KINDS}


def content_key(message: Any) -> Optional[str]:
    """Return the first content key of an envelope, skipping metadata keys."""
    if not isinstance(message, dict):
        return None

    for key, value in message.items():
        if key in METADATA_KEYS or value is None:
            continue
        return key

    # Envelopes carrying only key distribution are still classifiable (as inert)
    if message.get("senderKeyDistributionMessage") is not None:
        return "senderKeyDistributionMessage"
    return None


def _has_external_ad_reply(content: Any) -> bool:
    if not isinstance(content, dict):
        return False
    context = content.get("contextInfo")
    if not isinstance(context, dict):
        return False
    return bool(context.get("externalAdReply"))


def classify(message: Optional[Dict[str, Any]], stub_type: Optional[int] = None) -> ContentKind:
    """
    Classify a content envelope.

    Pure function of the envelope (and, for envelope-less call notices, the
    event's stub type). Unknown or malformed envelopes yield UNCLASSIFIED.

    Args:
        message: Content envelope from the protocol event
        stub_type: Optional messageStubType of the event

    Returns:
        ContentKind tag
    """
    key = content_key(message)
    if key is None:
        if stub_type in CALL_STUB_TYPES:
            return ContentKind.CALL
        return ContentKind.UNCLASSIFIED

    kind = _KIND_BY_KEY.get(key)
    if kind is None:
        return ContentKind.UNCLASSIFIED

    if kind == ContentKind.EXTENDED_TEXT and _has_external_ad_reply(message[key]):
        return ContentKind.ADVERTISING

    return kind


def inner_envelope(message: Dict[str, Any], kind: ContentKind) -> Optional[Dict[str, Any]]:
    """
    Unwrap one level of a wrapper kind.

    Returns None when the wrapper does not hold a nested envelope.
    """
    if kind not in WRAPPER_KINDS:
        return None

    wrapper = message.get(kind.value)
    if not isinstance(wrapper, dict):
        return None

    inner = wrapper.get("message")
    return inner if isinstance(inner, dict) else None


def unwrap(message: Optional[Dict[str, Any]], max_depth: int = 4) -> Tuple[ContentKind, Optional[Dict[str, Any]]]:
    """
    Follow wrapper kinds down to the innermost classified envelope.

    Returns the innermost kind together with the envelope that holds it.
    """
    kind = classify(message)
    current = message
    for _ in range(max_depth):
        if kind not in WRAPPER_KINDS or kind == ContentKind.EDITED:
            break
        inner = inner_envelope(current, kind)
        if inner is None:
            break
        current = inner
        kind = classify(current)
    return kind, current

"""Extract the display body of a protocol message.

Every ContentKind has exactly one extractor in EXTRACTORS; importing this
module fails if a kind is added to the enum without one. Extractors return:

- the message text, when the kind has natural text;
- a fixed placeholder, when the kind is meaningful but has no text;
- None, when the kind is protocol noise that must not be stored.
"""

import logging
from typing import Any, Callable, Dict, Optional

from ticketflow.models.content import ContentKind
from ticketflow.services.type_classifier import classify, inner_envelope

logger = logging.getLogger(__name__)

PLACEHOLDERS = {
    ContentKind.IMAGE: "Image",
    ContentKind.VIDEO: "Video",
    ContentKind.PTV: "Video",
    ContentKind.AUDIO: "Audio",
    ContentKind.DOCUMENT: "Document",
    ContentKind.STICKER: "Sticker",
    ContentKind.POLL_CREATION: "Poll",
    ContentKind.REQUEST_PAYMENT: "Payment request",
    ContentKind.PRODUCT: "Product",
    ContentKind.ORDER: "Order",
    ContentKind.CALL: "Call",
    ContentKind.HIGHLY_STRUCTURED: "Unsupported message, open it on your device",
}

Extractor = Callable[[Dict[str, Any]], Optional[str]]


def _get(node: Any, *path: str) -> Any:
    """Walk nested dicts; None as soon as a step is missing."""
    for step in path:
        if not isinstance(node, dict):
            return None
        node = node.get(step)
    return node


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value != "":
        return value
    return None


def _placeholder(kind: ContentKind) -> Extractor:
    def extract(message: Dict[str, Any]) -> Optional[str]:
        return PLACEHOLDERS[kind]
    return extract


def _inert(message: Dict[str, Any]) -> Optional[str]:
    return None


def _unwrapping(kind: ContentKind) -> Extractor:
    """Unwrap one level, then delegate to the inner kind's extractor."""
    def extract(message: Dict[str, Any]) -> Optional[str]:
        inner = inner_envelope(message, kind)
        if inner is None:
            return None
        return extract_body(inner, classify(inner))
    return extract


def _conversation(message: Dict[str, Any]) -> Optional[str]:
    return _text(message.get("conversation"))


def _extended_text(message: Dict[str, Any]) -> Optional[str]:
    return _text(_get(message, "extendedTextMessage", "text"))


def _advertising(message: Dict[str, Any]) -> Optional[str]:
    text = _text(_get(message, "extendedTextMessage", "text"))
    if text:
        return text
    return _text(_get(message, "extendedTextMessage", "contextInfo", "externalAdReply", "title"))


def _captioned(kind: ContentKind) -> Extractor:
    def extract(message: Dict[str, Any]) -> Optional[str]:
        return _text(_get(message, kind.value, "caption")) or PLACEHOLDERS[kind]
    return extract


def _document(message: Dict[str, Any]) -> Optional[str]:
    node = message.get(ContentKind.DOCUMENT.value)
    return (
        _text(_get(node, "caption"))
        or _text(_get(node, "fileName"))
        or _text(_get(node, "title"))
        or PLACEHOLDERS[ContentKind.DOCUMENT]
    )


def _location(message: Dict[str, Any], kind: ContentKind = ContentKind.LOCATION) -> Optional[str]:
    node = message.get(kind.value) or {}
    latitude = node.get("degreesLatitude")
    longitude = node.get("degreesLongitude")
    if latitude is None or longitude is None:
        return None
    link = f"https://maps.google.com/maps?q={latitude}%2C{longitude}&z=17"
    label = " - ".join(part for part in (node.get("name"), node.get("address")) if part)
    return f"{label}\n{link}" if label else link


def _live_location(message: Dict[str, Any]) -> Optional[str]:
    return _location(message, ContentKind.LIVE_LOCATION)


def _contact(message: Dict[str, Any]) -> Optional[str]:
    return _text(_get(message, "contactMessage", "vcard")) or _text(_get(message, "contactMessage", "displayName"))


def _contacts_array(message: Dict[str, Any]) -> Optional[str]:
    contacts = _get(message, "contactsArrayMessage", "contacts")
    if not isinstance(contacts, list):
        return None
    vcards = [c.get("vcard") for c in contacts if isinstance(c, dict) and c.get("vcard")]
    return "\n".join(vcards) or None


def _buttons(message: Dict[str, Any]) -> Optional[str]:
    return _text(_get(message, "buttonsMessage", "contentText")) or _text(_get(message, "buttonsMessage", "text"))


def _buttons_response(message: Dict[str, Any]) -> Optional[str]:
    return (
        _text(_get(message, "buttonsResponseMessage", "selectedDisplayText"))
        or _text(_get(message, "buttonsResponseMessage", "selectedButtonId"))
    )


def _list(message: Dict[str, Any]) -> Optional[str]:
    return _text(_get(message, "listMessage", "description")) or _text(_get(message, "listMessage", "title"))


def _list_response(message: Dict[str, Any]) -> Optional[str]:
    return (
        _text(_get(message, "listResponseMessage", "title"))
        or _text(_get(message, "listResponseMessage", "singleSelectReply", "selectedRowId"))
    )


def _template(message: Dict[str, Any]) -> Optional[str]:
    template = message.get("templateMessage") or {}
    for variant in ("hydratedTemplate", "hydratedFourRowTemplate", "fourRowTemplate"):
        text = _text(_get(template, variant, "hydratedContentText")) or _text(_get(template, variant, "content", "namespace"))
        if text:
            return text
    return None


def _template_button_reply(message: Dict[str, Any]) -> Optional[str]:
    return (
        _text(_get(message, "templateButtonReplyMessage", "selectedDisplayText"))
        or _text(_get(message, "templateButtonReplyMessage", "selectedId"))
    )


def _interactive(message: Dict[str, Any]) -> Optional[str]:
    return _text(_get(message, "interactiveMessage", "body", "text")) or _text(
        _get(message, "interactiveMessage", "header", "title")
    )


def _highly_structured(message: Dict[str, Any]) -> Optional[str]:
    return (
        _text(_get(message, "highlyStructuredMessage", "hydratedHsm", "hydratedTemplate", "hydratedContentText"))
        or PLACEHOLDERS[ContentKind.HIGHLY_STRUCTURED]
    )


def _reaction(message: Dict[str, Any]) -> Optional[str]:
    # An empty reaction text is a reaction removal
    return _text(_get(message, "reactionMessage", "text"))


def _protocol(message: Dict[str, Any]) -> Optional[str]:
    """Edits travel as protocol messages carrying the new envelope; everything else is noise."""
    edited = _get(message, "protocolMessage", "editedMessage")
    if isinstance(edited, dict):
        return extract_body(edited, classify(edited))
    return None


def _poll(message: Dict[str, Any]) -> Optional[str]:
    return PLACEHOLDERS[ContentKind.POLL_CREATION]


EXTRACTORS: Dict[ContentKind, Extractor] = {
    ContentKind.CONVERSATION: _conversation,
    ContentKind.EXTENDED_TEXT: _extended_text,
    ContentKind.ADVERTISING: _advertising,
    ContentKind.IMAGE: _captioned(ContentKind.IMAGE),
    ContentKind.VIDEO: _captioned(ContentKind.VIDEO),
    ContentKind.PTV: _captioned(ContentKind.PTV),
    ContentKind.AUDIO: _placeholder(ContentKind.AUDIO),
    ContentKind.DOCUMENT: _document,
    ContentKind.DOCUMENT_WITH_CAPTION: _unwrapping(ContentKind.DOCUMENT_WITH_CAPTION),
    ContentKind.STICKER: _placeholder(ContentKind.STICKER),
    ContentKind.LOCATION: _location,
    ContentKind.LIVE_LOCATION: _live_location,
    ContentKind.CONTACT: _contact,
    ContentKind.CONTACTS_ARRAY: _contacts_array,
    ContentKind.POLL_CREATION: _poll,
    ContentKind.POLL_CREATION_V2: _poll,
    ContentKind.POLL_CREATION_V3: _poll,
    ContentKind.BUTTONS: _buttons,
    ContentKind.BUTTONS_RESPONSE: _buttons_response,
    ContentKind.LIST: _list,
    ContentKind.LIST_RESPONSE: _list_response,
    ContentKind.TEMPLATE: _template,
    ContentKind.TEMPLATE_BUTTON_REPLY: _template_button_reply,
    ContentKind.INTERACTIVE: _interactive,
    ContentKind.HIGHLY_STRUCTURED: _highly_structured,
    ContentKind.REACTION: _reaction,
    ContentKind.REQUEST_PAYMENT: _placeholder(ContentKind.REQUEST_PAYMENT),
    ContentKind.PRODUCT: _placeholder(ContentKind.PRODUCT),
    ContentKind.ORDER: _placeholder(ContentKind.ORDER),
    ContentKind.CALL: _placeholder(ContentKind.CALL),
    ContentKind.EDITED: _unwrapping(ContentKind.EDITED),
    ContentKind.PROTOCOL: _protocol,
    ContentKind.VIEW_ONCE: _unwrapping(ContentKind.VIEW_ONCE),
    ContentKind.VIEW_ONCE_V2: _unwrapping(ContentKind.VIEW_ONCE_V2),
    ContentKind.VIEW_ONCE_V2_EXTENSION: _unwrapping(ContentKind.VIEW_ONCE_V2_EXTENSION),
    ContentKind.EPHEMERAL: _unwrapping(ContentKind.EPHEMERAL),
    ContentKind.SENDER_KEY_DISTRIBUTION: _inert,
    ContentKind.UNCLASSIFIED: _inert,
}

_missing = set(ContentKind) - set(EXTRACTORS)
if _missing:
    raise RuntimeError(f"No body extractor for content kinds: {sorted(k.value for k in _missing)}")


def extract_body(message: Optional[Dict[str, Any]], kind: ContentKind) -> Optional[str]:
    """
    Produce the display body for a content envelope.

    Args:
        message: Content envelope
        kind: Its ContentKind (from classify())

    Returns:
        Display string, placeholder, or None for inert kinds
    """
    if kind == ContentKind.CALL and not isinstance(message, dict):
        return PLACEHOLDERS[ContentKind.CALL]
    if not isinstance(message, dict):
        return None

    try:
        return EXTRACTORS[kind](message)
    except Exception as e:
        logger.warning(f"Body extraction failed for {kind.value}: {e}")
        return None

"""Closed vocabulary of protocol content kinds."""

from enum import Enum


class ContentKind(str, Enum):
    """Content-kind tag of a protocol message envelope.

    Values are the envelope keys the transport uses, so a payload's first
    content key maps directly onto a member.
    """
    CONVERSATION = "conversation"
    EXTENDED_TEXT = "extendedTextMessage"
    ADVERTISING = "advertising"
    IMAGE = "imageMessage"
    VIDEO = "videoMessage"
    PTV = "ptvMessage"
    AUDIO = "audioMessage"
    DOCUMENT = "documentMessage"
    DOCUMENT_WITH_CAPTION = "documentWithCaptionMessage"
    STICKER = "stickerMessage"
    LOCATION = "locationMessage"
    LIVE_LOCATION = "liveLocationMessage"
    CONTACT = "contactMessage"
    CONTACTS_ARRAY = "contactsArrayMessage"
    POLL_CREATION = "pollCreationMessage"
    POLL_CREATION_V2 = "pollCreationMessageV2"
    POLL_CREATION_V3 = "pollCreationMessageV3"
    BUTTONS = "buttonsMessage"
    BUTTONS_RESPONSE = "buttonsResponseMessage"
    LIST = "listMessage"
    LIST_RESPONSE = "listResponseMessage"
    TEMPLATE = "templateMessage"
    TEMPLATE_BUTTON_REPLY = "templateButtonReplyMessage"
    INTERACTIVE = "interactiveMessage"
    HIGHLY_STRUCTURED = "highlyStructuredMessage"
    REACTION = "reactionMessage"
    REQUEST_PAYMENT = "requestPaymentMessage"
    PRODUCT = "productMessage"
    ORDER = "orderMessage"
    CALL = "call"
    EDITED = "editedMessage"
    PROTOCOL = "protocolMessage"
    VIEW_ONCE = "viewOnceMessage"
    VIEW_ONCE_V2 = "viewOnceMessageV2"
    VIEW_ONCE_V2_EXTENSION = "viewOnceMessageV2Extension"
    EPHEMERAL = "ephemeralMessage"
    SENDER_KEY_DISTRIBUTION = "senderKeyDistributionMessage"
    UNCLASSIFIED = "unclassified"


# Kinds whose payload is binary content fetched through the gateway
MEDIA_KINDS = frozenset({
    ContentKind.IMAGE,
    ContentKind.VIDEO,
    ContentKind.PTV,
    ContentKind.AUDIO,
    ContentKind.DOCUMENT,
    ContentKind.STICKER,
})

# Kinds that wrap exactly one inner message
WRAPPER_KINDS = frozenset({
    ContentKind.EDITED,
    ContentKind.VIEW_ONCE,
    ContentKind.VIEW_ONCE_V2,
    ContentKind.VIEW_ONCE_V2_EXTENSION,
    ContentKind.EPHEMERAL,
    ContentKind.DOCUMENT_WITH_CAPTION,
})

# Kinds that can carry a reference to a replied/quoted message
QUOTABLE_KINDS = frozenset({
    ContentKind.EXTENDED_TEXT,
    ContentKind.ADVERTISING,
    ContentKind.IMAGE,
    ContentKind.VIDEO,
    ContentKind.AUDIO,
    ContentKind.DOCUMENT,
    ContentKind.STICKER,
    ContentKind.LOCATION,
    ContentKind.CONTACT,
    ContentKind.BUTTONS_RESPONSE,
    ContentKind.LIST_RESPONSE,
    ContentKind.TEMPLATE_BUTTON_REPLY,
    ContentKind.REACTION,
})

# Kinds a self-sent event may carry and still be worth storing
OUTBOUND_STORABLE_KINDS = frozenset({
    ContentKind.CONVERSATION,
    ContentKind.EXTENDED_TEXT,
    ContentKind.ADVERTISING,
    ContentKind.CONTACT,
    ContentKind.CONTACTS_ARRAY,
    ContentKind.EPHEMERAL,
    ContentKind.PROTOCOL,
    ContentKind.REACTION,
    ContentKind.VIEW_ONCE,
    ContentKind.LOCATION,
    ContentKind.EDITED,
}) | MEDIA_KINDS | {ContentKind.DOCUMENT_WITH_CAPTION}

"""Canonical message record built from a protocol event."""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class CanonicalMessage(BaseModel):
    """Canonical message format persisted for every admitted event."""
    id: str = Field(..., description="Protocol message identifier (idempotency key)")
    tenant_id: int = Field(..., description="Owning tenant")
    ticket_id: int = Field(..., description="Ticket the message belongs to")
    contact_id: Optional[int] = Field(None, description="Sender contact; None when self-sent")
    body: Optional[str] = Field(None, description="Display text")
    media_type: Optional[str] = Field(None, description="Content-kind tag or media subtype")
    media_url: Optional[str] = Field(None, description="Stored media filename")
    from_me: bool = Field(False, description="Direction flag")
    read: bool = Field(False, description="Read flag")
    ack: int = Field(0, ge=0, le=3, description="Canonical ack level")
    quoted_msg_id: Optional[str] = Field(None, description="Quoted message identifier")
    remote_jid: Optional[str] = None
    participant: Optional[str] = None
    data_json: Optional[str] = Field(None, description="Raw payload mirror (JSON text)")
    is_edited: bool = False

    def to_event(self) -> Dict[str, Any]:
        """Realtime payload shape."""
        return {
            "id": self.id,
            "ticketId": self.ticket_id,
            "contactId": self.contact_id,
            "body": self.body,
            "mediaType": self.media_type,
            "mediaUrl": self.media_url,
            "fromMe": self.from_me,
            "read": self.read,
            "ack": self.ack,
            "quotedMsgId": self.quoted_msg_id,
            "remoteJid": self.remote_jid,
            "participant": self.participant,
            "isEdited": self.is_edited,
        }

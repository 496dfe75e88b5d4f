"""Event shapes handed over by the transport gateway."""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Union

GROUP_SUFFIX = "@g.us"
BROADCAST_JID = "status@broadcast"


class MessageKey(BaseModel):
    """Identifies one protocol message within a conversation."""
    id: str = Field(..., description="Protocol message identifier")
    remote_jid: str = Field(..., alias="remoteJid", description="Remote conversation identifier")
    from_me: bool = Field(False, alias="fromMe", description="True when sent by the line itself")
    participant: Optional[str] = Field(None, description="Sender inside a group conversation")

    model_config = {"populate_by_name": True}


class InboundEvent(BaseModel):
    """One `messages.upsert` item from the protocol session."""
    key: MessageKey
    message: Optional[Dict[str, Any]] = Field(None, description="Content envelope")
    push_name: Optional[str] = Field(None, alias="pushName")
    message_timestamp: Optional[int] = Field(None, alias="messageTimestamp")
    status: Optional[Union[int, str]] = Field(None, description="Transport delivery status")
    participant: Optional[str] = None
    message_stub_type: Optional[int] = Field(None, alias="messageStubType")

    model_config = {"populate_by_name": True, "extra": "allow"}

    @property
    def is_group(self) -> bool:
        return self.key.remote_jid.endswith(GROUP_SUFFIX)

    @property
    def participant_jid(self) -> Optional[str]:
        """Sender inside a group; the event-level participant wins over the key's."""
        return self.participant or self.key.participant

    def raw(self) -> Dict[str, Any]:
        """Payload mirror stored alongside the message."""
        return self.model_dump(by_alias=True, exclude_none=True)


class AckUpdate(BaseModel):
    """One `messages.update` item carrying a delivery status change."""
    key: MessageKey
    update: Dict[str, Any] = Field(default_factory=dict)
    correction: bool = Field(False, description="Transport-issued status correction; bypasses monotonic ack")

    model_config = {"populate_by_name": True}

    @property
    def status(self) -> Optional[Union[int, str]]:
        return self.update.get("status")

    @property
    def stub_type(self) -> Optional[int]:
        return self.update.get("messageStubType")

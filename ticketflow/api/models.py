"""API request/response models."""

from typing import List, Optional
from pydantic import BaseModel, Field

from ticketflow.models.event import AckUpdate, InboundEvent


# ============================================================================
# Webhook Models
# ============================================================================

class InboundBatchRequest(BaseModel):
    """Batch of `messages.upsert` events posted by the gateway for one line."""
    tenant_id: int = Field(..., description="Tenant owning the line")
    messages: List[InboundEvent] = Field(default_factory=list, description="Events in delivery order")


class AckBatchRequest(BaseModel):
    """Batch of `messages.update` events posted by the gateway for one line."""
    tenant_id: int = Field(..., description="Tenant owning the line")
    updates: List[AckUpdate] = Field(default_factory=list, description="Status updates in delivery order")


class EventResult(BaseModel):
    """Outcome of one event within a batch."""
    id: str = Field(..., description="Protocol message identifier")
    outcome: str = Field(..., examples=["created"])
    reason: Optional[str] = None
    ticket_id: Optional[int] = None


class WebhookBatchResponse(BaseModel):
    """Response model for webhook batches."""
    status: str = Field(..., examples=["success"])
    processed: int = Field(..., description="Number of events handled")
    results: List[EventResult] = Field(default_factory=list)
    latency_ms: Optional[int] = None

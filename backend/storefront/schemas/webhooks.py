"""Schemas for the payment webhook endpoint."""
from typing import Optional
from pydantic import BaseModel, Field


class WebhookAck(BaseModel):
    """Acknowledgement returned for every verified delivery."""

    received: bool = Field(True, description="Always true once the signature is verified")
    event_type: str = Field(..., description="Gateway event type")
    status: str = Field(..., description="processed, already_processed, ignored or error")
    reason: Optional[str] = Field(None, description="Why the event was ignored or failed")

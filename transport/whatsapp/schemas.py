"""
WhatsApp Bridge - Pydantic Schemas

PURE DATA MODELS - NO LOGIC
Defines the contract between the messaging session, the backend webhook
and the local HTTP surface.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, StrictStr


# ============================================================================
# INBOUND MESSAGE ENVELOPE (THE CONTRACT)
# ============================================================================

class InboundEnvelope(BaseModel):
    """
    Normalized inbound chat message.

    Only built for personal chats with non-empty text that were not
    authored by the bridge's own account.
    """

    chat_id: str = Field(..., description="Originating chat JID, replies go here")
    phone: Optional[str] = Field(
        None,
        description="Resolved phone number. None when a lid lookup failed."
    )
    text: str = Field(..., description="Extracted message text")
    message_id: str = Field(..., description="Provider message id")
    timestamp: str = Field(..., description="Seconds since epoch, stringified")

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def sender(self) -> str:
        """Phone if resolved, else the raw id without its server part."""
        return self.phone or self.chat_id.split("@", 1)[0]


# ============================================================================
# BACKEND WEBHOOK PAYLOAD (OUTPUT)
# Cloud API shaped so the backend handles bridge and Meta traffic alike.
# ============================================================================

class WebhookText(BaseModel):
    body: str


class WebhookMessage(BaseModel):
    """A single message entry."""
    from_: str = Field(..., alias="from")
    id: str
    timestamp: str
    type: Literal["text"] = "text"
    text: WebhookText

    class Config:
        populate_by_name = True


class WebhookValue(BaseModel):
    messages: list[WebhookMessage]


class WebhookChange(BaseModel):
    value: WebhookValue


class WebhookEntry(BaseModel):
    changes: list[WebhookChange]


class WebhookPayload(BaseModel):
    """Full payload POSTed to the backend webhook."""

    object: Literal["whatsapp_business_account"] = "whatsapp_business_account"
    entry: list[WebhookEntry]

    def to_json(self) -> dict:
        """Wire form ('from', not 'from_')."""
        return self.model_dump(by_alias=True)


# ============================================================================
# BACKEND RESPONSE (INPUT)
# ============================================================================

class ReplyData(BaseModel):
    responseMessage: Optional[str] = None

    class Config:
        extra = "allow"


class BackendReply(BaseModel):
    """
    Backend response body.

    Success: {"data": {"responseMessage": "..."}}
    Error:   same, or {"error": "..."}
    """

    data: Optional[ReplyData] = None
    error: Optional[str] = None

    class Config:
        extra = "allow"


# ============================================================================
# LOCAL HTTP SURFACE
# ============================================================================

class SendRequest(BaseModel):
    """POST /send body."""
    to: StrictStr = Field(..., min_length=1)
    text: StrictStr


class SendResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "whatsapp-bridge"
    connected: bool

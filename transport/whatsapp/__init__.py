"""WhatsApp Bridge Transport Layer - Module Exports"""

from .connection import ConnectionManager, ConnectionState, backoff_delay
from .events import BridgeEvent, EventChannel
from .forwarder import ForwardResult, MessageForwarder
from .identity import format_jid, is_personal_chat, resolve_phone, strip_jid
from .normalize import (
    FALLBACK_REPLY,
    NormalizationError,
    build_envelope,
    build_webhook_payload,
    extract_error_reply,
    extract_reply,
    extract_text,
)
from .provider import MessagingProvider, MessagingSession, ProviderLoadError, load_provider
from .routes import router
from .schemas import (
    BackendReply,
    HealthResponse,
    InboundEnvelope,
    SendRequest,
    WebhookPayload,
)
from .sender import NotConnectedError, WhatsAppSenderError, send_text

__all__ = [
    # Schemas
    "InboundEnvelope",
    "WebhookPayload",
    "BackendReply",
    "SendRequest",
    "HealthResponse",
    # Normalization
    "build_envelope",
    "build_webhook_payload",
    "extract_text",
    "extract_reply",
    "extract_error_reply",
    "NormalizationError",
    "FALLBACK_REPLY",
    # Identity
    "resolve_phone",
    "is_personal_chat",
    "strip_jid",
    "format_jid",
    # Collaborator
    "MessagingProvider",
    "MessagingSession",
    "load_provider",
    "ProviderLoadError",
    # Sender
    "send_text",
    "WhatsAppSenderError",
    "NotConnectedError",
    # Pipeline
    "MessageForwarder",
    "ForwardResult",
    "ConnectionManager",
    "ConnectionState",
    "backoff_delay",
    "EventChannel",
    "BridgeEvent",
    # Router
    "router",
]

"""
WhatsApp Input Normalization

PURE CONVERSION - NO I/O

Converts messaging-session upsert entries into the bridge's canonical shapes.
- FILTER: drop own messages, keyless entries and non-personal chats
- TEXT: plain conversation or extended text, no enrichment
- PAYLOAD: wrap the envelope in the Cloud API webhook schema
- REPLY: pull the reply text out of a backend response body
"""

from typing import Any, Optional

from pydantic import ValidationError

from .identity import is_personal_chat
from .schemas import (
    BackendReply,
    InboundEnvelope,
    WebhookChange,
    WebhookEntry,
    WebhookMessage,
    WebhookPayload,
    WebhookText,
    WebhookValue,
)

FALLBACK_REPLY = "Sorry, something went wrong while processing your message."


class NormalizationError(Exception):
    """Inbound message cannot be forwarded."""
    pass


def first_message(upsert: Any) -> Optional[dict]:
    """
    First message of an upsert batch.

    Later messages in the same batch are not processed.
    """
    if not isinstance(upsert, dict):
        return None
    messages = upsert.get("messages") or []
    return messages[0] if messages else None


def extract_text(message: Optional[dict]) -> str:
    """Text from a plain conversation or an extended text message, else ''."""
    if not message:
        return ""
    text = message.get("conversation")
    if not text:
        extended = message.get("extendedTextMessage") or {}
        text = extended.get("text")
    return text or ""


def extract_chat(msg: Optional[dict]) -> str:
    """
    Validate an upsert entry and return its chat JID.

    Raises:
        NormalizationError: Missing key, own message, or not a personal chat
    """
    if not msg or not msg.get("key"):
        raise NormalizationError("Message has no key")

    key = msg["key"]
    if key.get("fromMe"):
        raise NormalizationError("Message authored by bridge account")

    remote_jid = key.get("remoteJid") or ""
    if not is_personal_chat(remote_jid):
        raise NormalizationError(f"Not a personal chat: {remote_jid or '<empty>'}")

    return remote_jid


def build_envelope(msg: dict, phone: Optional[str]) -> InboundEnvelope:
    """
    Build the envelope for an already-filtered message.

    Raises:
        NormalizationError: No extractable text
    """
    text = extract_text(msg.get("message"))
    if not text:
        raise NormalizationError("Message has no text")

    key = msg["key"]
    timestamp = msg.get("messageTimestamp")

    return InboundEnvelope(
        chat_id=key["remoteJid"],
        phone=phone,
        text=text,
        message_id=str(key.get("id") or ""),
        timestamp=str(timestamp) if timestamp else "",
    )


def build_webhook_payload(envelope: InboundEnvelope) -> WebhookPayload:
    """Wrap an envelope in the fixed webhook schema."""
    message = WebhookMessage(
        from_=envelope.sender,
        id=envelope.message_id,
        timestamp=envelope.timestamp,
        type="text",
        text=WebhookText(body=envelope.text),
    )
    return WebhookPayload(
        entry=[WebhookEntry(changes=[WebhookChange(value=WebhookValue(messages=[message]))])]
    )


def _parse_reply(body: Any) -> Optional[BackendReply]:
    if not isinstance(body, dict):
        return None
    try:
        return BackendReply.model_validate(body)
    except ValidationError:
        return None


def extract_reply(body: Any) -> Optional[str]:
    """Reply from a successful response: data.responseMessage, if any."""
    reply = _parse_reply(body)
    if reply is None or reply.data is None:
        return None
    return reply.data.responseMessage or None


def extract_error_reply(body: Any) -> str:
    """
    Reply after a failed webhook call.

    Checks data.responseMessage, then error, then falls back to a generic
    apology so the user is never left without an answer.
    """
    reply = _parse_reply(body)
    if reply is not None:
        if reply.data is not None and reply.data.responseMessage:
            return reply.data.responseMessage
        if reply.error:
            return reply.error
    return FALLBACK_REPLY

"""
WhatsApp Message Forwarder

Inbound chat message → backend webhook → reply back to the chat.

Rules:
- Only the first message of an upsert batch is handled
- One webhook call per qualifying message, never retried
- The user always gets some reply when the webhook fails
- Reply delivery failures are logged and recorded, never raised
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .events import MESSAGE_FORWARDED, REPLY_FAILED, WEBHOOK_FAILED, EventChannel
from .identity import resolve_phone
from .normalize import (
    NormalizationError,
    build_envelope,
    build_webhook_payload,
    extract_chat,
    extract_error_reply,
    extract_reply,
    extract_text,
    first_message,
)
from .provider import MessagingSession
from .schemas import InboundEnvelope, WebhookPayload
from .sender import WhatsAppSenderError, send_text

logger = logging.getLogger(__name__)


@dataclass
class ForwardResult:
    """Outcome of handling one upsert batch."""
    skipped: Optional[str] = None  # reason, when nothing was forwarded
    envelope: Optional[InboundEnvelope] = None
    payload: Optional[WebhookPayload] = None
    webhook_ok: bool = False
    reply: Optional[str] = None
    reply_sent: bool = False


class MessageForwarder:
    """
    Forwards inbound messages to the backend webhook.

    The httpx client is created lazily unless one is injected; no timeout
    is applied unless configured.
    """

    def __init__(
        self,
        webhook_url: str,
        events: Optional[EventChannel] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.webhook_url = webhook_url
        self.events = events if events is not None else EventChannel()
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def handle_upsert(self, session: MessagingSession, upsert: Any) -> ForwardResult:
        """Process a messages.upsert event from the session."""
        msg = first_message(upsert)

        try:
            remote_jid = extract_chat(msg)
        except NormalizationError as e:
            logger.debug(f"Skipping message: {e}")
            return ForwardResult(skipped=str(e))

        # Empty messages cost no lookup
        if not extract_text(msg.get("message")):
            logger.debug(f"Skipping message from {remote_jid}: no text")
            return ForwardResult(skipped="Message has no text")

        phone = await resolve_phone(session, remote_jid, self.events)
        envelope = build_envelope(msg, phone)

        logger.info(f'Message from {phone or remote_jid}: "{envelope.text[:80]}"')
        if not phone:
            logger.warning(f"Could not resolve phone number for {remote_jid}, forwarding raw id")

        payload = build_webhook_payload(envelope)
        result = ForwardResult(envelope=envelope, payload=payload)

        result.webhook_ok, result.reply = await self._post(envelope, payload)

        if result.reply:
            result.reply_sent = await self._send_reply(session, remote_jid, result.reply)

        return result

    async def _post(self, envelope: InboundEnvelope, payload: WebhookPayload) -> tuple[bool, Optional[str]]:
        """POST the payload; returns (ok, reply)."""
        try:
            response = await self.client.post(
                self.webhook_url,
                json=payload.to_json(),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Webhook forward failed: {e.response.status_code}",
                extra={"message_id": envelope.message_id, "status_code": e.response.status_code},
            )
            self.events.emit(
                WEBHOOK_FAILED,
                f"status {e.response.status_code}",
                message_id=envelope.message_id,
                status_code=e.response.status_code,
            )
            return False, extract_error_reply(_json_or_none(e.response))
        except httpx.HTTPError as e:
            logger.error(
                f"Webhook forward failed: {e}",
                extra={"message_id": envelope.message_id, "error": str(e)},
            )
            self.events.emit(WEBHOOK_FAILED, str(e), message_id=envelope.message_id)
            return False, extract_error_reply(None)

        self.events.emit(MESSAGE_FORWARDED, message_id=envelope.message_id, sender=envelope.sender)
        return True, extract_reply(_json_or_none(response))

    async def _send_reply(self, session: MessagingSession, jid: str, reply: str) -> bool:
        try:
            await send_text(session, jid, reply)
        except WhatsAppSenderError as e:
            logger.error(f"Reply send failed: {e}", extra={"jid": jid})
            self.events.emit(REPLY_FAILED, str(e), jid=jid)
            return False
        return True


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None

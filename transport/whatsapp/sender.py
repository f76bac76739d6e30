"""
WhatsApp Message Sender

Sends text through the active messaging session.
No formatting intelligence. No retries. No queueing.
"""

import logging
from typing import Any, Optional

from .provider import MessagingSession

logger = logging.getLogger(__name__)


class WhatsAppSenderError(Exception):
    """Failed to send a message through the session."""
    pass


class NotConnectedError(WhatsAppSenderError):
    """No active session to send through."""
    pass


async def send_text(
    session: Optional[MessagingSession],
    jid: str,
    text: str,
) -> Any:
    """
    Send a plain text message to a chat.

    No retries per design. If the session fails → log and raise.

    Args:
        session: Active messaging session (None when never connected)
        jid: Destination chat JID
        text: Message body

    Returns:
        Whatever the session returns for the sent message

    Raises:
        NotConnectedError: No session
        WhatsAppSenderError: Session send failed
    """
    if session is None:
        raise NotConnectedError("WhatsApp not connected")

    try:
        result = await session.send_message(jid, text)
    except Exception as e:
        logger.error(
            f"Send failed: {e}",
            extra={"jid": jid, "error": str(e)},
        )
        raise WhatsAppSenderError(str(e) or "Send failed") from e

    logger.debug(f"Sent message to {jid}: {text[:80]}")
    return result

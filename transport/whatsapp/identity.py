"""
WhatsApp Identity Resolution

Maps a personal-chat JID to a phone number.
- <digits>@s.whatsapp.net: phone is encoded directly, no I/O
- <id>@lid: privacy id, looked up through the session's lid mapping
"""

import logging
from typing import Optional

from .events import RESOLUTION_FAILED, EventChannel
from .provider import MessagingSession

logger = logging.getLogger(__name__)

PHONE_SUFFIX = "@s.whatsapp.net"
LID_SUFFIX = "@lid"


def is_personal_chat(jid: Optional[str]) -> bool:
    """One-to-one chat (groups, broadcasts and newsletters are excluded)."""
    return bool(jid) and (jid.endswith(PHONE_SUFFIX) or jid.endswith(LID_SUFFIX))


def strip_jid(jid: str) -> str:
    """Drop the server part: '1555@s.whatsapp.net' -> '1555'."""
    return jid.split("@", 1)[0]


def format_jid(phone_number: str) -> str:
    """
    Ensure a destination carries a server part.

    Bare phone numbers get the @s.whatsapp.net suffix; anything that already
    names a server (including @lid and @g.us) passes through.

    Raises:
        ValueError: Blank destination
    """
    if phone_number is None or not phone_number.strip():
        raise ValueError("phone_number must not be blank")

    normalized = phone_number.strip()
    if "@" in normalized:
        return normalized
    return normalized + PHONE_SUFFIX


async def resolve_phone(
    session: MessagingSession,
    chat_id: str,
    events: Optional[EventChannel] = None,
) -> Optional[str]:
    """
    Resolve a chat id to a phone number.

    Returns None when the id is not a personal chat or the lid lookup fails.
    Callers fall back to the raw id as a label. Never raises.
    """
    if chat_id.endswith(PHONE_SUFFIX):
        return strip_jid(chat_id)

    if not chat_id.endswith(LID_SUFFIX):
        return None

    try:
        phone_jid = await session.get_pn_for_lid(chat_id)
    except Exception as e:
        logger.warning(f"lid→phone resolution failed: {e}", extra={"chat_id": chat_id})
        if events is not None:
            events.emit(RESOLUTION_FAILED, str(e), chat_id=chat_id)
        return None

    if not phone_jid:
        logger.warning(f"No phone mapping for {chat_id}")
        if events is not None:
            events.emit(RESOLUTION_FAILED, "empty lookup result", chat_id=chat_id)
        return None

    # '1555:12@s.whatsapp.net' -> '1555'
    phone = strip_jid(phone_jid).split(":", 1)[0]
    logger.info(f"Resolved lid → phone {phone}")
    return phone

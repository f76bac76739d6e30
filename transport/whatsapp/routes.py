"""
WhatsApp Bridge HTTP Routes

FastAPI router exposing the health check and the outbound send endpoint.
Pure delegation to the active session. No queueing, no retries, no auth.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .connection import ConnectionManager
from .identity import format_jid
from .schemas import ErrorResponse, HealthResponse, SendRequest, SendResponse
from .sender import NotConnectedError, WhatsAppSenderError, send_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WhatsApp Bridge"])

INVALID_SEND_BODY = 'Missing or invalid "to" or "text"'


def get_connection_manager(request: Request) -> Optional[ConnectionManager]:
    """Connection manager attached to the app at startup (None before that)."""
    return getattr(request.app.state, "connection_manager", None)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@router.get("/health", response_model=HealthResponse)
async def health(manager: Optional[ConnectionManager] = Depends(get_connection_manager)):
    """Health check. `connected` is true once a session handle exists."""
    connected = manager is not None and manager.connected
    return HealthResponse(connected=connected)


@router.post(
    "/send",
    response_model=SendResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def send(
    request: Request,
    manager: Optional[ConnectionManager] = Depends(get_connection_manager),
):
    """
    Send a text message through the active session.

    Body: {"to": "<jid or phone>", "text": "<message>"}

    `to` is stripped; a bare phone number gets "@s.whatsapp.net" appended
    and a value left empty after stripping is rejected with 400.

    Returns:
        200 {"ok": true}
        400 invalid body, 503 not connected, 500 send failed
    """

    # Step 1: Validate body
    try:
        body = await request.json()
        send_request = SendRequest.model_validate(body)
        to = format_jid(send_request.to)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, ValueError):
        logger.warning("Rejected /send request with invalid body")
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_SEND_BODY)

    # Step 2: Require an active session
    session = manager.session if manager is not None else None
    if session is None:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "WhatsApp not connected")

    # Step 3: Delegate
    try:
        await send_text(session, to, send_request.text)
    except NotConnectedError as e:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(e))
    except WhatsAppSenderError as e:
        logger.error(f"Send failed: {e}", extra={"to": to})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Send failed")

    logger.info(f"Sent message to {to}", extra={"to": to, "length": len(send_request.text)})
    return SendResponse(ok=True)

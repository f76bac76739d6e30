"""
WhatsApp Connection Manager

Owns the single active messaging session and its lifecycle:

    DISCONNECTED → connect() → CONNECTING → open → CONNECTED
         ↑                                            │
         └──────────── close → reconnect ─────────────┘

- Session events are queued and handled in order by a dispatcher task;
  each messages.upsert is forwarded on its own task
- Every close schedules a reconnect with exponential backoff, unbounded
- A remotely revoked session additionally wipes the credentials folder
- Credentials are saved on every creds.update before later events run
"""

import asyncio
import contextlib
import inspect
import logging
import shutil
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .events import (
    CONNECTED,
    CONNECTING,
    DISCONNECTED,
    RECONNECT_FAILED,
    RECONNECT_SCHEDULED,
    SESSION_REVOKED,
    EventChannel,
)
from .forwarder import MessageForwarder
from .provider import MessagingProvider, MessagingSession, SaveCreds

logger = logging.getLogger(__name__)

# Session events the bridge subscribes to
CREDS_UPDATE = "creds.update"
MESSAGES_UPSERT = "messages.upsert"
CONNECTION_UPDATE = "connection.update"

DEFAULT_BROWSER = ("Clario", "Chrome", "22.04.4")


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int, base: float = 5.0, maximum: float = 60.0) -> float:
    """Reconnect delay in seconds: min(base * 2^attempt, maximum)."""
    return min(base * (2 ** attempt), maximum)


class ConnectionManager:
    """
    Connection state machine around the messaging collaborator.

    HTTP handlers and the forwarder read `session`; only this class writes it.
    The session is replaced on every successful connect and is not cleared
    when a connection closes.
    """

    def __init__(
        self,
        provider: MessagingProvider,
        forwarder: MessageForwarder,
        auth_folder: str = "auth_info",
        browser: tuple[str, str, str] = DEFAULT_BROWSER,
        base_delay: float = 5.0,
        max_delay: float = 60.0,
        events: Optional[EventChannel] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.forwarder = forwarder
        self.auth_folder = auth_folder
        self.browser = browser
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.events = events if events is not None else forwarder.events
        self._sleep = sleep

        self.session: Optional[MessagingSession] = None
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempt = 0

        self._save_creds: Optional[SaveCreds] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._dispatcher: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        """True once any session has been established."""
        return self.session is not None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the dispatcher and make the first connection attempt."""
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_loop())

        try:
            await self.connect()
            logger.info("WhatsApp client initialized. Waiting for QR or session…")
        except Exception as e:
            logger.error(f"WhatsApp connection error: {e}", exc_info=True)
            self.schedule_reconnect()

    async def stop(self) -> None:
        """Cancel background tasks and close the session if it supports it."""
        for task in (self._reconnect_task, self._dispatcher, *self._inflight):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reconnect_task = None
        self._dispatcher = None

        close = getattr(self.session, "close", None)
        if close is not None:
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Error closing session: {e}")

    async def connect(self) -> MessagingSession:
        """
        Establish one session with the persisted credentials.

        Raises whatever the collaborator raises; callers decide whether
        to schedule a reconnect.
        """
        self.state = ConnectionState.CONNECTING
        self.events.emit(CONNECTING)

        try:
            auth_state, save_creds = await self.provider.load_auth_state(self.auth_folder)
            version, is_latest = await self.provider.fetch_latest_version()
            logger.info(
                f"Connecting to WhatsApp… (WA version: {_format_version(version)}, latest: {is_latest})"
            )

            session = self.provider.create_session(
                auth_state=auth_state,
                version=version,
                browser=self.browser,
            )
        except Exception:
            self.state = ConnectionState.DISCONNECTED
            raise

        for event in (CREDS_UPDATE, MESSAGES_UPSERT, CONNECTION_UPDATE):
            session.on(event, self._listener(session, event))

        self._save_creds = save_creds
        self.session = session
        return session

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    def _listener(self, session: MessagingSession, event: str) -> Callable[[Any], None]:
        def enqueue(payload: Any = None) -> None:
            self._queue.put_nowait((session, event, payload))
        return enqueue

    async def _dispatch_loop(self) -> None:
        while True:
            session, event, payload = await self._queue.get()
            try:
                if event == MESSAGES_UPSERT:
                    # Forwarding awaits the webhook; creds and connection
                    # events must not wait behind it
                    self._spawn_forward(session, payload)
                else:
                    await self.handle_event(session, event, payload)
            except Exception as e:
                logger.error(f"Error handling {event}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    def _spawn_forward(self, session: MessagingSession, payload: Any) -> None:
        task = asyncio.create_task(self._forward(session, payload))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _forward(self, session: MessagingSession, payload: Any) -> None:
        try:
            await self.handle_event(session, MESSAGES_UPSERT, payload)
        except Exception as e:
            logger.error(f"Error handling {MESSAGES_UPSERT}: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait until every queued session event and in-flight forward has finished."""
        await self._queue.join()
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def handle_event(self, session: MessagingSession, event: str, payload: Any) -> None:
        """Handle one session event."""
        if event == CREDS_UPDATE:
            if self._save_creds is not None:
                await self._save_creds()
        elif event == MESSAGES_UPSERT:
            await self.forwarder.handle_upsert(session, payload)
        elif event == CONNECTION_UPDATE:
            await self._on_connection_update(payload or {})
        else:
            logger.debug(f"Ignoring session event {event}")

    async def _on_connection_update(self, update: dict) -> None:
        qr = update.get("qr")
        if qr:
            logger.info("=" * 40)
            logger.info(" Scan this QR with WhatsApp > Linked Devices")
            logger.info("=" * 40)
            self.provider.render_qr(qr)

        connection = update.get("connection")

        if connection == "open":
            self.reconnect_attempt = 0
            self.state = ConnectionState.CONNECTED
            self.events.emit(CONNECTED)
            logger.info("WhatsApp connected successfully!")

        elif connection == "close":
            self.state = ConnectionState.DISCONNECTED
            last_disconnect = update.get("last_disconnect") or {}
            status_code = last_disconnect.get("status_code")
            reason = last_disconnect.get("reason") or "unknown"
            logger.info(f"Connection closed, status: {status_code}, reason: {reason}")
            self.events.emit(DISCONNECTED, reason, status_code=status_code)

            if status_code is not None and status_code == self.provider.logged_out_status:
                logger.warning("Session revoked. Removing auth and restarting…")
                await asyncio.to_thread(self._wipe_credentials)
                self.reconnect_attempt = 0
                self.events.emit(SESSION_REVOKED, status_code=status_code)

            self.schedule_reconnect()

    def _wipe_credentials(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            shutil.rmtree(self.auth_folder)

    # ------------------------------------------------------------------
    # Reconnect with backoff
    # ------------------------------------------------------------------

    def next_delay(self) -> float:
        """Delay for the next attempt; advances the counter."""
        delay = backoff_delay(self.reconnect_attempt, self.base_delay, self.max_delay)
        self.reconnect_attempt += 1
        logger.info(f"Reconnecting in {delay:.0f}s… (attempt {self.reconnect_attempt})")
        self.events.emit(RECONNECT_SCHEDULED, delay=delay, attempt=self.reconnect_attempt)
        return delay

    def schedule_reconnect(self) -> Optional[float]:
        """
        Schedule a reconnect unless one is already pending.

        Returns the delay in seconds, or None when a timer was already running.
        """
        if self.reconnect_pending:
            logger.debug("Reconnect already pending, not scheduling another")
            return None

        delay = self.next_delay()
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))
        return delay

    async def _reconnect_after(self, delay: float) -> None:
        while True:
            await self._sleep(delay)
            try:
                await self.connect()
                return
            except Exception as e:
                logger.error(f"Reconnect failed: {e}")
                self.events.emit(RECONNECT_FAILED, str(e), attempt=self.reconnect_attempt)
                delay = self.next_delay()


def _format_version(version: Any) -> str:
    if isinstance(version, (list, tuple)):
        return ".".join(str(part) for part in version)
    return str(version)

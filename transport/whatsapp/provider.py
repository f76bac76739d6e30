"""
Messaging Collaborator Port

The multi-device client, session crypto, pairing and QR rendering live in an
external messaging library. This module only describes the surface the bridge
consumes and loads the configured implementation by dotted path.
"""

import importlib
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

Listener = Callable[[Any], Any]
SaveCreds = Callable[[], Awaitable[None]]


class ProviderLoadError(Exception):
    """Configured messaging provider could not be imported."""
    pass


@runtime_checkable
class MessagingSession(Protocol):
    """
    A connected (or connecting) client session.

    Event payloads:
        creds.update:      anything (credentials changed, save them)
        messages.upsert:   {"messages": [{"key": {"remoteJid", "fromMe", "id"},
                                          "message": {...}, "messageTimestamp": int}]}
        connection.update: {"connection": "open" | "close" | None,
                            "qr": str | None,
                            "last_disconnect": {"status_code": int, "reason": str} | None}
    """

    def on(self, event: str, listener: Listener) -> None:
        """Register a listener for creds.update / messages.upsert / connection.update."""
        ...

    async def send_message(self, jid: str, text: str) -> Any:
        ...

    async def get_pn_for_lid(self, lid: str) -> Optional[str]:
        """Map an opaque @lid contact id to its phone JID, if known."""
        ...


@runtime_checkable
class MessagingProvider(Protocol):
    """Factory side of the messaging library."""

    # Disconnect status code meaning the session was revoked remotely
    logged_out_status: int

    async def load_auth_state(self, folder: str) -> tuple[Any, SaveCreds]:
        ...

    async def fetch_latest_version(self) -> tuple[Any, bool]:
        ...

    def create_session(
        self,
        *,
        auth_state: Any,
        version: Any,
        browser: tuple[str, str, str],
    ) -> MessagingSession:
        ...

    def render_qr(self, qr: str) -> None:
        ...


def load_provider(path: str) -> MessagingProvider:
    """
    Import a provider from a "package.module:attribute" path.

    If the attribute is a class or factory it is called with no arguments.

    Raises:
        ProviderLoadError: Empty, malformed, or unimportable path
    """
    if not path or ":" not in path:
        raise ProviderLoadError(
            f"Invalid provider path {path!r}, expected 'package.module:attribute'"
        )

    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ProviderLoadError(f"Cannot load provider {path!r}: {e}")

    try:
        if isinstance(target, type):
            provider = target()
        elif not isinstance(target, MessagingProvider) and callable(target):
            provider = target()
        else:
            provider = target
    except Exception as e:
        raise ProviderLoadError(f"Cannot create provider from {path!r}: {e}")

    if not isinstance(provider, MessagingProvider):
        raise ProviderLoadError(f"{path!r} does not implement MessagingProvider")
    return provider

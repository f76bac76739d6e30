"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


class FakeSession:
    """In-memory stand-in for a messaging session."""

    def __init__(self, lid_map=None, lookup_error=None, send_error=None):
        self.listeners = {}
        self.sent = []
        self.lookups = []
        self.lid_map = lid_map or {}
        self.lookup_error = lookup_error
        self.send_error = send_error
        self.closed = False

    def on(self, event, listener):
        self.listeners.setdefault(event, []).append(listener)

    def emit(self, event, payload=None):
        for listener in self.listeners.get(event, []):
            listener(payload)

    async def send_message(self, jid, text):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((jid, text))
        return {"id": f"sent-{len(self.sent)}"}

    async def get_pn_for_lid(self, lid):
        self.lookups.append(lid)
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.lid_map.get(lid)

    async def close(self):
        self.closed = True


class FakeProvider:
    """In-memory stand-in for the messaging library."""

    logged_out_status = 401

    def __init__(self, fail_times=0):
        self.fail_times = fail_times
        self.sessions = []
        self.load_calls = []
        self.saved = 0
        self.qrs = []
        self.browser = None

    async def load_auth_state(self, folder):
        self.load_calls.append(folder)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("network down")

        async def save_creds():
            self.saved += 1

        return {"folder": folder}, save_creds

    async def fetch_latest_version(self):
        return (2, 3000, 1023223821), True

    def create_session(self, *, auth_state, version, browser):
        self.browser = browser
        session = FakeSession()
        self.sessions.append(session)
        return session

    def render_qr(self, qr):
        self.qrs.append(qr)


def make_upsert(
    remote_jid="1555@s.whatsapp.net",
    text="hi",
    from_me=False,
    message_id="m1",
    timestamp=1000,
    extended=False,
):
    """messages.upsert payload with a single message."""
    if text is None:
        message = {"imageMessage": {"url": "https://example.invalid/img"}}
    elif extended:
        message = {"extendedTextMessage": {"text": text}}
    else:
        message = {"conversation": text}

    return {
        "messages": [{
            "key": {"remoteJid": remote_jid, "fromMe": from_me, "id": message_id},
            "message": message,
            "messageTimestamp": timestamp,
        }],
        "type": "notify",
    }


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def upsert():
    """Factory for messages.upsert payloads."""
    return make_upsert


@pytest.fixture
def make_session():
    """FakeSession class, for tests that need lookup/send failures."""
    return FakeSession


@pytest.fixture
def make_provider():
    return FakeProvider

"""
WhatsApp Input Normalization Tests

Test filtering, text extraction, payload construction and reply extraction.
"""

import pytest

from transport.whatsapp.normalize import (
    FALLBACK_REPLY,
    NormalizationError,
    build_envelope,
    build_webhook_payload,
    extract_chat,
    extract_error_reply,
    extract_reply,
    extract_text,
    first_message,
)
from transport.whatsapp.schemas import InboundEnvelope


class TestFiltering:
    """Test which upsert entries qualify."""

    def test_first_message_only(self, upsert):
        batch = upsert(message_id="m1")
        batch["messages"].append(upsert(message_id="m2")["messages"][0])

        assert first_message(batch)["key"]["id"] == "m1"

    def test_empty_batch(self):
        assert first_message({"messages": []}) is None
        assert first_message(None) is None

    def test_personal_chat_accepted(self, upsert):
        msg = first_message(upsert(remote_jid="998877@lid"))

        assert extract_chat(msg) == "998877@lid"

    def test_own_message_rejected(self, upsert):
        msg = first_message(upsert(from_me=True))

        with pytest.raises(NormalizationError):
            extract_chat(msg)

    def test_group_rejected(self, upsert):
        msg = first_message(upsert(remote_jid="120363@g.us"))

        with pytest.raises(NormalizationError):
            extract_chat(msg)

    def test_missing_key_rejected(self):
        with pytest.raises(NormalizationError):
            extract_chat({"message": {"conversation": "hi"}})


class TestTextExtraction:
    """Test text extraction."""

    def test_conversation(self):
        assert extract_text({"conversation": "hello"}) == "hello"

    def test_extended_text(self):
        assert extract_text({"extendedTextMessage": {"text": "with link"}}) == "with link"

    def test_conversation_preferred(self):
        message = {"conversation": "plain", "extendedTextMessage": {"text": "extended"}}

        assert extract_text(message) == "plain"

    def test_no_text(self):
        assert extract_text({"imageMessage": {}}) == ""
        assert extract_text(None) == ""

    def test_text_not_trimmed_or_enriched(self):
        assert extract_text({"conversation": "  hai im late "}) == "  hai im late "


class TestEnvelope:
    """Test envelope construction."""

    def test_resolved_phone_used_as_sender(self, upsert):
        msg = first_message(upsert(remote_jid="998877@lid"))

        envelope = build_envelope(msg, "15551234567")

        assert envelope.sender == "15551234567"
        assert envelope.chat_id == "998877@lid"

    def test_raw_id_fallback(self, upsert):
        msg = first_message(upsert(remote_jid="998877@lid"))

        envelope = build_envelope(msg, None)

        assert envelope.sender == "998877"

    def test_timestamp_stringified(self, upsert):
        envelope = build_envelope(first_message(upsert(timestamp=1707500000)), "1555")

        assert envelope.timestamp == "1707500000"

    def test_missing_timestamp_is_empty(self, upsert):
        envelope = build_envelope(first_message(upsert(timestamp=None)), "1555")

        assert envelope.timestamp == ""

    def test_no_text_rejected(self, upsert):
        with pytest.raises(NormalizationError):
            build_envelope(first_message(upsert(text=None)), "1555")

    def test_envelope_immutable(self, upsert):
        envelope = build_envelope(first_message(upsert()), "1555")

        with pytest.raises(Exception):
            envelope.text = "Modified"  # type: ignore


class TestWebhookPayload:
    """Test the fixed webhook schema."""

    def test_payload_shape(self):
        envelope = InboundEnvelope(
            chat_id="1555@s.whatsapp.net",
            phone="1555",
            text="hi",
            message_id="m1",
            timestamp="1000",
        )

        payload = build_webhook_payload(envelope).to_json()

        assert payload == {
            "object": "whatsapp_business_account",
            "entry": [{"changes": [{"value": {"messages": [{
                "from": "1555",
                "id": "m1",
                "timestamp": "1000",
                "type": "text",
                "text": {"body": "hi"},
            }]}}]}],
        }


class TestReplyExtraction:
    """Test reply extraction from backend responses."""

    def test_success_reply(self):
        assert extract_reply({"success": True, "data": {"responseMessage": "X"}}) == "X"

    def test_success_without_reply(self):
        assert extract_reply({"success": True}) is None
        assert extract_reply({"data": {}}) is None
        assert extract_reply("plain text") is None

    def test_error_reply_prefers_response_message(self):
        body = {"data": {"responseMessage": "Try again"}, "error": "boom"}

        assert extract_error_reply(body) == "Try again"

    def test_error_reply_uses_error_field(self):
        assert extract_error_reply({"error": "Backend down"}) == "Backend down"

    def test_error_reply_fallback(self):
        assert extract_error_reply(None) == FALLBACK_REPLY
        assert extract_error_reply({"detail": "nope"}) == FALLBACK_REPLY
        assert extract_error_reply({"error": {"code": 1}}) == FALLBACK_REPLY

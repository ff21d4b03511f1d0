"""
Tests for WhatsApp formatting, templates and Cloud API delivery.
"""

import json

import httpx
import pytest

from academy.services import whatsapp_service


class TestPhoneFormatting:
    def test_local_number_gets_country_code(self):
        assert whatsapp_service.format_phone_number("0501234567") == "+966501234567"

    def test_international_number_is_kept(self):
        assert whatsapp_service.format_phone_number("+966 50 123 4567") == "+966501234567"

    def test_other_country_code(self):
        assert whatsapp_service.format_phone_number("07700 900123", country_code="+44") == "+447700900123"

    def test_validity_by_digit_count(self):
        assert whatsapp_service.is_valid_phone_number("+966501234567") is True
        assert whatsapp_service.is_valid_phone_number("12345") is False
        assert whatsapp_service.is_valid_phone_number("1" * 16) is False


def test_click_to_chat_link():
    assert whatsapp_service.build_click_to_chat_link("+966 50 123 4567") == "https://wa.me/966501234567"
    link = whatsapp_service.build_click_to_chat_link("+966501234567", "Hi coach & team")
    assert link == "https://wa.me/966501234567?text=Hi%20coach%20%26%20team"


class TestTemplates:
    def test_match_alert(self):
        message = whatsapp_service.match_alert_message("goal", "Sami scores in the 12th minute")
        assert message.startswith("⚽ *Goal Alert*")
        assert message.endswith("Sami scores in the 12th minute")

    def test_unknown_alert_type(self):
        with pytest.raises(ValueError, match="Invalid alert type"):
            whatsapp_service.match_alert_message("offside", "x")

    def test_post_match_report_link(self):
        message = whatsapp_service.post_match_report_message("Al Nassr U14", "2-1", "Strong second half", "https://x/r/1")
        assert "*Score:* 2-1" in message
        assert message.endswith("🔗 Full Report: https://x/r/1")

    def test_parent_progress(self):
        message = whatsapp_service.parent_progress_message("Mona", "Sami", ["3 sessions this week"], 74)
        assert "📈 Average score: 74/100" in message
        assert "• 3 sessions this week" in message


# ============================================================================
# Delivery
# ============================================================================


@pytest.mark.asyncio
async def test_send_skipped_without_credentials(monkeypatch):
    monkeypatch.delenv("WHATSAPP_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("WHATSAPP_PHONE_NUMBER_ID", raising=False)
    result = await whatsapp_service.send_message("0501234567", "hello")
    assert result == {"sent": False, "skipped": True}


@pytest.mark.asyncio
async def test_send_invalid_number():
    result = await whatsapp_service.send_message("123", "hello")
    assert result["sent"] is False
    assert result["error"] == "invalid phone number"


def _configure(monkeypatch, handler):
    monkeypatch.setenv("WHATSAPP_ACCESS_TOKEN", "token-123")
    monkeypatch.setenv("WHATSAPP_PHONE_NUMBER_ID", "555")
    monkeypatch.setenv("WHATSAPP_API_URL", "https://graph.test/v18.0")
    monkeypatch.setattr(
        whatsapp_service,
        "_get_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_send_posts_to_cloud_api(monkeypatch):
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    _configure(monkeypatch, handler)
    result = await whatsapp_service.send_match_alert("0501234567", "injury", "Ankle knock, subbed off")

    assert result == {"sent": True, "skipped": False}
    assert captured["url"] == "https://graph.test/v18.0/555/messages"
    assert captured["auth"] == "Bearer token-123"
    assert captured["body"]["to"] == "966501234567"
    assert captured["body"]["text"]["body"].startswith("🏥 *Injury Alert*")


@pytest.mark.asyncio
async def test_send_reports_api_errors(monkeypatch):
    _configure(monkeypatch, lambda request: httpx.Response(401, text="bad token"))
    result = await whatsapp_service.send_message("0501234567", "hello")
    assert result == {"sent": False, "skipped": False, "error": "HTTP 401"}

"""
WhatsApp messaging: phone number formatting, click-to-chat links, message
templates, and delivery through the WhatsApp Cloud API.

Delivery never raises. Without API credentials the message is logged and
reported as skipped so callers (streaks, match alerts) are never blocked.
"""

import logging
import os
import re
from typing import Optional, Dict, List
from urllib.parse import quote

import httpx

from academy.utils.constants import DEFAULT_COUNTRY_CODE

logger = logging.getLogger(__name__)

ACADEMY_NAME = os.getenv("ACADEMY_NAME", "Future Stars FC Academy")

MATCH_ALERT_TYPES = ("fatigue", "goal", "card", "injury", "tactical")

_ALERT_HEADERS = {
    "fatigue": "⚠️ *Fatigue Alert*",
    "goal": "⚽ *Goal Alert*",
    "card": "🟨 *Card Alert*",
    "injury": "🏥 *Injury Alert*",
    "tactical": "📊 *Tactical Update*",
}


def _get_config() -> Dict[str, Optional[str]]:
    """Read WhatsApp Cloud API configuration at call time."""
    return {
        "api_url": os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v18.0"),
        "access_token": os.getenv("WHATSAPP_ACCESS_TOKEN"),
        "phone_number_id": os.getenv("WHATSAPP_PHONE_NUMBER_ID"),
        "country_code": os.getenv("WHATSAPP_DEFAULT_COUNTRY_CODE", DEFAULT_COUNTRY_CODE),
    }


def _get_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=10.0)


def _digits(phone: str) -> str:
    return re.sub(r"[^0-9]", "", phone or "")


def format_phone_number(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Format a local or international number as ``+<digits>``.

    Non-digits are stripped and one leading 0 (local trunk prefix) is dropped.
    The country code is prefixed unless the number already starts with it.

    >>> format_phone_number("0501234567")
    '+966501234567'
    >>> format_phone_number("+966 50 123 4567")
    '+966501234567'
    """
    cleaned = _digits(phone)
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]
    code_digits = _digits(country_code)
    if not cleaned.startswith(code_digits):
        return f"+{code_digits}{cleaned}"
    return f"+{cleaned}"


def is_valid_phone_number(phone: str) -> bool:
    """A phone number is valid when it has 10-15 digits after cleaning."""
    return 10 <= len(_digits(phone)) <= 15


def build_click_to_chat_link(phone: str, message: Optional[str] = None) -> str:
    """
    Build a ``https://wa.me/<digits>`` link with an optional prefilled message.
    """
    url = f"https://wa.me/{_digits(phone)}"
    if message:
        url += f"?text={quote(message, safe='')}"
    return url


# ============================================================================
# Templates
# ============================================================================


def match_alert_message(alert_type: str, details: str) -> str:
    """
    Raises:
        ValueError: If alert_type is not one of MATCH_ALERT_TYPES
    """
    if alert_type not in _ALERT_HEADERS:
        raise ValueError(f"Invalid alert type: {alert_type}")
    return f"{_ALERT_HEADERS[alert_type]}\n\n{details}"


def post_match_report_message(
    opponent: str, score: str, summary: str, report_url: Optional[str] = None
) -> str:
    lines = [
        "📋 *Post-Match Report*",
        "",
        f"*Match:* vs {opponent}",
        f"*Score:* {score}",
        "",
        "*Summary:*",
        summary,
    ]
    if report_url:
        lines.extend(["", f"🔗 Full Report: {report_url}"])
    return "\n".join(lines)


def streak_milestone_message(user_name: str, streak_days: int, reward: str) -> str:
    return (
        f"🔥 *{streak_days}-Day Streak Achieved!*\n\n"
        f"Congratulations {user_name}! 🎉\n\n"
        f"You've maintained your login streak for *{streak_days} consecutive days!*\n\n"
        f"🎁 *Reward:* {reward}\n\n"
        "Keep up the amazing dedication!\n\n"
        f"*{ACADEMY_NAME}*"
    )


def booking_confirmation_message(
    parent_name: str,
    player_name: str,
    coach_name: str,
    session_date: str,
    start_time: str,
    end_time: str,
    location_name: Optional[str] = None,
) -> str:
    lines = [
        f"Hello {parent_name}! 🎉",
        "",
        f"Your private training session for {player_name} has been confirmed:",
        "",
        f"📅 Date: {session_date}",
        f"⏰ Time: {start_time} - {end_time}",
        f"👨‍🏫 Coach: {coach_name}",
    ]
    if location_name:
        lines.append(f"📍 Location: {location_name}")
    lines.extend(["", f"We look forward to seeing {player_name}!", "", ACADEMY_NAME])
    return "\n".join(lines)


def parent_progress_message(
    parent_name: str, player_name: str, highlights: List[str], average_score: Optional[int] = None
) -> str:
    """Weekly progress summary sent to a parent."""
    lines = [f"Hello {parent_name}! 👋", "", f"*{player_name}'s weekly progress*"]
    if average_score is not None:
        lines.append(f"📈 Average score: {average_score}/100")
    for item in highlights:
        lines.append(f"• {item}")
    lines.extend(["", ACADEMY_NAME])
    return "\n".join(lines)


# ============================================================================
# Delivery
# ============================================================================


async def send_message(to: str, text: str) -> Dict:
    """
    Send a text message through the WhatsApp Cloud API.

    Args:
        to: Phone number in any format accepted by format_phone_number
        text: Message body

    Returns:
        Dict with ``sent`` (bool), ``skipped`` (bool) and optional ``error``
    """
    cfg = _get_config()
    phone = format_phone_number(to, cfg["country_code"])
    if not is_valid_phone_number(phone):
        logger.warning(f"Invalid WhatsApp phone number: {to}")
        return {"sent": False, "skipped": False, "error": "invalid phone number"}

    if not cfg["access_token"] or not cfg["phone_number_id"]:
        logger.info(f"WhatsApp not configured, message to {phone} skipped: {text[:100]}")
        return {"sent": False, "skipped": True}

    url = f"{cfg['api_url'].rstrip('/')}/{cfg['phone_number_id']}/messages"
    payload = {
        "messaging_product": "whatsapp",
        "to": _digits(phone),
        "type": "text",
        "text": {"body": text},
    }
    try:
        async with _get_client() as client:
            resp = await client.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {cfg['access_token']}"},
            )
            resp.raise_for_status()
        logger.info(f"WhatsApp message sent to {phone}")
        return {"sent": True, "skipped": False}
    except httpx.HTTPStatusError as e:
        logger.error(f"WhatsApp API error {e.response.status_code}: {e.response.text}")
        return {"sent": False, "skipped": False, "error": f"HTTP {e.response.status_code}"}
    except httpx.RequestError as e:
        logger.error(f"Failed to reach WhatsApp API: {e}")
        return {"sent": False, "skipped": False, "error": str(e)}


async def send_match_alert(to: str, alert_type: str, details: str) -> Dict:
    return await send_message(to, match_alert_message(alert_type, details))


async def send_streak_milestone(to: str, user_name: str, streak_days: int, reward: str) -> Dict:
    return await send_message(to, streak_milestone_message(user_name, streak_days, reward))

"""
Email service using SendGrid for academy notifications.
"""

import os
import logging
from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
from dotenv import load_dotenv
from academy.services import settings_service
from academy.services.settings_service import get_bool_env

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# SendGrid Configuration
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "noreply@futurestarsfc.com")
ENABLE_EMAIL = get_bool_env("ENABLE_EMAIL", default=True)
ACADEMY_NAME = os.getenv("ACADEMY_NAME", "Future Stars FC Academy")


async def is_enabled(session: Optional[AsyncSession] = None) -> bool:
    """
    Check if email is enabled, checking database first.

    Args:
        session: Optional database session for checking database settings

    Returns:
        True if email is enabled, False otherwise
    """
    try:
        return await settings_service.get_bool_setting(
            session, "enable_email", env_var="ENABLE_EMAIL", default=True, fallback_to_cache=True
        )
    except Exception as e:
        logger.warning(f"Error getting ENABLE_EMAIL from settings, using default: {e}")
        return ENABLE_EMAIL


def _send(message: Mail) -> bool:
    sg = SendGridAPIClient(SENDGRID_API_KEY)
    response = sg.send(message)
    if 200 <= response.status_code < 300:
        return True
    logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
    return False


async def send_email(
    to_email: str,
    subject: str,
    body: str,
    session: Optional[AsyncSession] = None,
) -> bool:
    """
    Send a plain-text email via SendGrid.

    Skipped sends (email disabled or SendGrid not configured) return True so
    callers never fail because of email.

    Args:
        to_email: Recipient address
        subject: Subject line
        body: Plain-text body
        session: Optional database session for checking database settings

    Returns:
        bool: True if sent or skipped, False if SendGrid rejected the message
    """
    if not to_email:
        logger.warning(f"No recipient for email '{subject}', skipped")
        return False

    if not await is_enabled(session):
        logger.info(f"Email sending is disabled. '{subject}' to {to_email} skipped.")
        return True

    if not SENDGRID_API_KEY:
        logger.warning("SENDGRID_API_KEY not configured. Email notification skipped.")
        return True

    try:
        message = Mail(
            from_email=Email(SENDGRID_FROM_EMAIL),
            to_emails=To(to_email),
            subject=subject,
            plain_text_content=Content("text/plain", body),
        )
        sent = _send(message)
        if sent:
            logger.info(f"Email '{subject}' sent to {to_email}")
        return sent
    except Exception as e:
        logger.error(f"Failed to send email '{subject}' to {to_email}: {str(e)}")
        return False


def _signature() -> List[str]:
    return ["", "Keep up the great work!", ACADEMY_NAME]


async def send_streak_milestone_email(
    to_email: str,
    user_name: str,
    streak_days: int,
    reward: str,
    session: Optional[AsyncSession] = None,
) -> bool:
    subject = f"{streak_days}-Day Streak Milestone Achieved! - {ACADEMY_NAME}"
    lines = [
        f"Hi {user_name or 'there'},",
        "",
        "You've achieved an amazing milestone!",
        f"{streak_days} Days Login Streak",
        "",
        f"Your Reward: {reward}",
        "",
        "Your dedication to consistent training is impressive! Keep logging in daily "
        "to maintain your streak and unlock even more rewards.",
    ]
    return await send_email(to_email, subject, "\n".join(lines + _signature()), session)


async def send_certificate_issued_email(
    to_email: str,
    user_name: str,
    course_title: str,
    certificate_number: str,
    verification_code: str,
    certificate_url: Optional[str] = None,
    session: Optional[AsyncSession] = None,
) -> bool:
    """Notify a coach that a course certificate was issued."""
    subject = f"Certificate Issued: {course_title} - {ACADEMY_NAME}"
    lines = [
        f"Hi {user_name or 'Coach'},",
        "",
        f"Congratulations on completing {course_title}!",
        "",
        f"Certificate number: {certificate_number}",
        f"Verification code: {verification_code}",
    ]
    if certificate_url:
        lines.append(f"Download: {certificate_url}")
    return await send_email(to_email, subject, "\n".join(lines + _signature()), session)


async def send_account_approved_email(
    to_email: str, user_name: str, role: str, session: Optional[AsyncSession] = None
) -> bool:
    subject = f"{ACADEMY_NAME} - Application Status"
    lines = [
        f"Hi {user_name or 'there'},",
        "",
        f"Your account has been approved with the role: {role.replace('_', ' ')}.",
        "You can now sign in and access your dashboard.",
        "",
        ACADEMY_NAME,
    ]
    return await send_email(to_email, subject, "\n".join(lines), session)


async def send_weekly_progress_email(
    to_email: str,
    parent_name: str,
    player_name: str,
    summary: Dict,
    session: Optional[AsyncSession] = None,
) -> bool:
    """
    Send a parent the weekly progress summary for their child.

    ``summary`` carries sessions, average_score, trend and optional
    coach_notes keys.
    """
    subject = f"Weekly Progress Report - {player_name}"
    lines = [
        f"Dear {parent_name or 'Parent'},",
        "",
        f"Here is {player_name}'s progress for this week:",
        f"Sessions attended: {summary.get('sessions', 0)}",
        f"Average score: {summary.get('average_score', 0)}",
        f"Trend: {summary.get('trend', 'stable')}",
    ]
    if summary.get("coach_notes"):
        lines.extend(["", f"Coach notes: {summary['coach_notes']}"])
    return await send_email(to_email, subject, "\n".join(lines + _signature()), session)

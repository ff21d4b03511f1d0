"""
Coach course certificates: numbering, PDF rendering and verification.

Certificates are rendered as landscape A4 PDFs with reportlab. When S3 is
configured the PDF is uploaded and its URL stored; otherwise the URL stays
empty and the PDF is re-rendered on demand by ``get_certificate_pdf``.
"""

import io
import os
import secrets
from datetime import datetime
from typing import Optional, Dict, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from academy.database.models import CoachCertificate, CoachingCourse, CourseEnrollment, User
from academy.services import s3_service, email_service, notification_service
from academy.utils.datetime_utils import utcnow
import logging

logger = logging.getLogger(__name__)

CERTIFICATE_PREFIX = "FSA"
CLUB_NAME = os.getenv("CERTIFICATE_CLUB_NAME", "FUTURE STARS FC")
VERIFY_URL = os.getenv("CERTIFICATE_VERIFY_URL", "www.futurestarsfc.com/verify")
BRAND_GREEN = colors.HexColor("#10b981")
DARK_TEXT = colors.HexColor("#1F2937")
MUTED_TEXT = colors.HexColor("#6B7280")


def generate_certificate_number(year: int, sequence: int) -> str:
    """``FSA-YYYY-NNNNNN`` with a zero-padded per-year sequence."""
    if sequence < 1 or sequence > 999999:
        raise ValueError("Certificate sequence out of range")
    return f"{CERTIFICATE_PREFIX}-{year:04d}-{sequence:06d}"


def generate_verification_code() -> str:
    return secrets.token_hex(8).upper()


async def _next_sequence(session: AsyncSession, year: int) -> int:
    prefix = f"{CERTIFICATE_PREFIX}-{year:04d}-"
    result = await session.execute(
        select(func.max(CoachCertificate.certificate_number)).where(
            CoachCertificate.certificate_number.like(f"{prefix}%")
        )
    )
    latest = result.scalar_one_or_none()
    if not latest:
        return 1
    return int(latest[len(prefix):]) + 1


def _format_date(value) -> str:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def render_certificate_pdf(
    recipient_name: str,
    course_title: str,
    score: Optional[int],
    issued_on,
    certificate_number: str,
    verification_code: str,
    level: Optional[str] = None,
) -> bytes:
    """Render the certificate to PDF bytes."""
    buffer = io.BytesIO()
    page_width, page_height = landscape(A4)
    pdf = canvas.Canvas(buffer, pagesize=(page_width, page_height))
    pdf.setTitle(f"Certificate {certificate_number}")
    center = page_width / 2

    # Border
    pdf.setStrokeColor(BRAND_GREEN)
    pdf.setLineWidth(6)
    pdf.rect(24, 24, page_width - 48, page_height - 48)
    pdf.setLineWidth(1.5)
    pdf.rect(36, 36, page_width - 72, page_height - 72)

    pdf.setFillColor(BRAND_GREEN)
    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawCentredString(center, page_height - 80, CLUB_NAME)

    pdf.setFillColor(DARK_TEXT)
    pdf.setFont("Helvetica-Bold", 40)
    pdf.drawCentredString(center, page_height - 135, "CERTIFICATE")
    pdf.setFont("Helvetica", 18)
    pdf.drawCentredString(center, page_height - 162, "OF COMPLETION")

    pdf.setFillColor(MUTED_TEXT)
    pdf.setFont("Helvetica-Oblique", 14)
    pdf.drawCentredString(center, page_height - 210, "This is to certify that")

    pdf.setFillColor(DARK_TEXT)
    pdf.setFont("Helvetica-Bold", 30)
    pdf.drawCentredString(center, page_height - 250, recipient_name or "Coach")
    pdf.setStrokeColor(BRAND_GREEN)
    pdf.setLineWidth(1)
    pdf.line(center - 180, page_height - 260, center + 180, page_height - 260)

    pdf.setFillColor(MUTED_TEXT)
    pdf.setFont("Helvetica-Oblique", 14)
    pdf.drawCentredString(center, page_height - 290, "has successfully completed the course")

    pdf.setFillColor(BRAND_GREEN)
    pdf.setFont("Helvetica-Bold", 22)
    pdf.drawCentredString(center, page_height - 325, course_title)

    pdf.setFillColor(DARK_TEXT)
    pdf.setFont("Helvetica", 13)
    details = []
    if score is not None:
        details.append(f"Final Score: {score}%")
    if level:
        details.append(f"Level: {level.title()}")
    if details:
        pdf.drawCentredString(center, page_height - 355, "    ".join(details))
    pdf.drawCentredString(center, page_height - 377, f"Completed on {_format_date(issued_on)}")

    # Signatures
    for x, label in ((page_width * 0.25, "Academy Director"), (page_width * 0.75, "Education Coordinator")):
        pdf.setStrokeColor(DARK_TEXT)
        pdf.line(x - 90, 110, x + 90, 110)
        pdf.setFont("Helvetica", 11)
        pdf.drawCentredString(x, 95, label)

    pdf.setFillColor(MUTED_TEXT)
    pdf.setFont("Helvetica", 9)
    pdf.drawCentredString(center, 70, f"Certificate ID: {certificate_number}  |  Code: {verification_code}")
    pdf.drawCentredString(center, 56, f"Verify at: {VERIFY_URL}")

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def _certificate_to_dict(certificate: CoachCertificate, course: Optional[CoachingCourse] = None) -> Dict:
    return {
        "id": certificate.id,
        "user_id": certificate.user_id,
        "course_id": certificate.course_id,
        "course_title": course.title if course else None,
        "certificate_number": certificate.certificate_number,
        "verification_code": certificate.verification_code,
        "level": certificate.level,
        "score": certificate.score,
        "certificate_url": certificate.certificate_url,
        "issued_at": certificate.issued_at.isoformat() if certificate.issued_at else None,
    }


async def _get_course(session: AsyncSession, course_id: int) -> CoachingCourse:
    result = await session.execute(select(CoachingCourse).where(CoachingCourse.id == course_id))
    course = result.scalar_one_or_none()
    if not course:
        raise ValueError(f"Course {course_id} not found")
    return course


async def issue_certificate(
    session: AsyncSession, user_id: int, course_id: int, score: Optional[int] = None
) -> Dict:
    """
    Issue the course certificate for a user, or return the existing one.

    Uploads the PDF when S3 is configured, records the URL on the
    enrollment, notifies the user in-app and by email. Upload and email
    failures are logged and do not prevent issuance.

    Raises:
        ValueError: If the user or course does not exist
    """
    existing = await session.execute(
        select(CoachCertificate).where(
            CoachCertificate.user_id == user_id, CoachCertificate.course_id == course_id
        )
    )
    certificate = existing.scalar_one_or_none()
    course = await _get_course(session, course_id)
    if certificate:
        return _certificate_to_dict(certificate, course)

    user_result = await session.execute(select(User).where(User.id == user_id))
    user = user_result.scalar_one_or_none()
    if not user:
        raise ValueError(f"User {user_id} not found")

    now = utcnow()
    number = generate_certificate_number(now.year, await _next_sequence(session, now.year))
    code = generate_verification_code()

    certificate_url = None
    if s3_service.is_configured():
        pdf_bytes = render_certificate_pdf(user.name, course.title, score, now, number, code, course.level)
        try:
            certificate_url = await s3_service.upload_certificate(user_id, number, pdf_bytes)
        except Exception as e:
            logger.error(f"Failed to upload certificate {number}: {e}", exc_info=True)

    certificate = CoachCertificate(
        user_id=user_id,
        course_id=course_id,
        certificate_number=number,
        verification_code=code,
        level=course.level,
        score=score,
        certificate_url=certificate_url,
        issued_at=now,
    )
    session.add(certificate)

    enrollment_result = await session.execute(
        select(CourseEnrollment).where(
            CourseEnrollment.user_id == user_id, CourseEnrollment.course_id == course_id
        )
    )
    enrollment = enrollment_result.scalar_one_or_none()
    if enrollment and certificate_url:
        enrollment.certificate_url = certificate_url

    await session.flush()
    await session.refresh(certificate)
    logger.info(f"Issued certificate {number} to user {user_id} for course {course_id}")

    await notification_service.create_notification(
        session,
        user_id,
        "success",
        "Certificate Earned!",
        f"You earned a certificate for completing {course.title}.",
        category="achievement",
        data={"certificate_number": number},
        link_url="/certificates",
        related_entity_type="certificate",
        related_entity_id=certificate.id,
    )
    if user.email:
        await email_service.send_certificate_issued_email(
            user.email, user.name, course.title, number, code, certificate_url, session
        )
    return _certificate_to_dict(certificate, course)


async def get_certificate(session: AsyncSession, certificate_id: int) -> Optional[Dict]:
    result = await session.execute(
        select(CoachCertificate, CoachingCourse)
        .join(CoachingCourse, CoachingCourse.id == CoachCertificate.course_id)
        .where(CoachCertificate.id == certificate_id)
    )
    row = result.first()
    return _certificate_to_dict(row[0], row[1]) if row else None


async def list_user_certificates(session: AsyncSession, user_id: int) -> List[Dict]:
    result = await session.execute(
        select(CoachCertificate, CoachingCourse)
        .join(CoachingCourse, CoachingCourse.id == CoachCertificate.course_id)
        .where(CoachCertificate.user_id == user_id)
        .order_by(CoachCertificate.issued_at.desc())
    )
    return [_certificate_to_dict(cert, course) for cert, course in result.all()]


async def verify_certificate(session: AsyncSession, code: str) -> Dict:
    """
    Look up a certificate by verification code (case-insensitive).

    Returns:
        ``{"valid": False}`` for unknown codes, otherwise the recipient,
        course and certificate details
    """
    code = (code or "").strip().upper()
    if not code:
        return {"valid": False}
    result = await session.execute(
        select(CoachCertificate, CoachingCourse, User)
        .join(CoachingCourse, CoachingCourse.id == CoachCertificate.course_id)
        .join(User, User.id == CoachCertificate.user_id)
        .where(CoachCertificate.verification_code == code)
    )
    row = result.first()
    if not row:
        return {"valid": False}
    certificate, course, user = row
    data = _certificate_to_dict(certificate, course)
    data.pop("verification_code")
    data.update({"valid": True, "recipient_name": user.name})
    return data


async def get_certificate_pdf(session: AsyncSession, certificate_id: int, user: Dict) -> bytes:
    """
    Render a stored certificate's PDF.

    Raises:
        ValueError: If the certificate does not exist
        PermissionError: If the caller is neither the holder nor an admin
    """
    result = await session.execute(
        select(CoachCertificate, CoachingCourse, User)
        .join(CoachingCourse, CoachingCourse.id == CoachCertificate.course_id)
        .join(User, User.id == CoachCertificate.user_id)
        .where(CoachCertificate.id == certificate_id)
    )
    row = result.first()
    if not row:
        raise ValueError(f"Certificate {certificate_id} not found")
    certificate, course, holder = row
    if certificate.user_id != user["id"] and user.get("role") != "admin":
        raise PermissionError("You can only download your own certificates")
    return render_certificate_pdf(
        holder.name,
        course.title,
        certificate.score,
        certificate.issued_at or utcnow(),
        certificate.certificate_number,
        certificate.verification_code,
        certificate.level,
    )

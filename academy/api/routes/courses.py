"""Coach education route handlers: courses, lessons, quizzes and certificates."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from academy.database.db import get_db_session
from academy.services import course_service, certificate_service
from academy.api.auth_dependencies import require_approved_user, require_staff, is_staff
from academy.models.schemas import (
    CourseCreate,
    CourseUpdate,
    ModuleCreate,
    ModuleUpdate,
    CompleteModuleRequest,
    QuizQuestionCreate,
    QuizSubmitRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _error(e: Exception) -> HTTPException:
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e))
    status_code = 404 if "not found" in str(e) else 400
    return HTTPException(status_code=status_code, detail=str(e))


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


@router.get("/api/courses")
async def list_courses(
    category: Optional[str] = None,
    include_unpublished: bool = False,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Published courses; staff may include drafts."""
    try:
        published_only = not (include_unpublished and is_staff(current_user))
        return await course_service.list_courses(session, published_only=published_only, category=category)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading courses: {str(e)}")


@router.post("/api/courses")
async def create_course(
    payload: CourseCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        fields = payload.model_dump(exclude={"title"}, exclude_none=True)
        return await course_service.create_course(session, payload.title, **fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating course: {str(e)}")


@router.get("/api/courses/enrollments")
async def list_my_enrollments(
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await course_service.list_user_enrollments(session, current_user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading enrollments: {str(e)}")


@router.get("/api/courses/{course_id}")
async def get_course(
    course_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Course with its lessons, plus the caller's enrollment if any."""
    try:
        course = await course_service.get_course(session, course_id)
        if not course or (not course["is_published"] and not is_staff(current_user)):
            raise HTTPException(status_code=404, detail="Course not found")
        course["enrollment"] = await course_service.get_enrollment(session, current_user["id"], course_id)
        return course
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading course: {str(e)}")


@router.put("/api/courses/{course_id}")
async def update_course(
    course_id: int,
    payload: CourseUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await course_service.update_course(session, course_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating course: {str(e)}")


@router.delete("/api/courses/{course_id}")
async def delete_course(
    course_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await course_service.delete_course(session, course_id)
        return {"status": "success", "message": "Course deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting course: {str(e)}")


# ---------------------------------------------------------------------------
# Lessons and progress
# ---------------------------------------------------------------------------


@router.post("/api/courses/{course_id}/modules")
async def add_module(
    course_id: int,
    payload: ModuleCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        fields = payload.model_dump(exclude={"title"}, exclude_none=True)
        return await course_service.add_module(session, course_id, payload.title, **fields)
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error adding module: {str(e)}")


@router.put("/api/courses/modules/{module_id}")
async def update_module(
    module_id: int,
    payload: ModuleUpdate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await course_service.update_module(session, module_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating module: {str(e)}")


@router.delete("/api/courses/modules/{module_id}")
async def delete_module(
    module_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await course_service.delete_module(session, module_id)
        return {"status": "success", "message": "Module deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting module: {str(e)}")


@router.post("/api/courses/{course_id}/enroll")
async def enroll(
    course_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await course_service.enroll(session, current_user["id"], course_id)
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error enrolling: {str(e)}")


@router.get("/api/courses/{course_id}/progress")
async def get_module_progress(
    course_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return {
            "enrollment": await course_service.get_enrollment(session, current_user["id"], course_id),
            "modules": await course_service.get_module_progress(session, current_user["id"], course_id),
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading progress: {str(e)}")


@router.post("/api/courses/modules/{module_id}/complete")
async def complete_module(
    module_id: int,
    payload: CompleteModuleRequest,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark a lesson complete; returns the updated course progress."""
    try:
        return await course_service.complete_module(
            session, current_user["id"], module_id, payload.watch_time_seconds
        )
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error completing module: {str(e)}")


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------


@router.get("/api/courses/{course_id}/quiz")
async def list_quiz_questions(
    course_id: int,
    include_answers: bool = False,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Quiz questions. Answers are only included for staff who ask for them."""
    try:
        return await course_service.list_quiz_questions(
            session, course_id, include_answers=include_answers and is_staff(current_user)
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading quiz: {str(e)}")


@router.post("/api/courses/{course_id}/quiz/questions")
async def add_quiz_question(
    course_id: int,
    payload: QuizQuestionCreate,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        fields = payload.model_dump(
            exclude={"question", "option_a", "option_b", "correct_answer"}, exclude_none=True
        )
        return await course_service.add_quiz_question(
            session,
            course_id,
            payload.question,
            payload.option_a,
            payload.option_b,
            payload.correct_answer,
            **fields,
        )
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error adding question: {str(e)}")


@router.delete("/api/courses/quiz/questions/{question_id}")
async def delete_quiz_question(
    question_id: int,
    current_user: dict = Depends(require_staff),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await course_service.delete_quiz_question(session, question_id)
        return {"status": "success", "message": "Question deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting question: {str(e)}")


@router.post("/api/courses/{course_id}/quiz/submit")
async def submit_quiz(
    course_id: int,
    payload: QuizSubmitRequest,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Grade a quiz attempt. Passing issues the course certificate; every
    attempt re-checks badges and weekly challenges.
    """
    try:
        return await course_service.submit_quiz(session, current_user["id"], course_id, payload.answers)
    except ValueError as e:
        raise _error(e)
    except Exception as e:
        logger.error(f"Error submitting quiz for course {course_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error submitting quiz: {str(e)}")


@router.get("/api/courses/{course_id}/quiz/attempts")
async def list_quiz_attempts(
    course_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await course_service.list_quiz_attempts(session, current_user["id"], course_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading attempts: {str(e)}")


@router.get("/api/quiz-attempts/{attempt_id}/review")
async def get_quiz_review(
    attempt_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await course_service.get_quiz_review(session, attempt_id, current_user)
    except (ValueError, PermissionError) as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading quiz review: {str(e)}")


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


@router.get("/api/certificates")
async def list_my_certificates(
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await certificate_service.list_user_certificates(session, current_user["id"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading certificates: {str(e)}")


@router.get("/api/certificates/verify/{code}")
async def verify_certificate(code: str, session: AsyncSession = Depends(get_db_session)):
    """Public certificate lookup by verification code."""
    try:
        return await certificate_service.verify_certificate(session, code)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error verifying certificate: {str(e)}")


@router.get("/api/certificates/{certificate_id}")
async def get_certificate(
    certificate_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        certificate = await certificate_service.get_certificate(session, certificate_id)
        if not certificate:
            raise HTTPException(status_code=404, detail="Certificate not found")
        if certificate["user_id"] != current_user["id"] and current_user["role"] != "admin":
            raise HTTPException(status_code=403, detail="You can only view your own certificates")
        return certificate
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading certificate: {str(e)}")


@router.get("/api/certificates/{certificate_id}/pdf")
async def download_certificate(
    certificate_id: int,
    current_user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        pdf = await certificate_service.get_certificate_pdf(session, certificate_id, current_user)
        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="certificate-{certificate_id}.pdf"'},
        )
    except (ValueError, PermissionError) as e:
        raise _error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error rendering certificate: {str(e)}")

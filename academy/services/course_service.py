"""
Coach education courses: catalogue, enrollment, lesson progress and the
final quiz.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from academy.database.models import (
    CoachingCourse,
    CourseModule,
    CourseEnrollment,
    ModuleProgress,
    QuizQuestion,
    QuizAttempt,
    STAFF_ROLES,
)
from academy.services import certificate_service, badge_service, challenge_service
from academy.utils.constants import QUIZ_PASS_MARK
from academy.utils.number_utils import round_int
from academy.utils.datetime_utils import utcnow
import logging

logger = logging.getLogger(__name__)

COURSE_FIELDS = ("title", "description", "category", "level", "duration_minutes", "is_published", "display_order")
MODULE_FIELDS = ("title", "content", "video_url", "duration_minutes", "display_order")
QUESTION_FIELDS = (
    "question",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "correct_answer",
    "explanation",
    "display_order",
)
VALID_LEVELS = {"beginner", "intermediate", "advanced"}
ANSWER_LETTERS = ("A", "B", "C", "D")


def _course_to_dict(course: CoachingCourse, module_count: Optional[int] = None) -> Dict:
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "category": course.category,
        "level": course.level,
        "duration_minutes": course.duration_minutes,
        "is_published": bool(course.is_published),
        "display_order": course.display_order,
        "module_count": module_count,
    }


def _module_to_dict(module: CourseModule) -> Dict:
    return {
        "id": module.id,
        "course_id": module.course_id,
        "title": module.title,
        "content": module.content,
        "video_url": module.video_url,
        "duration_minutes": module.duration_minutes,
        "display_order": module.display_order,
    }


def _enrollment_to_dict(enrollment: CourseEnrollment) -> Dict:
    return {
        "id": enrollment.id,
        "user_id": enrollment.user_id,
        "course_id": enrollment.course_id,
        "progress": enrollment.progress,
        "completed_at": enrollment.completed_at.isoformat() if enrollment.completed_at else None,
        "certificate_url": enrollment.certificate_url,
        "enrolled_at": enrollment.enrolled_at.isoformat() if enrollment.enrolled_at else None,
    }


def _question_to_dict(question: QuizQuestion, include_answer: bool = False) -> Dict:
    data = {
        "id": question.id,
        "course_id": question.course_id,
        "question": question.question,
        "options": {
            letter: text
            for letter, text in zip(
                ANSWER_LETTERS,
                (question.option_a, question.option_b, question.option_c, question.option_d),
            )
            if text
        },
        "display_order": question.display_order,
    }
    if include_answer:
        data["correct_answer"] = question.correct_answer
        data["explanation"] = question.explanation
    return data


def _attempt_to_dict(attempt: QuizAttempt) -> Dict:
    return {
        "id": attempt.id,
        "user_id": attempt.user_id,
        "course_id": attempt.course_id,
        "score": attempt.score,
        "passed": bool(attempt.passed),
        "answers": attempt.answers or {},
        "attempted_at": attempt.attempted_at.isoformat() if attempt.attempted_at else None,
    }


def compute_progress(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_int(completed / total * 100)


def score_answers(questions: List[QuizQuestion], answers: Dict) -> Dict:
    """
    Grade answers keyed by question id (int or str) against the questions.

    Returns:
        Dict with ``correct``, ``total``, ``score`` (rounded percent),
        ``passed`` and the normalised ``answers``
    """
    normalized = {str(k): str(v).strip().upper() for k, v in (answers or {}).items() if v is not None}
    correct = sum(1 for q in questions if normalized.get(str(q.id)) == q.correct_answer)
    total = len(questions)
    score = round_int(correct / total * 100) if total else 0
    return {
        "correct": correct,
        "total": total,
        "score": score,
        "passed": score >= QUIZ_PASS_MARK,
        "answers": normalized,
    }


# ============================================================================
# Courses and modules
# ============================================================================


async def _get_course_model(session: AsyncSession, course_id: int) -> CoachingCourse:
    result = await session.execute(select(CoachingCourse).where(CoachingCourse.id == course_id))
    course = result.scalar_one_or_none()
    if not course:
        raise ValueError(f"Course {course_id} not found")
    return course


def _validate_course(fields: Dict):
    if fields.get("level") is not None and fields["level"] not in VALID_LEVELS:
        raise ValueError(f"Invalid level: {fields['level']}")
    if fields.get("duration_minutes") is not None and fields["duration_minutes"] < 0:
        raise ValueError("duration_minutes cannot be negative")


async def create_course(session: AsyncSession, title: str, **fields) -> Dict:
    values = {k: v for k, v in fields.items() if k in COURSE_FIELDS and v is not None}
    values["title"] = title
    _validate_course(values)
    course = CoachingCourse(**values)
    session.add(course)
    await session.flush()
    await session.refresh(course)
    logger.info(f"Created course {course.id}: {course.title}")
    return _course_to_dict(course, 0)


async def _module_counts(session: AsyncSession) -> Dict[int, int]:
    result = await session.execute(
        select(CourseModule.course_id, func.count(CourseModule.id)).group_by(CourseModule.course_id)
    )
    return {course_id: count for course_id, count in result.all()}


async def list_courses(
    session: AsyncSession, published_only: bool = True, category: Optional[str] = None
) -> List[Dict]:
    query = select(CoachingCourse)
    if published_only:
        query = query.where(CoachingCourse.is_published.is_(True))
    if category:
        query = query.where(CoachingCourse.category == category)
    result = await session.execute(query.order_by(CoachingCourse.display_order, CoachingCourse.id))
    counts = await _module_counts(session)
    return [_course_to_dict(c, counts.get(c.id, 0)) for c in result.scalars().all()]


async def get_course(session: AsyncSession, course_id: int) -> Optional[Dict]:
    """Course with its ordered modules."""
    result = await session.execute(select(CoachingCourse).where(CoachingCourse.id == course_id))
    course = result.scalar_one_or_none()
    if not course:
        return None
    modules = await list_modules(session, course_id)
    data = _course_to_dict(course, len(modules))
    data["modules"] = modules
    return data


async def update_course(session: AsyncSession, course_id: int, **fields) -> Dict:
    course = await _get_course_model(session, course_id)
    values = {k: v for k, v in fields.items() if k in COURSE_FIELDS and v is not None}
    _validate_course(values)
    for key, value in values.items():
        setattr(course, key, value)
    await session.flush()
    await session.refresh(course)
    counts = await _module_counts(session)
    return _course_to_dict(course, counts.get(course.id, 0))


async def delete_course(session: AsyncSession, course_id: int) -> bool:
    await _get_course_model(session, course_id)
    await session.execute(delete(CourseModule).where(CourseModule.course_id == course_id))
    await session.execute(delete(CoachingCourse).where(CoachingCourse.id == course_id))
    await session.flush()
    return True


async def list_modules(session: AsyncSession, course_id: int) -> List[Dict]:
    result = await session.execute(
        select(CourseModule)
        .where(CourseModule.course_id == course_id)
        .order_by(CourseModule.display_order, CourseModule.id)
    )
    return [_module_to_dict(m) for m in result.scalars().all()]


async def add_module(session: AsyncSession, course_id: int, title: str, **fields) -> Dict:
    await _get_course_model(session, course_id)
    values = {k: v for k, v in fields.items() if k in MODULE_FIELDS and k != "title" and v is not None}
    module = CourseModule(course_id=course_id, title=title, **values)
    session.add(module)
    await session.flush()
    await session.refresh(module)
    return _module_to_dict(module)


async def _get_module_model(session: AsyncSession, module_id: int) -> CourseModule:
    result = await session.execute(select(CourseModule).where(CourseModule.id == module_id))
    module = result.scalar_one_or_none()
    if not module:
        raise ValueError(f"Module {module_id} not found")
    return module


async def update_module(session: AsyncSession, module_id: int, **fields) -> Dict:
    module = await _get_module_model(session, module_id)
    for key, value in fields.items():
        if key in MODULE_FIELDS and value is not None:
            setattr(module, key, value)
    await session.flush()
    await session.refresh(module)
    return _module_to_dict(module)


async def delete_module(session: AsyncSession, module_id: int) -> bool:
    module = await _get_module_model(session, module_id)
    await session.delete(module)
    await session.flush()
    return True


# ============================================================================
# Enrollment and progress
# ============================================================================


async def _get_enrollment(session: AsyncSession, user_id: int, course_id: int) -> Optional[CourseEnrollment]:
    result = await session.execute(
        select(CourseEnrollment).where(
            CourseEnrollment.user_id == user_id, CourseEnrollment.course_id == course_id
        )
    )
    return result.scalar_one_or_none()


async def enroll(session: AsyncSession, user_id: int, course_id: int) -> Dict:
    """Enroll a user in a published course. Re-enrolling returns the existing enrollment."""
    course = await _get_course_model(session, course_id)
    if not course.is_published:
        raise ValueError("Course is not published")
    enrollment = await _get_enrollment(session, user_id, course_id)
    if enrollment is None:
        enrollment = CourseEnrollment(user_id=user_id, course_id=course_id, progress=0)
        session.add(enrollment)
        await session.flush()
        await session.refresh(enrollment)
        logger.info(f"User {user_id} enrolled in course {course_id}")
    return _enrollment_to_dict(enrollment)


async def get_enrollment(session: AsyncSession, user_id: int, course_id: int) -> Optional[Dict]:
    enrollment = await _get_enrollment(session, user_id, course_id)
    return _enrollment_to_dict(enrollment) if enrollment else None


async def list_user_enrollments(session: AsyncSession, user_id: int) -> List[Dict]:
    result = await session.execute(
        select(CourseEnrollment, CoachingCourse)
        .join(CoachingCourse, CoachingCourse.id == CourseEnrollment.course_id)
        .where(CourseEnrollment.user_id == user_id)
        .order_by(CourseEnrollment.enrolled_at.desc(), CourseEnrollment.id.desc())
    )
    enrollments = []
    for enrollment, course in result.all():
        data = _enrollment_to_dict(enrollment)
        data["course_title"] = course.title
        enrollments.append(data)
    return enrollments


async def complete_module(
    session: AsyncSession, user_id: int, module_id: int, watch_time_seconds: int = 0
) -> Dict:
    """
    Mark a lesson complete and recompute the course progress.

    The user must be enrolled in the module's course. Progress reaching 100
    sets the enrollment's ``completed_at`` once.

    Returns:
        The updated enrollment
    """
    module = await _get_module_model(session, module_id)
    enrollment = await _get_enrollment(session, user_id, module.course_id)
    if enrollment is None:
        raise ValueError("Not enrolled in this course")

    result = await session.execute(
        select(ModuleProgress).where(
            ModuleProgress.user_id == user_id, ModuleProgress.module_id == module_id
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = ModuleProgress(user_id=user_id, module_id=module_id, watch_time_seconds=0)
        session.add(progress)
    progress.watch_time_seconds = max(progress.watch_time_seconds or 0, max(0, watch_time_seconds))
    if not progress.completed:
        progress.completed = True
        progress.completed_at = utcnow()
    await session.flush()

    total = await session.execute(
        select(func.count(CourseModule.id)).where(CourseModule.course_id == module.course_id)
    )
    completed = await session.execute(
        select(func.count(ModuleProgress.id))
        .join(CourseModule, CourseModule.id == ModuleProgress.module_id)
        .where(
            CourseModule.course_id == module.course_id,
            ModuleProgress.user_id == user_id,
            ModuleProgress.completed.is_(True),
        )
    )
    enrollment.progress = compute_progress(completed.scalar() or 0, total.scalar() or 0)
    if enrollment.progress >= 100 and enrollment.completed_at is None:
        enrollment.completed_at = utcnow()
        logger.info(f"User {user_id} completed course {module.course_id}")
    await session.flush()
    await session.refresh(enrollment)
    return _enrollment_to_dict(enrollment)


async def get_module_progress(session: AsyncSession, user_id: int, course_id: int) -> List[Dict]:
    result = await session.execute(
        select(CourseModule, ModuleProgress)
        .outerjoin(
            ModuleProgress,
            (ModuleProgress.module_id == CourseModule.id) & (ModuleProgress.user_id == user_id),
        )
        .where(CourseModule.course_id == course_id)
        .order_by(CourseModule.display_order, CourseModule.id)
    )
    return [
        {
            "module_id": module.id,
            "title": module.title,
            "completed": bool(progress and progress.completed),
            "watch_time_seconds": progress.watch_time_seconds if progress else 0,
        }
        for module, progress in result.all()
    ]


# ============================================================================
# Quiz
# ============================================================================


def _validate_question(fields: Dict):
    answer = fields.get("correct_answer")
    if answer is not None:
        answer = str(answer).strip().upper()
        if answer not in ANSWER_LETTERS:
            raise ValueError("correct_answer must be one of A, B, C, D")
        option = fields.get(f"option_{answer.lower()}")
        if answer in ("C", "D") and not option:
            raise ValueError(f"correct_answer {answer} has no option text")
        fields["correct_answer"] = answer


async def add_quiz_question(
    session: AsyncSession,
    course_id: int,
    question: str,
    option_a: str,
    option_b: str,
    correct_answer: str,
    **fields,
) -> Dict:
    await _get_course_model(session, course_id)
    values = {k: v for k, v in fields.items() if k in QUESTION_FIELDS and v is not None}
    values.update({
        "question": question,
        "option_a": option_a,
        "option_b": option_b,
        "correct_answer": correct_answer,
    })
    _validate_question(values)
    quiz_question = QuizQuestion(course_id=course_id, **values)
    session.add(quiz_question)
    await session.flush()
    await session.refresh(quiz_question)
    return _question_to_dict(quiz_question, include_answer=True)


async def _course_questions(session: AsyncSession, course_id: int) -> List[QuizQuestion]:
    result = await session.execute(
        select(QuizQuestion)
        .where(QuizQuestion.course_id == course_id)
        .order_by(QuizQuestion.display_order, QuizQuestion.id)
    )
    return list(result.scalars().all())


async def list_quiz_questions(
    session: AsyncSession, course_id: int, include_answers: bool = False
) -> List[Dict]:
    return [_question_to_dict(q, include_answers) for q in await _course_questions(session, course_id)]


async def delete_quiz_question(session: AsyncSession, question_id: int) -> bool:
    result = await session.execute(select(QuizQuestion).where(QuizQuestion.id == question_id))
    quiz_question = result.scalar_one_or_none()
    if not quiz_question:
        raise ValueError(f"Question {question_id} not found")
    await session.delete(quiz_question)
    await session.flush()
    return True


async def submit_quiz(session: AsyncSession, user_id: int, course_id: int, answers: Dict) -> Dict:
    """
    Grade and store a quiz attempt.

    A pass issues the course certificate (once). Every attempt re-evaluates
    badges and active challenges.

    Returns:
        Dict with the attempt fields plus ``correct``, ``total``,
        ``certificate``, ``badges_earned`` and ``challenges_completed``
    """
    await _get_course_model(session, course_id)
    if await _get_enrollment(session, user_id, course_id) is None:
        raise ValueError("Not enrolled in this course")
    questions = await _course_questions(session, course_id)
    if not questions:
        raise ValueError("Course has no quiz questions")

    graded = score_answers(questions, answers)
    attempt = QuizAttempt(
        user_id=user_id,
        course_id=course_id,
        score=graded["score"],
        answers=graded["answers"],
        passed=graded["passed"],
        attempted_at=utcnow(),
    )
    session.add(attempt)
    await session.flush()
    await session.refresh(attempt)
    logger.info(f"User {user_id} scored {graded['score']}% on course {course_id} quiz")

    certificate = None
    if graded["passed"]:
        certificate = await certificate_service.issue_certificate(session, user_id, course_id, graded["score"])

    badges = await badge_service.check_and_award_badges(session, user_id, graded["score"])
    challenges = await challenge_service.check_and_update_progress(session, user_id, graded["score"])

    data = _attempt_to_dict(attempt)
    data.update({
        "correct": graded["correct"],
        "total": graded["total"],
        "certificate": certificate,
        "badges_earned": badges,
        "challenges_completed": challenges,
    })
    return data


async def list_quiz_attempts(session: AsyncSession, user_id: int, course_id: Optional[int] = None) -> List[Dict]:
    query = select(QuizAttempt).where(QuizAttempt.user_id == user_id)
    if course_id is not None:
        query = query.where(QuizAttempt.course_id == course_id)
    result = await session.execute(query.order_by(QuizAttempt.attempted_at.desc(), QuizAttempt.id.desc()))
    return [_attempt_to_dict(a) for a in result.scalars().all()]


async def get_quiz_review(session: AsyncSession, attempt_id: int, user: Dict) -> Dict:
    """
    Attempt details with each question, the user's answer, the correct answer
    and the explanation.

    Raises:
        ValueError: If the attempt does not exist
        PermissionError: If the attempt belongs to someone else and the caller is not staff
    """
    result = await session.execute(select(QuizAttempt).where(QuizAttempt.id == attempt_id))
    attempt = result.scalar_one_or_none()
    if not attempt:
        raise ValueError(f"Quiz attempt {attempt_id} not found")
    if attempt.user_id != user["id"] and user.get("role") not in STAFF_ROLES:
        raise PermissionError("You can only review your own quiz attempts")

    course = await _get_course_model(session, attempt.course_id)
    answers = attempt.answers or {}
    questions = []
    correct_count = 0
    for question in await _course_questions(session, attempt.course_id):
        user_answer = answers.get(str(question.id))
        is_correct = user_answer == question.correct_answer
        correct_count += int(is_correct)
        entry = _question_to_dict(question, include_answer=True)
        entry.update({"user_answer": user_answer, "is_correct": is_correct})
        questions.append(entry)

    data = _attempt_to_dict(attempt)
    data.update({
        "course_title": course.title,
        "correct_answers": correct_count,
        "total_questions": len(questions),
        "questions": questions,
    })
    return data

"""
Tests for the coach education flow: enrollment, module progress, quizzes,
certificates and the badges they trigger.
"""

import re
from types import SimpleNamespace

import pytest
import pytest_asyncio

from academy.services import (
    badge_service,
    certificate_service,
    course_service,
    notification_service,
)


class TestGrading:
    def test_compute_progress(self):
        assert course_service.compute_progress(1, 3) == 33
        assert course_service.compute_progress(3, 3) == 100
        assert course_service.compute_progress(1, 8) == 13
        assert course_service.compute_progress(0, 0) == 0

    def test_score_answers_is_case_insensitive(self):
        questions = [SimpleNamespace(id=1, correct_answer="A"), SimpleNamespace(id=2, correct_answer="C")]
        graded = course_service.score_answers(questions, {1: " a ", "2": "d"})
        assert graded["correct"] == 1
        assert graded["score"] == 50
        assert graded["passed"] is False
        assert graded["answers"] == {"1": "A", "2": "D"}

    def test_pass_mark(self):
        questions = [SimpleNamespace(id=i, correct_answer="B") for i in range(1, 11)]
        answers = {i: "B" for i in range(1, 8)}
        graded = course_service.score_answers(questions, answers)
        assert graded["score"] == 70
        assert graded["passed"] is True


def test_certificate_number_format():
    assert certificate_service.generate_certificate_number(2026, 42) == "FSA-2026-000042"
    with pytest.raises(ValueError):
        certificate_service.generate_certificate_number(2026, 0)


def test_render_certificate_pdf():
    from datetime import datetime

    pdf = certificate_service.render_certificate_pdf(
        "Test Coach", "Session Planning", 90, datetime(2026, 5, 1), "FSA-2026-000001", "ABCDEF0123456789", "beginner"
    )
    assert pdf.startswith(b"%PDF")


# ============================================================================
# Database-backed
# ============================================================================


@pytest_asyncio.fixture
async def course(db_session):
    created = await course_service.create_course(
        db_session, "Session Planning", level="beginner", category="coaching", is_published=True
    )
    first = await course_service.add_module(db_session, created["id"], "Warm-ups", display_order=1)
    second = await course_service.add_module(db_session, created["id"], "Small-sided games", display_order=2)
    q1 = await course_service.add_quiz_question(
        db_session, created["id"], "How long is a warm-up?", "15 minutes", "45 minutes", "a"
    )
    q2 = await course_service.add_quiz_question(
        db_session, created["id"], "Best group size for rondos?", "2", "5", "B"
    )
    created["module_ids"] = [first["id"], second["id"]]
    created["question_ids"] = [q1["id"], q2["id"]]
    return created


@pytest.mark.asyncio
async def test_course_validation(db_session):
    with pytest.raises(ValueError, match="Invalid level"):
        await course_service.create_course(db_session, "Bad", level="expert")
    with pytest.raises(ValueError, match="Course 999 not found"):
        await course_service.add_quiz_question(db_session, 999, "Q", "a", "b", "A")


@pytest.mark.asyncio
async def test_question_needs_option_text(db_session, course):
    with pytest.raises(ValueError, match="no option text"):
        await course_service.add_quiz_question(db_session, course["id"], "Q", "a", "b", "C")
    with pytest.raises(ValueError, match="one of A, B, C, D"):
        await course_service.add_quiz_question(db_session, course["id"], "Q", "a", "b", "E")


@pytest.mark.asyncio
async def test_draft_courses_cannot_be_joined(db_session, coach_user):
    draft = await course_service.create_course(db_session, "Draft")
    assert draft["is_published"] is False
    with pytest.raises(ValueError, match="not published"):
        await course_service.enroll(db_session, coach_user["id"], draft["id"])

    published = await course_service.list_courses(db_session)
    assert draft["id"] not in [c["id"] for c in published]


@pytest.mark.asyncio
async def test_enroll_is_idempotent(db_session, coach_user, course):
    first = await course_service.enroll(db_session, coach_user["id"], course["id"])
    again = await course_service.enroll(db_session, coach_user["id"], course["id"])
    assert first["id"] == again["id"]
    assert first["progress"] == 0


@pytest.mark.asyncio
async def test_module_completion_drives_progress(db_session, coach_user, parent_user, course):
    await course_service.enroll(db_session, coach_user["id"], course["id"])
    first, second = course["module_ids"]

    halfway = await course_service.complete_module(db_session, coach_user["id"], first, watch_time_seconds=300)
    assert halfway["progress"] == 50
    assert halfway["completed_at"] is None

    # Completing the same lesson twice does not change progress
    repeat = await course_service.complete_module(db_session, coach_user["id"], first)
    assert repeat["progress"] == 50

    done = await course_service.complete_module(db_session, coach_user["id"], second)
    assert done["progress"] == 100
    assert done["completed_at"] is not None

    progress = await course_service.get_module_progress(db_session, coach_user["id"], course["id"])
    assert [p["completed"] for p in progress] == [True, True]
    assert progress[0]["watch_time_seconds"] == 300

    with pytest.raises(ValueError, match="Not enrolled"):
        await course_service.complete_module(db_session, parent_user["id"], first)


@pytest.mark.asyncio
async def test_quiz_requires_enrollment(db_session, coach_user, course):
    with pytest.raises(ValueError, match="Not enrolled"):
        await course_service.submit_quiz(db_session, coach_user["id"], course["id"], {})


@pytest.mark.asyncio
async def test_hidden_answers(db_session, course):
    questions = await course_service.list_quiz_questions(db_session, course["id"])
    assert all("correct_answer" not in q for q in questions)
    with_answers = await course_service.list_quiz_questions(db_session, course["id"], include_answers=True)
    assert [q["correct_answer"] for q in with_answers] == ["A", "B"]


@pytest.mark.asyncio
async def test_quiz_pass_issues_certificate_once(db_session, coach_user, parent_user, course):
    await badge_service.initialize_default_badges(db_session)
    await course_service.enroll(db_session, coach_user["id"], course["id"])
    for module_id in course["module_ids"]:
        await course_service.complete_module(db_session, coach_user["id"], module_id)
    q1, q2 = course["question_ids"]

    failed = await course_service.submit_quiz(db_session, coach_user["id"], course["id"], {q1: "B", q2: "A"})
    assert failed["score"] == 0
    assert failed["passed"] is False
    assert failed["certificate"] is None
    assert {b["name"] for b in failed["badges_earned"]} == {"Quiz Rookie", "First Steps"}

    passed = await course_service.submit_quiz(
        db_session, coach_user["id"], course["id"], {str(q1): "a", str(q2): "b"}
    )
    assert passed["score"] == 100
    assert passed["passed"] is True
    certificate = passed["certificate"]
    assert re.fullmatch(r"FSA-\d{4}-000001", certificate["certificate_number"])
    assert {b["name"] for b in passed["badges_earned"]} == {"Perfect Score"}

    again = await course_service.submit_quiz(db_session, coach_user["id"], course["id"], {q1: "A", q2: "B"})
    assert again["certificate"]["certificate_number"] == certificate["certificate_number"]
    assert again["badges_earned"] == []

    attempts = await course_service.list_quiz_attempts(db_session, coach_user["id"], course["id"])
    assert len(attempts) == 3

    certificates = await certificate_service.list_user_certificates(db_session, coach_user["id"])
    assert len(certificates) == 1
    assert certificates[0]["course_title"] == "Session Planning"

    assert await notification_service.get_unread_count(db_session, coach_user["id"]) > 0

    review = await course_service.get_quiz_review(db_session, passed["id"], coach_user)
    assert all(q["is_correct"] for q in review["questions"])
    with pytest.raises(PermissionError):
        await course_service.get_quiz_review(db_session, passed["id"], parent_user)


@pytest.mark.asyncio
async def test_certificate_verification_and_pdf(db_session, coach_user, parent_user, course):
    await course_service.enroll(db_session, coach_user["id"], course["id"])
    certificate = await certificate_service.issue_certificate(db_session, coach_user["id"], course["id"], 85)

    verified = await certificate_service.verify_certificate(db_session, certificate["verification_code"].lower())
    assert verified["valid"] is True
    assert verified["recipient_name"] == "Test Coach"
    assert "verification_code" not in verified

    assert await certificate_service.verify_certificate(db_session, "NOT-A-CODE") == {"valid": False}
    assert await certificate_service.verify_certificate(db_session, "") == {"valid": False}

    pdf = await certificate_service.get_certificate_pdf(db_session, certificate["id"], coach_user)
    assert pdf.startswith(b"%PDF")

    with pytest.raises(PermissionError):
        await certificate_service.get_certificate_pdf(db_session, certificate["id"], parent_user)
    admin = {"id": 999, "role": "admin"}
    assert (await certificate_service.get_certificate_pdf(db_session, certificate["id"], admin)).startswith(b"%PDF")


@pytest.mark.asyncio
async def test_delete_course_removes_modules(db_session, course):
    assert await course_service.delete_course(db_session, course["id"]) is True
    assert await course_service.get_course(db_session, course["id"]) is None
    assert await course_service.list_modules(db_session, course["id"]) == []

"""
Unit tests for API endpoints.
Services are monkeypatched and the database session is a dummy, so these
tests cover routing, access control and error mapping only.
"""

from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

from PIL import Image

from academy.services import (
    auth_service,
    certificate_service,
    course_service,
    notification_service,
    parent_service,
    player_service,
    points_service,
    s3_service,
    streak_service,
    user_service,
    whatsapp_service,
)


def _jpeg():
    buf = BytesIO()
    Image.new("RGB", (40, 30), color=(0, 128, 0)).save(buf, format="JPEG")
    return buf.getvalue()


def _async_return(value):
    async def fake(*args, **kwargs):
        return value

    return fake


def _async_raise(error):
    async def fake(*args, **kwargs):
        raise error

    return fake


PENDING_USER = {
    "id": 7,
    "email": "new.parent@academy.test",
    "name": "New Parent",
    "phone": None,
    "whatsapp_phone": None,
    "whatsapp_notifications": False,
    "role": "player",
    "account_status": "pending",
    "requested_role": "parent",
    "avatar_url": None,
    "onboarding_completed": False,
    "last_signed_in": None,
    "created_at": "2026-01-01T00:00:00+00:00",
}


# ============================================================================
# Health
# ============================================================================


class TestHealthEndpoint:
    def test_health(self, anon_client):
        response = anon_client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================================
# Auth
# ============================================================================


class TestAuthEndpoints:
    def test_register_returns_pending_tokens(self, anon_client, monkeypatch):
        monkeypatch.setattr(user_service, "register_user", _async_return(PENDING_USER))
        monkeypatch.setattr(user_service, "create_refresh_token", _async_return(True))

        response = anon_client.post(
            "/api/auth/register",
            json={
                "email": "new.parent@academy.test",
                "password": "password1",
                "name": "New Parent",
                "requested_role": "parent",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["account_status"] == "pending"
        assert data["user_id"] == 7
        assert auth_service.verify_token(data["access_token"])["user_id"] == 7

    def test_register_requires_name(self, anon_client):
        response = anon_client.post(
            "/api/auth/register", json={"email": "x@academy.test", "password": "password1", "name": " "}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Name is required"

    def test_register_validation_error(self, anon_client, monkeypatch):
        monkeypatch.setattr(user_service, "register_user", _async_raise(ValueError("Email already registered")))
        response = anon_client.post(
            "/api/auth/register", json={"email": "x@academy.test", "password": "password1", "name": "X"}
        )
        assert response.status_code == 400
        assert "already registered" in response.json()["detail"]

    def test_login_updates_streak(self, anon_client, monkeypatch):
        approved = {**PENDING_USER, "role": "parent", "account_status": "approved"}
        monkeypatch.setattr(user_service, "authenticate_user", _async_return(approved))
        monkeypatch.setattr(user_service, "create_refresh_token", _async_return(True))
        monkeypatch.setattr(
            streak_service, "check_and_update_streak", _async_return({"current_streak": 3, "longest_streak": 5})
        )

        response = anon_client.post("/api/auth/login", json={"email": "a@academy.test", "password": "password1"})
        assert response.status_code == 200
        assert response.json()["streak"]["current_streak"] == 3
        assert response.json()["role"] == "parent"

    def test_login_streak_failure_does_not_block(self, anon_client, monkeypatch):
        approved = {**PENDING_USER, "account_status": "approved"}
        monkeypatch.setattr(user_service, "authenticate_user", _async_return(approved))
        monkeypatch.setattr(user_service, "create_refresh_token", _async_return(True))
        monkeypatch.setattr(streak_service, "check_and_update_streak", _async_raise(RuntimeError("db down")))

        response = anon_client.post("/api/auth/login", json={"email": "a@academy.test", "password": "password1"})
        assert response.status_code == 200
        assert response.json()["streak"] is None

    def test_login_streak_runs_in_savepoint(self, anon_client, monkeypatch):
        from academy.api.main import app
        from academy.database.db import get_db_session

        session = AsyncMock()
        savepoint = AsyncMock()
        session.begin_nested = MagicMock(return_value=savepoint)

        async def override():
            yield session

        app.dependency_overrides[get_db_session] = override
        approved = {**PENDING_USER, "account_status": "approved"}
        monkeypatch.setattr(user_service, "authenticate_user", _async_return(approved))
        monkeypatch.setattr(user_service, "create_refresh_token", _async_return(True))
        monkeypatch.setattr(streak_service, "check_and_update_streak", _async_raise(RuntimeError("db down")))

        response = anon_client.post("/api/auth/login", json={"email": "a@academy.test", "password": "password1"})
        assert response.status_code == 200
        session.begin_nested.assert_called_once()
        savepoint.__aexit__.assert_awaited_once()
        assert savepoint.__aexit__.await_args.args[0] is RuntimeError

    def test_login_bad_credentials(self, anon_client, monkeypatch):
        monkeypatch.setattr(
            user_service, "authenticate_user", _async_raise(ValueError("Invalid email or password"))
        )
        response = anon_client.post("/api/auth/login", json={"email": "a@academy.test", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Email or password is incorrect"

    def test_login_rejected_account(self, anon_client, monkeypatch):
        monkeypatch.setattr(
            user_service, "authenticate_user", _async_raise(PermissionError("Account has been rejected"))
        )
        response = anon_client.post("/api/auth/login", json={"email": "a@academy.test", "password": "password1"})
        assert response.status_code == 403

    def test_refresh_unknown_token(self, anon_client, monkeypatch):
        monkeypatch.setattr(user_service, "get_refresh_token", _async_return(None))
        response = anon_client.post("/api/auth/refresh", json={"refresh_token": "missing"})
        assert response.status_code == 401

    def test_refresh_expired_token(self, anon_client, monkeypatch):
        deleted = []

        async def fake_delete(session, token):
            deleted.append(token)
            return True

        monkeypatch.setattr(
            user_service, "get_refresh_token", _async_return({"user_id": 7, "expires_at": "2020-01-01T00:00:00+00:00"})
        )
        monkeypatch.setattr(user_service, "delete_refresh_token", fake_delete)
        response = anon_client.post("/api/auth/refresh", json={"refresh_token": "old"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Refresh token has expired"
        assert deleted == ["old"]

    def test_me_allowed_while_pending(self, auth_client):
        client, headers = auth_client(user_id=7, role="player", account_status="pending")
        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["account_status"] == "pending"

    def test_missing_token(self, anon_client):
        response = anon_client.get("/api/auth/me")
        assert response.status_code in (401, 403)


# ============================================================================
# Access control
# ============================================================================


class TestAccessControl:
    def test_pending_account_is_blocked(self, auth_client):
        client, headers = auth_client(account_status="pending")
        response = client.get("/api/players", headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Account is awaiting approval"

    def test_parent_cannot_create_players(self, auth_client):
        client, headers = auth_client(role="parent")
        response = client.post(
            "/api/players",
            json={"first_name": "A", "last_name": "B", "date_of_birth": "2012-01-01", "position": "defender"},
            headers=headers,
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Staff access required"

    def test_parent_sees_only_linked_children(self, auth_client, monkeypatch):
        client, headers = auth_client(user_id=5, role="parent")
        monkeypatch.setattr(player_service, "get_parent_player_ids", _async_return([3]))
        monkeypatch.setattr(player_service, "get_player", _async_return({"id": 3, "full_name": "Sami Haddad"}))
        monkeypatch.setattr(points_service, "get_balance", _async_return({"total_points": 120}))

        allowed = client.get("/api/players/3", headers=headers)
        assert allowed.status_code == 200
        assert allowed.json()["points"]["total_points"] == 120

        denied = client.get("/api/players/4", headers=headers)
        assert denied.status_code == 403

    def test_parent_player_list_is_scoped(self, auth_client, monkeypatch):
        client, headers = auth_client(user_id=5, role="parent")
        captured = {}

        async def fake_list_players(session, **kwargs):
            captured.update(kwargs)
            return {"items": [], "total": 0}

        monkeypatch.setattr(player_service, "get_parent_player_ids", _async_return([3, 8]))
        monkeypatch.setattr(player_service, "list_players", fake_list_players)

        response = client.get("/api/players?limit=500", headers=headers)
        assert response.status_code == 200
        assert captured["player_ids"] == [3, 8]
        assert captured["limit"] == 200

    def test_photo_upload_requires_storage(self, auth_client, monkeypatch):
        client, headers = auth_client(role="coach")
        monkeypatch.setattr(player_service, "get_player", _async_return({"id": 3, "photo_url": None}))
        monkeypatch.setattr(s3_service, "is_configured", lambda: False)
        response = client.post(
            "/api/players/3/photo", files={"file": ("p.jpg", _jpeg(), "image/jpeg")}, headers=headers
        )
        assert response.status_code == 503

    def test_photo_upload_replaces_previous(self, auth_client, monkeypatch):
        client, headers = auth_client(role="coach")
        old_url = "https://b.s3.me-south-1.amazonaws.com/players/3/old.jpg"
        new_url = "https://b.s3.me-south-1.amazonaws.com/players/3/new.jpg"
        deleted = []
        updates = {}

        async def fake_delete(url):
            deleted.append(url)
            return True

        async def fake_update(session, player_id, **fields):
            updates.update(fields)
            return {"id": player_id, **fields}

        monkeypatch.setattr(player_service, "get_player", _async_return({"id": 3, "photo_url": old_url}))
        monkeypatch.setattr(player_service, "update_player", fake_update)
        monkeypatch.setattr(s3_service, "is_configured", lambda: True)
        monkeypatch.setattr(s3_service, "upload_media", _async_return(new_url))
        monkeypatch.setattr(s3_service, "delete_by_url", fake_delete)

        response = client.post(
            "/api/players/3/photo", files={"file": ("p.jpg", _jpeg(), "image/jpeg")}, headers=headers
        )
        assert response.status_code == 200
        assert updates == {"photo_url": new_url}
        assert deleted == [old_url]

        bad = client.post(
            "/api/players/3/photo", files={"file": ("p.txt", b"hello", "text/plain")}, headers=headers
        )
        assert bad.status_code == 400

    def test_coach_create_player_validation(self, auth_client, monkeypatch):
        client, headers = auth_client(role="coach")
        monkeypatch.setattr(player_service, "create_player", _async_raise(ValueError("Invalid position: libero")))
        response = client.post(
            "/api/players",
            json={"first_name": "A", "last_name": "B", "date_of_birth": "2012-01-01", "position": "libero"},
            headers=headers,
        )
        assert response.status_code == 400


# ============================================================================
# Courses and certificates
# ============================================================================


class TestCourseEndpoints:
    def test_certificate_verification_is_public(self, anon_client, monkeypatch):
        monkeypatch.setattr(
            certificate_service,
            "verify_certificate",
            _async_return({"valid": True, "recipient_name": "Test Coach", "certificate_number": "FSA-2026-000001"}),
        )
        response = anon_client.get("/api/certificates/verify/ABCDEF0123456789")
        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_quiz_submit_error_mapping(self, auth_client, monkeypatch):
        client, headers = auth_client()
        monkeypatch.setattr(course_service, "submit_quiz", _async_raise(ValueError("Course 9 not found")))
        missing = client.post("/api/courses/9/quiz/submit", json={"answers": {"1": "a"}}, headers=headers)
        assert missing.status_code == 404

        monkeypatch.setattr(course_service, "submit_quiz", _async_raise(ValueError("Not enrolled in course 9")))
        not_enrolled = client.post("/api/courses/9/quiz/submit", json={"answers": {}}, headers=headers)
        assert not_enrolled.status_code == 400

    def test_quiz_submit_result(self, auth_client, monkeypatch):
        client, headers = auth_client()
        monkeypatch.setattr(
            course_service, "submit_quiz", _async_return({"score": 100, "passed": True, "certificate": {"id": 1}})
        )
        response = client.post("/api/courses/2/quiz/submit", json={"answers": {"1": "a"}}, headers=headers)
        assert response.status_code == 200
        assert response.json()["passed"] is True

    def test_certificate_pdf(self, auth_client, monkeypatch):
        client, headers = auth_client()
        monkeypatch.setattr(certificate_service, "get_certificate_pdf", _async_return(b"%PDF-1.4 test"))
        response = client.get("/api/certificates/1/pdf", headers=headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

        monkeypatch.setattr(
            certificate_service, "get_certificate_pdf", _async_raise(PermissionError("Not your certificate"))
        )
        assert client.get("/api/certificates/1/pdf", headers=headers).status_code == 403

    def test_only_owner_sees_certificate(self, auth_client, monkeypatch):
        client, headers = auth_client(user_id=1)
        monkeypatch.setattr(certificate_service, "get_certificate", _async_return({"id": 1, "user_id": 2}))
        assert client.get("/api/certificates/1", headers=headers).status_code == 403

    def test_parent_cannot_create_course(self, auth_client):
        client, headers = auth_client(role="parent")
        response = client.post("/api/courses", json={"title": "Pressing"}, headers=headers)
        assert response.status_code == 403


# ============================================================================
# Notifications
# ============================================================================


class TestNotificationEndpoints:
    def test_list_notifications(self, auth_client, monkeypatch):
        client, headers = auth_client(user_id=1)
        monkeypatch.setattr(
            notification_service,
            "get_user_notifications",
            _async_return(
                {
                    "notifications": [
                        {
                            "id": 1,
                            "user_id": 1,
                            "type": "info",
                            "category": "training",
                            "title": "Training moved",
                            "message": "18:00",
                            "data": None,
                            "is_read": False,
                            "read_at": None,
                            "link_url": None,
                            "created_at": "2026-01-01T00:00:00+00:00",
                        }
                    ],
                    "total_count": 1,
                    "has_more": False,
                }
            ),
        )
        response = client.get("/api/notifications", headers=headers)
        assert response.status_code == 200
        assert response.json()["notifications"][0]["category"] == "training"

    def test_pending_user_can_read_notifications(self, auth_client, monkeypatch):
        client, headers = auth_client(account_status="pending")
        monkeypatch.setattr(notification_service, "get_unread_count", _async_return(2))
        response = client.get("/api/notifications/unread-count", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"count": 2}

    def test_send_requires_staff(self, auth_client):
        client, headers = auth_client(role="parent")
        response = client.post(
            "/api/notifications", json={"user_ids": [1], "title": "Hi", "message": "There"}, headers=headers
        )
        assert response.status_code == 403

    def test_staff_send(self, auth_client, monkeypatch):
        client, headers = auth_client(role="coach")
        captured = []

        async def fake_bulk(session, notifications):
            captured.extend(notifications)
            return notifications

        monkeypatch.setattr(notification_service, "create_notifications_bulk", fake_bulk)
        response = client.post(
            "/api/notifications",
            json={"user_ids": [4, 5], "title": "Kit", "message": "Bring boots", "category": "training"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 2}
        assert [n["user_id"] for n in captured] == [4, 5]

    def test_mark_read_not_found(self, auth_client, monkeypatch):
        client, headers = auth_client()
        monkeypatch.setattr(
            notification_service, "mark_as_read", _async_raise(ValueError("Notification 9 not found or access denied"))
        )
        assert client.put("/api/notifications/9/read", headers=headers).status_code == 404


# ============================================================================
# Gamification
# ============================================================================


class TestGamificationEndpoints:
    def test_redeem_requires_player_access(self, auth_client, monkeypatch):
        client, headers = auth_client(user_id=5, role="parent")
        monkeypatch.setattr(player_service, "get_parent_player_ids", _async_return([3]))
        response = client.post("/api/rewards/1/redeem", json={"player_id": 4}, headers=headers)
        assert response.status_code == 403

    def test_redeem_errors(self, auth_client, monkeypatch):
        client, headers = auth_client(role="coach")
        monkeypatch.setattr(points_service, "redeem_reward", _async_raise(ValueError("Reward is out of stock")))
        assert client.post("/api/rewards/1/redeem", json={"player_id": 3}, headers=headers).status_code == 400

        monkeypatch.setattr(points_service, "redeem_reward", _async_raise(ValueError("Reward 9 not found")))
        assert client.post("/api/rewards/9/redeem", json={"player_id": 3}, headers=headers).status_code == 404

    def test_create_reward_requires_admin(self, auth_client):
        client, headers = auth_client(role="coach")
        response = client.post("/api/rewards", json={"name": "Signed ball", "points_cost": 500}, headers=headers)
        assert response.status_code == 403

    def test_my_streak(self, auth_client, monkeypatch):
        client, headers = auth_client()
        monkeypatch.setattr(streak_service, "get_streak", _async_return({"current_streak": 4}))
        response = client.get("/api/streaks/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["current_streak"] == 4


# ============================================================================
# WhatsApp
# ============================================================================


class TestWhatsAppEndpoints:
    def test_send_skipped_when_unconfigured(self, auth_client, monkeypatch):
        client, headers = auth_client(role="coach")
        monkeypatch.setattr(whatsapp_service, "send_message", _async_return({"sent": False, "skipped": True}))
        response = client.post("/api/whatsapp/send", json={"to": "0501234567", "message": "Hi"}, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"to": "+966501234567", "sent": False, "skipped": True}

    def test_send_invalid_number(self, auth_client):
        client, headers = auth_client(role="coach")
        response = client.post("/api/whatsapp/send", json={"to": "123", "message": "Hi"}, headers=headers)
        assert response.status_code == 400

    def test_click_to_chat_link(self, auth_client):
        client, headers = auth_client(role="coach")
        response = client.post("/api/whatsapp/link", json={"phone": "0501234567"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["url"] == "https://wa.me/966501234567"

    def test_parents_cannot_send(self, auth_client):
        client, headers = auth_client(role="parent")
        response = client.post("/api/whatsapp/send", json={"to": "0501234567", "message": "Hi"}, headers=headers)
        assert response.status_code == 403


# ============================================================================
# Parent portal
# ============================================================================


class TestParentEndpoints:
    def test_dashboard_requires_parent(self, auth_client):
        client, headers = auth_client(role="coach")
        response = client.get("/api/parents/dashboard", headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Parent access required"

    def test_dashboard(self, auth_client, monkeypatch):
        client, headers = auth_client(user_id=5, role="parent")
        monkeypatch.setattr(
            parent_service, "get_parent_dashboard", _async_return({"parent_user_id": 5, "children": []})
        )
        response = client.get("/api/parents/dashboard", headers=headers)
        assert response.status_code == 200
        assert response.json()["parent_user_id"] == 5

    def test_report_for_unlinked_child(self, auth_client, monkeypatch):
        client, headers = auth_client(user_id=5, role="parent")
        monkeypatch.setattr(
            parent_service, "get_child_progress_report", _async_raise(PermissionError("Not linked to this player"))
        )
        assert client.get("/api/parents/children/4/report", headers=headers).status_code == 403

    def test_link_requires_admin(self, auth_client):
        client, headers = auth_client(role="coach")
        response = client.post("/api/parents/links", json={"parent_user_id": 5, "player_id": 3}, headers=headers)
        assert response.status_code == 403

    def test_admin_link_errors(self, auth_client, monkeypatch):
        client, headers = auth_client(role="admin")
        monkeypatch.setattr(parent_service, "link_parent", _async_raise(ValueError("Player 3 not found")))
        response = client.post("/api/parents/links", json={"parent_user_id": 5, "player_id": 3}, headers=headers)
        assert response.status_code == 404

"""
Academy Admin - Password Reset Workflow Tests

Run with: pytest tests/test_password_reset.py -v
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from academy.auth.clock import utcnow
from academy.auth.models import PasswordResetToken, Session, User
from academy.auth.roles import Role
from academy.auth.tokens import hash_token
from academy.config import settings
from academy.errors import DependencyError, RateLimitError, ValidationError
from academy.password_reset import service
from tests.conftest import DEFAULT_PASSWORD, extract_token, make_user, signed_in_headers


def _tokens(db, user):
    db.expire_all()
    return db.exec(
        select(PasswordResetToken).where(PasswordResetToken.user_id == user.id)
    ).all()


def _active_tokens(db, user, now=None):
    now = now or utcnow()
    return [t for t in _tokens(db, user) if not t.is_used and t.expires_at > now]


async def _request_and_capture(db, notifier, user, now=None) -> str:
    await service.request_password_reset(db, notifier, user.email, now=now)
    return extract_token(notifier.messages_to(user.email)[-1]["text"], "token=")


# =============================================================================
# REQUEST
# =============================================================================

class TestRequestReset:

    @pytest.mark.asyncio
    async def test_issues_hashed_token_and_mails_raw(self, db_session, notifier, student):
        now = utcnow()

        raw = await _request_and_capture(db_session, notifier, student, now=now)

        [record] = _tokens(db_session, student)
        assert record.token_hash == hash_token(raw)
        assert record.token_hash != raw
        assert record.expires_at == now + timedelta(hours=1)
        assert record.email == student.email

    @pytest.mark.asyncio
    async def test_unknown_email_writes_nothing(self, db_session, notifier):
        await service.request_password_reset(db_session, notifier, "nobody@x.com")

        assert db_session.exec(select(PasswordResetToken)).all() == []
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_inactive_user_writes_nothing(self, db_session, notifier):
        user = make_user(db_session, "sleepy", Role.STUDENT, is_active=False)

        await service.request_password_reset(db_session, notifier, user.email)

        assert _tokens(db_session, user) == []
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_repeat_within_cooldown_rate_limited(self, db_session, notifier, student):
        now = utcnow()
        await service.request_password_reset(db_session, notifier, student.email, now=now)

        with pytest.raises(RateLimitError):
            await service.request_password_reset(
                db_session, notifier, student.email, now=now + timedelta(seconds=60)
            )

        assert len(_active_tokens(db_session, student, now)) == 1

    @pytest.mark.asyncio
    async def test_repeat_within_cooldown_silent_when_not_surfaced(
        self, db_session, notifier, student, monkeypatch
    ):
        monkeypatch.setattr(settings, "RESET_RATE_LIMIT_SURFACED", False)
        now = utcnow()
        await service.request_password_reset(db_session, notifier, student.email, now=now)

        await service.request_password_reset(
            db_session, notifier, student.email, now=now + timedelta(seconds=60)
        )

        assert len(_tokens(db_session, student)) == 1
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_after_cooldown_supersedes_previous(self, db_session, notifier, student):
        now = utcnow()
        first = await _request_and_capture(db_session, notifier, student, now=now)
        later = now + timedelta(minutes=3)
        second = await _request_and_capture(db_session, notifier, student, now=later)

        assert first != second
        active = _active_tokens(db_session, student, later)
        assert [t.token_hash for t in active] == [hash_token(second)]

        with pytest.raises(ValidationError):
            await service.verify_reset_token(db_session, first, now=later)

    @pytest.mark.asyncio
    async def test_delivery_failure_removes_new_token(self, db_session, notifier, student):
        notifier.fail = True

        with pytest.raises(DependencyError) as exc:
            await service.request_password_reset(db_session, notifier, student.email)

        assert exc.value.error == "Failed to send password reset email"
        assert "mx.internal" not in str(exc.value.to_dict())
        assert _tokens(db_session, student) == []

    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, db_session, notifier):
        with pytest.raises(ValidationError):
            await service.request_password_reset(db_session, notifier, "not-an-email")
        with pytest.raises(ValidationError):
            await service.request_password_reset(db_session, notifier, None)


# =============================================================================
# VERIFY / RESET
# =============================================================================

class TestResetPassword:

    @pytest.mark.asyncio
    async def test_verify_valid_token(self, db_session, notifier, student):
        raw = await _request_and_capture(db_session, notifier, student)

        record = await service.verify_reset_token(db_session, raw)

        assert record.email == student.email
        assert not record.is_used

    @pytest.mark.asyncio
    async def test_verify_expired_token(self, db_session, notifier, student):
        now = utcnow()
        raw = await _request_and_capture(db_session, notifier, student, now=now)

        with pytest.raises(ValidationError) as exc:
            await service.verify_reset_token(db_session, raw, now=now + timedelta(hours=1))

        assert exc.value.extra["valid"] is False

    @pytest.mark.asyncio
    async def test_reset_sets_password_and_consumes(self, db_session, notifier, student):
        raw = await _request_and_capture(db_session, notifier, student)

        user = await service.reset_password(db_session, raw, "brand-new-pass")

        assert user.check_password("brand-new-pass")
        assert not user.check_password(DEFAULT_PASSWORD)
        assert _active_tokens(db_session, student) == []

        with pytest.raises(ValidationError):
            await service.verify_reset_token(db_session, raw)

    @pytest.mark.asyncio
    async def test_reused_token_fails(self, db_session, notifier, student):
        raw = await _request_and_capture(db_session, notifier, student)
        await service.reset_password(db_session, raw, "brand-new-pass")

        with pytest.raises(ValidationError) as exc:
            await service.reset_password(db_session, raw, "another-pass")

        assert exc.value.error == "Invalid or expired reset token"

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, db_session, notifier, student):
        raw = await _request_and_capture(db_session, notifier, student)

        with pytest.raises(ValidationError) as exc:
            await service.reset_password(db_session, raw, "short")

        assert exc.value.error == "Password must be at least 8 characters long"
        assert len(_active_tokens(db_session, student)) == 1

    @pytest.mark.asyncio
    async def test_missing_input(self, db_session):
        with pytest.raises(ValidationError) as exc:
            await service.reset_password(db_session, None, "whatever-pass")
        assert exc.value.error == "Token and password are required"

    @pytest.mark.asyncio
    async def test_deactivated_owner_cannot_reset(self, db_session, notifier, student):
        raw = await _request_and_capture(db_session, notifier, student)
        student.is_active = False
        db_session.add(student)
        db_session.commit()

        with pytest.raises(ValidationError) as exc:
            await service.reset_password(db_session, raw, "brand-new-pass")

        assert exc.value.error == "User account not found or inactive"

    @pytest.mark.asyncio
    async def test_reset_revokes_sessions(self, db_session, notifier, student):
        from academy.auth import sessions

        await sessions.create_session(db_session, student.id)
        raw = await _request_and_capture(db_session, notifier, student)

        await service.reset_password(db_session, raw, "brand-new-pass")

        db_session.expire_all()
        live = db_session.exec(
            select(Session).where(Session.user_id == student.id, Session.is_valid == True)  # noqa: E712
        ).all()
        assert live == []

    @pytest.mark.asyncio
    async def test_store_failure_burns_token(self, db_session, notifier, student, monkeypatch):
        raw = await _request_and_capture(db_session, notifier, student)

        def broken_set_password(self, password):
            raise OperationalError("UPDATE users", {}, Exception("disk I/O error"))

        monkeypatch.setattr(User, "set_password", broken_set_password)

        with pytest.raises(DependencyError) as exc:
            await service.reset_password(db_session, raw, "brand-new-pass")

        assert "disk" not in str(exc.value.to_dict())
        [record] = _tokens(db_session, student)
        assert record.is_used
        db_session.refresh(student)
        assert student.check_password(DEFAULT_PASSWORD)

    def test_reclaim(self, db_session, student):
        now = utcnow()
        expired, _ = PasswordResetToken.issue(student, now=now - timedelta(hours=2))
        used, _ = PasswordResetToken.issue(student, now=now)
        used.is_used = True
        used.used_at = now - timedelta(hours=25)
        live, _ = PasswordResetToken.issue(student, now=now)
        db_session.add_all([expired, used, live])
        db_session.commit()
        live_id = live.id

        assert service.reclaim_password_reset_tokens(db_session, now=now) == 2
        assert [t.id for t in _tokens(db_session, student)] == [live_id]


# =============================================================================
# END-TO-END
# =============================================================================

class TestPasswordResetAPI:

    def test_generic_response_for_known_and_unknown(self, client, notifier, student):
        unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@x.com"})
        known = client.post("/api/auth/forgot-password", json={"email": student.email})

        assert unknown.status_code == known.status_code == 200
        assert unknown.json() == known.json() == {"message": service.GENERIC_RESPONSE}
        assert [m["to"] for m in notifier.sent] == [student.email]

    def test_rate_limit_surfaced(self, client, student):
        client.post("/api/auth/forgot-password", json={"email": student.email})

        response = client.post("/api/auth/forgot-password", json={"email": student.email})

        assert response.status_code == 429
        assert response.json()["error"] == "Please wait before requesting another password reset"

    def test_rate_limit_hidden(self, client, student, monkeypatch):
        monkeypatch.setattr(settings, "RESET_RATE_LIMIT_SURFACED", False)
        client.post("/api/auth/forgot-password", json={"email": student.email})

        response = client.post("/api/auth/forgot-password", json={"email": student.email})

        assert response.status_code == 200
        assert response.json() == {"message": service.GENERIC_RESPONSE}

    def test_missing_email(self, client):
        response = client.post("/api/auth/forgot-password", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Email is required"

    def test_delivery_failure_is_500(self, client, notifier, student):
        notifier.fail = True

        response = client.post("/api/auth/forgot-password", json={"email": student.email})

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to send password reset email",
            "message": "Please try again later or contact support",
        }

    def test_full_reset_flow(self, client, notifier, student):
        headers = signed_in_headers(client, "student")
        client.post("/api/auth/forgot-password", json={"email": student.email})
        raw = extract_token(notifier.messages_to(student.email)[0]["text"], "token=")

        verify = client.get(f"/api/auth/verify-reset-token/{raw}")
        assert verify.status_code == 200
        assert verify.json()["valid"] is True
        assert verify.json()["email"] == student.email

        reset = client.post(
            "/api/auth/reset-password", json={"token": raw, "password": "brand-new-pass"}
        )
        assert reset.status_code == 200
        assert reset.json() == {"message": "Password has been reset successfully", "success": True}

        # Old session revoked, new password works
        assert client.get("/api/profile", headers=headers).status_code == 401
        signin = client.post(
            "/auth/signin/credentials",
            json={"username": "student", "password": "brand-new-pass"},
        )
        assert signin.status_code == 200

        reuse = client.post(
            "/api/auth/reset-password", json={"token": raw, "password": "another-pass"}
        )
        assert reuse.status_code == 400
        assert reuse.json()["error"] == "Invalid or expired reset token"

        probe = client.get(f"/api/auth/verify-reset-token/{raw}")
        assert probe.status_code == 400
        assert probe.json() == {"error": "Invalid or expired reset token", "valid": False}

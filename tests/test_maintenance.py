"""
Academy Admin - Reclamation Job and Seed Tests

Run with: pytest tests/test_maintenance.py -v
"""

from datetime import timedelta

import pytest
from sqlmodel import select

from academy.auth.clock import utcnow
from academy.auth.models import Invitation, PasswordResetToken, Session, User
from academy.auth.roles import Role
from academy.errors import ValidationError
from academy.reclaim import reclaim_expired_records, start_reclaim_scheduler, stop_reclaim_scheduler
from academy.seed import main, seed_super_admin
from tests.conftest import identity


# =============================================================================
# RECLAMATION
# =============================================================================

class TestReclamation:

    def test_one_pass_reclaims_every_table(self, db_session, session_factory, admin, student):
        past = utcnow() - timedelta(days=30)

        dead_invite = Invitation.issue("gone@academy.test", Role.STUDENT, identity(admin), now=past)
        live_invite = Invitation.issue("here@academy.test", Role.STUDENT, identity(admin))
        dead_token, _ = PasswordResetToken.issue(student, now=past)
        stale_session = Session(
            user_id=student.id,
            issued_at=past,
            expires_at=past + timedelta(hours=1),
            last_seen=past,
            is_valid=True,
        )
        db_session.add_all([dead_invite, live_invite, dead_token, stale_session])
        db_session.commit()
        live_id = live_invite.id

        counts = reclaim_expired_records(session_factory)

        assert counts == {"invitations": 1, "password_reset_tokens": 1, "sessions": 1}
        db_session.expire_all()
        assert [i.id for i in db_session.exec(select(Invitation)).all()] == [live_id]
        assert db_session.exec(select(PasswordResetToken)).all() == []
        assert not db_session.exec(select(Session)).one().is_valid

    def test_empty_store(self, session_factory):
        assert reclaim_expired_records(session_factory) == {
            "invitations": 0,
            "password_reset_tokens": 0,
            "sessions": 0,
        }

    def test_scheduler_disabled_for_non_positive_interval(self, session_factory):
        assert start_reclaim_scheduler(session_factory, 0) is None
        stop_reclaim_scheduler(None)

    def test_scheduler_registers_job(self, session_factory):
        scheduler = start_reclaim_scheduler(session_factory, 30)
        try:
            job = scheduler.get_job("reclaim_expired_records")
            assert job is not None
            assert job.trigger.interval == timedelta(minutes=30)
        finally:
            stop_reclaim_scheduler(scheduler)


# =============================================================================
# SEED
# =============================================================================

class TestSeed:

    def test_creates_super_admin(self, db_session):
        user = seed_super_admin(db_session, "owner", "Owner@Academy.test", "Owner", "bootstrap-pw")

        assert user.role == Role.SUPER_ADMIN
        assert user.email == "owner@academy.test"
        assert user.check_password("bootstrap-pw")

    def test_existing_identity_skipped(self, db_session, admin):
        assert seed_super_admin(db_session, "admin", "other@academy.test", "X", "bootstrap-pw") is None
        assert seed_super_admin(db_session, "other", "admin@academy.test", "X", "bootstrap-pw") is None
        assert len(db_session.exec(select(User)).all()) == 1

    def test_weak_password_rejected(self, db_session):
        with pytest.raises(ValidationError):
            seed_super_admin(db_session, "owner", "owner@academy.test", "Owner", "short")

    @pytest.mark.parametrize("username,name", [("   ", "Owner"), ("owner", "   ")])
    def test_blank_identity_rejected(self, db_session, username, name):
        with pytest.raises(ValidationError):
            seed_super_admin(db_session, username, "owner@academy.test", name, "bootstrap-pw")

        assert db_session.exec(select(User)).all() == []

    def test_cli_reads_password_from_env(self, tmp_path, monkeypatch, capsys):
        from academy.config import settings

        monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite:///{tmp_path / 'seed.db'}")
        monkeypatch.setenv("ACADEMY_SEED_PASSWORD", "bootstrap-pw")

        assert main(["--username", "owner", "--email", "owner@academy.test"]) == 0
        assert "Super admin created: owner" in capsys.readouterr().out

        assert main(["--username", "owner", "--email", "owner@academy.test"]) == 0
        assert "already exists" in capsys.readouterr().out

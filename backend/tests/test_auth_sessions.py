"""
Authentication, session lifecycle and retry policy tests.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from dealdesk.extensions import db
from dealdesk.models import SessionToken
from dealdesk.services import auth_service, concurrency, session_service
from dealdesk.services.auth_service import AuthenticationError, PasswordValidationError
from dealdesk.validation import ConflictError, ValidationError

from conftest import PASSWORD, auth_headers, get_auth_token


def _transient():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


class TestPasswords:
    @pytest.mark.parametrize("password,message", [
        ("Ab1!", "at least 8 characters"),
        ("password123!", "uppercase"),
        ("PASSWORD123!", "lowercase"),
        ("Password!!", "digit"),
        ("Password123", "special character"),
    ])
    def test_strength_rules(self, password, message):
        with pytest.raises(PasswordValidationError, match=message):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self, app):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("wrong", hashed)

    def test_garbage_hash_does_not_verify(self):
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestUsers:
    def test_human_id_shape(self):
        code = auth_service.generate_human_id("USR")
        assert len(code) == 9
        assert code.startswith("USR")
        assert code[3:].isalnum() and code[3:].upper() == code[3:]

    def test_email_normalized(self, db_session):
        user = auth_service.create_user(name="Ann Lee", email=" Ann@Example.COM ", role="CTO", password=PASSWORD)
        assert user.email == "ann@example.com"
        assert user.user_human_id.startswith("USR")

    def test_duplicate_email(self, sales_user):
        with pytest.raises(ConflictError):
            auth_service.create_user(name="Dup", email=sales_user.email.upper(), role="CTO", password=PASSWORD)

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationError, match="Invalid role"):
            auth_service.create_user(name="Ann Lee", email="ann@x.io", role="Wizard", password=PASSWORD)


class TestLogin:
    def test_login_opens_session(self, sales_user):
        user, session, token = auth_service.login(sales_user.email, PASSWORD, user_agent="pytest")

        assert user.id == sales_user.id
        assert user.last_login_at is not None
        assert session.token_hash == session_service.hash_token(token)
        assert session.expires_at - session.created_at == timedelta(hours=24)

    def test_wrong_password(self, sales_user):
        with pytest.raises(AuthenticationError):
            auth_service.login(sales_user.email, "Wrong123!")
        assert db.session.query(SessionToken).count() == 0

    def test_deactivated_user_cannot_login(self, sales_user):
        sales_user.is_active = False
        db.session.commit()
        with pytest.raises(AuthenticationError):
            auth_service.login(sales_user.email, PASSWORD)

    def test_change_password(self, sales_user):
        auth_service.change_password(sales_user, PASSWORD, "NewPassword1!")
        assert auth_service.authenticate(sales_user.email, "NewPassword1!") is not None
        with pytest.raises(AuthenticationError):
            auth_service.change_password(sales_user, PASSWORD, "Other123!")


class TestSessions:
    def test_validate_returns_context(self, sales_user):
        _, _, token = auth_service.login(sales_user.email, PASSWORD)
        context = session_service.validate_session(token)
        assert context.user.id == sales_user.id
        assert context.is_admin is False

    def test_admin_context(self, admin_user):
        _, _, token = auth_service.login(admin_user.email, PASSWORD)
        assert session_service.validate_session(token).is_admin is True

    def test_unknown_token(self, db_session):
        assert session_service.validate_session("deadbeef") is None
        assert session_service.validate_session("") is None

    def test_expired_session(self, sales_user):
        _, session, token = auth_service.login(sales_user.email, PASSWORD)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db.session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_session_revoked(self, sales_user):
        _, session, token = auth_service.login(sales_user.email, PASSWORD)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_logout_revokes(self, sales_user):
        _, _, token = auth_service.login(sales_user.email, PASSWORD)
        assert session_service.revoke_session(token) is True
        assert session_service.revoke_session(token) is False
        assert session_service.validate_session(token) is None

    def test_deactivation_ends_session(self, sales_user):
        _, _, token = auth_service.login(sales_user.email, PASSWORD)
        sales_user.is_active = False
        db.session.commit()
        assert session_service.validate_session(token) is None

    def test_password_reset_revokes_all(self, sales_user):
        tokens = [auth_service.login(sales_user.email, PASSWORD)[2] for _ in range(2)]
        auth_service.set_password(sales_user.id, "Reset1234!")
        assert all(session_service.validate_session(t) is None for t in tokens)


class TestRetry:
    def test_returns_first_success(self, app):
        assert concurrency.run_with_retry(lambda: 42, delay=0) == 42

    def test_backoff_doubles(self, app, monkeypatch):
        sleeps = []
        monkeypatch.setattr(concurrency.time, "sleep", sleeps.append)
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] < 4:
                raise _transient()
            return "ok"

        assert concurrency.run_with_retry(flaky, attempts=5, delay=1.0) == "ok"
        assert sleeps == [1.0, 2.0, 4.0]

    def test_fixed_delay(self, app, monkeypatch):
        sleeps = []
        monkeypatch.setattr(concurrency.time, "sleep", sleeps.append)

        def always_fails():
            raise _transient()

        with pytest.raises(OperationalError):
            concurrency.run_with_retry(always_fails, attempts=3, delay=0.5, backoff=False)
        assert sleeps == [0.5, 0.5]

    def test_other_errors_not_retried(self, app):
        calls = []

        def broken():
            calls.append(1)
            raise KeyError("boom")

        with pytest.raises(KeyError):
            concurrency.run_with_retry(broken, attempts=3, delay=0)
        assert len(calls) == 1

    def test_attempts_must_be_positive(self, app):
        with pytest.raises(ValueError):
            concurrency.run_with_retry(lambda: None, attempts=0)


class TestAuthRoutes:
    def test_login_and_me(self, client, sales_user):
        token = get_auth_token(client, sales_user.email)
        assert token

        response = client.get('/api/auth/me', headers=auth_headers(token))
        assert response.status_code == 200
        assert response.json['user']['email'] == sales_user.email
        assert response.json['user']['is_admin'] is False

    def test_bad_credentials(self, client, sales_user):
        response = client.post('/api/auth/login', json={'email': sales_user.email, 'password': 'nope'})
        assert response.status_code == 401

    def test_missing_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={'email': 'a@b.co'})
        assert response.status_code == 400

    def test_logout(self, client, sales_user):
        headers = auth_headers(get_auth_token(client, sales_user.email))
        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401

    def test_session_store_down(self, client, sales_user, monkeypatch):
        headers = auth_headers(get_auth_token(client, sales_user.email))

        def down(token):
            raise _transient()

        monkeypatch.setattr(session_service, "validate_session", down)
        assert client.get('/api/auth/me', headers=headers).status_code == 503

    def test_change_password_route(self, client, sales_user):
        headers = auth_headers(get_auth_token(client, sales_user.email))
        response = client.post('/api/auth/change-password', headers=headers, json={
            'current_password': PASSWORD,
            'new_password': 'weak',
        })
        assert response.status_code == 400

        response = client.post('/api/auth/change-password', headers=headers, json={
            'current_password': PASSWORD,
            'new_password': 'Stronger123!',
        })
        assert response.status_code == 200

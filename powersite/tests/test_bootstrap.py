import pytest

from powersite.backend import BackendError
from powersite.bootstrap import (
    BootstrapConflict,
    BootstrapUnauthorized,
    BootstrapUpstreamError,
    BootstrapValidationError,
    STATE_INITIALIZED,
    STATE_UNINITIALIZED,
    bootstrap_state,
    expected_setup_secret,
    setup_admin,
)
from powersite.config import DEFAULT_ADMIN_SETUP_SECRET
from powersite.models import ROLE_ADMIN, User, UserRole

from conftest import SETUP_SECRET


def test_setup_admin_succeeds_once_then_conflicts(app, backend):
    with app.app_context():
        assert bootstrap_state(backend) == STATE_UNINITIALIZED

        result = setup_admin(backend, "Admin@Example.com ", "secret-123", SETUP_SECRET)
        assert result.email == "admin@example.com"
        assert result.to_dict() == {
            "success": True,
            "message": "Admin user created successfully",
            "email": "admin@example.com",
        }
        assert bootstrap_state(backend) == STATE_INITIALIZED

        user = User.query.filter_by(email="admin@example.com").one()
        assert user.is_admin
        assert user.email_confirmed_at is not None

        with pytest.raises(BootstrapConflict) as excinfo:
            setup_admin(backend, "second@example.com", "secret-456", SETUP_SECRET)
        assert excinfo.value.message == "Admin user already exists. Please login at /admin"
        assert excinfo.value.status_code == 400
        assert User.query.filter_by(email="second@example.com").first() is None
        assert UserRole.query.filter_by(role=ROLE_ADMIN).count() == 1


def test_role_insert_failure_removes_created_user(app, backend, monkeypatch):
    def failing_insert(values):
        raise BackendError("permission denied for table user_roles", code="database_error")

    monkeypatch.setattr(backend.table("user_roles"), "insert", failing_insert)

    with app.app_context():
        with pytest.raises(BootstrapUpstreamError) as excinfo:
            setup_admin(backend, "admin@example.com", "secret-123", SETUP_SECRET)
        assert excinfo.value.status_code == 500
        assert "permission denied" in excinfo.value.message
        assert User.query.count() == 0
        assert bootstrap_state(backend) == STATE_UNINITIALIZED


def test_role_insert_failure_reports_role_error_even_if_cleanup_fails(app, backend, monkeypatch):
    def failing_insert(values):
        raise BackendError("role insert failed", code="database_error")

    def failing_delete(user_id):
        raise BackendError("delete failed", code="database_error")

    monkeypatch.setattr(backend.table("user_roles"), "insert", failing_insert)
    monkeypatch.setattr(backend.auth, "delete_user", failing_delete)

    with app.app_context():
        with pytest.raises(BootstrapUpstreamError) as excinfo:
            setup_admin(backend, "admin@example.com", "secret-123", SETUP_SECRET)
        assert excinfo.value.message == "role insert failed"


def test_wrong_secret_is_unauthorized_and_mutates_nothing(app, backend, monkeypatch):
    calls = []
    monkeypatch.setattr(backend.auth, "create_user", lambda *args, **kwargs: calls.append(args))

    with app.app_context():
        with pytest.raises(BootstrapUnauthorized) as excinfo:
            setup_admin(backend, "admin@example.com", "secret-123", "not-the-secret")
        assert excinfo.value.status_code == 401
        assert excinfo.value.to_dict() == {"error": "Invalid setup secret key", "kind": "unauthorized"}

        with pytest.raises(BootstrapUnauthorized):
            setup_admin(backend, "admin@example.com", "secret-123", None)

        assert calls == []
        assert User.query.count() == 0


@pytest.mark.parametrize(
    "email,password,message",
    [
        ("", "secret-123", "Email and password are required"),
        ("admin@example.com", "", "Email and password are required"),
        ("not-an-email", "secret-123", "Please enter a valid email address"),
        ("admin@example.com", "12345", "Password must be at least 6 characters"),
    ],
)
def test_invalid_input_is_rejected_before_any_backend_call(app, backend, monkeypatch, email, password, message):
    def unexpected(*args, **kwargs):
        raise AssertionError("backend must not be called for invalid input")

    monkeypatch.setattr(backend.auth, "create_user", unexpected)
    monkeypatch.setattr(backend.table("user_roles"), "select", unexpected)

    with app.app_context():
        with pytest.raises(BootstrapValidationError) as excinfo:
            setup_admin(backend, email, password, SETUP_SECRET)
    assert excinfo.value.message == message
    assert excinfo.value.status_code == 400


def test_already_registered_email_is_a_validation_error(app, backend):
    with app.app_context():
        backend.auth.create_user("taken@example.com", "whatever-1", email_confirm=True)

        with pytest.raises(BootstrapValidationError) as excinfo:
            setup_admin(backend, "taken@example.com", "secret-123", SETUP_SECRET)
        assert excinfo.value.message == "This email is already registered. Try a different email."
        assert bootstrap_state(backend) == STATE_UNINITIALIZED


def test_other_identity_failures_are_upstream_errors(app, backend, monkeypatch):
    def failing_create(email, password, email_confirm=False):
        raise BackendError("identity service unavailable", code="database_error")

    monkeypatch.setattr(backend.auth, "create_user", failing_create)

    with app.app_context():
        with pytest.raises(BootstrapUpstreamError) as excinfo:
            setup_admin(backend, "admin@example.com", "secret-123", SETUP_SECRET)
    assert excinfo.value.to_dict() == {"error": "identity service unavailable", "kind": "upstream"}


def test_setup_secret_falls_back_to_default(make_app):
    app = make_app({"ADMIN_SETUP_SECRET": ""})
    with app.app_context():
        assert expected_setup_secret() == DEFAULT_ADMIN_SETUP_SECRET
        backend = app.extensions["powersite.backend"]
        result = setup_admin(backend, "admin@example.com", "secret-123", DEFAULT_ADMIN_SETUP_SECRET)
        assert result.email == "admin@example.com"

"""One-time creation of the site administrator.

``setup_admin`` is the only way an account with the ``admin`` role is ever
created. It runs at most once successfully: after the first admin role
record exists every later call fails with :class:`BootstrapConflict`. The
sequence is check secret, check for an existing admin, create the identity,
assign the role, and if the role cannot be assigned delete the identity
again so no role-less account is left behind.
"""
import secrets
from dataclasses import dataclass

from flask import current_app

from .backend import BackendError
from .config import DEFAULT_ADMIN_SETUP_SECRET
from .models import ROLE_ADMIN
from .utils import is_valid_email

PASSWORD_MIN_LENGTH = 6
STATE_UNINITIALIZED = 'uninitialized'
STATE_INITIALIZED = 'initialized'


class BootstrapError(Exception):
    kind = 'upstream'
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class BootstrapValidationError(BootstrapError):
    kind = 'validation'
    status_code = 400


class BootstrapConflict(BootstrapError):
    kind = 'conflict'
    status_code = 400


class BootstrapUnauthorized(BootstrapError):
    kind = 'unauthorized'
    status_code = 401


class BootstrapUpstreamError(BootstrapError):
    kind = 'upstream'
    status_code = 500


@dataclass(frozen=True)
class BootstrapResult:
    email: str
    message: str = 'Admin user created successfully'

    def to_dict(self):
        return {'success': True, 'message': self.message, 'email': self.email}


def validate_credentials(email, password):
    """Raise ``BootstrapValidationError`` for input that must never reach the backend."""
    if not email or not password:
        raise BootstrapValidationError('Email and password are required')
    if not is_valid_email(email):
        raise BootstrapValidationError('Please enter a valid email address')
    if len(password) < PASSWORD_MIN_LENGTH:
        raise BootstrapValidationError(f'Password must be at least {PASSWORD_MIN_LENGTH} characters')


def expected_setup_secret():
    configured = (current_app.config.get('ADMIN_SETUP_SECRET') or '').strip()
    return configured or DEFAULT_ADMIN_SETUP_SECRET


def check_setup_secret(secret_key):
    expected = expected_setup_secret()
    provided = secret_key if isinstance(secret_key, str) else ''
    if not provided or not secrets.compare_digest(provided.encode('utf-8'), expected.encode('utf-8')):
        raise BootstrapUnauthorized('Invalid setup secret key')


def admin_exists(backend):
    try:
        return bool(backend.table('user_roles').select(limit=1, role=ROLE_ADMIN))
    except BackendError as exc:
        current_app.logger.error(f'Error checking existing admin: {exc.message}')
        raise BootstrapUpstreamError(exc.message) from exc


def bootstrap_state(backend):
    return STATE_INITIALIZED if admin_exists(backend) else STATE_UNINITIALIZED


def setup_admin(backend, email, password, secret_key):
    email = (email or '').strip() if isinstance(email, str) else ''
    password = password if isinstance(password, str) else ''
    validate_credentials(email, password)
    check_setup_secret(secret_key)

    if admin_exists(backend):
        raise BootstrapConflict('Admin user already exists. Please login at /admin')

    try:
        user = backend.auth.create_user(email, password, email_confirm=True)
    except BackendError as exc:
        current_app.logger.error(f'Error creating user: {exc.message}')
        if exc.code == 'email_exists':
            raise BootstrapValidationError('This email is already registered. Try a different email.') from exc
        raise BootstrapUpstreamError(exc.message) from exc

    try:
        backend.table('user_roles').insert({'user_id': user.id, 'role': ROLE_ADMIN})
    except BackendError as exc:
        current_app.logger.error(f'Error assigning role: {exc.message}')
        try:
            backend.auth.delete_user(user.id)
        except BackendError:
            current_app.logger.exception(f'Failed to remove user {user.id} after role assignment failure.')
        raise BootstrapUpstreamError(exc.message) from exc

    current_app.logger.info(f'Admin user created successfully: {user.email}')
    return BootstrapResult(email=user.email)

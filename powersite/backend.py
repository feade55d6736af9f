"""Thin data/auth/storage client used by every route.

Route code never touches the identity, role or content tables directly: it
goes through :class:`Backend`, which exposes the same small surface a hosted
backend-as-a-service would (table reads and writes, an identity admin API and
a bucket-style object store). Database failures are translated into
:class:`BackendError` so callers only ever handle one exception type.
"""
import os
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.utils import secure_filename

from .models import (
    db,
    User,
    UserRole,
    HeroContent,
    Service,
    Product,
    ContactSubmission,
    utc_now_naive,
)

BACKEND_EXTENSION_KEY = 'powersite.backend'
STORAGE_ROUTE_PREFIX = '/storage'

TABLE_MODELS = {
    'hero_section': HeroContent,
    'services': Service,
    'products': Product,
    'contact_submissions': ContactSubmission,
    'user_roles': UserRole,
}


class BackendError(Exception):
    """Raised for any failed backend call; ``code`` identifies known cases."""

    def __init__(self, message, code='unexpected_failure'):
        super().__init__(message)
        self.message = message
        self.code = code


@contextmanager
def _guard(action):
    try:
        yield
    except BackendError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning(f'{action} violated a constraint: {exc.orig}')
        raise BackendError(f'{action} failed: duplicate or invalid data.', code='constraint_violation') from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(f'{action} failed.')
        raise BackendError(f'{action} failed.', code='database_error') from exc


class Table:
    """Row access for one table, loosely following a PostgREST-style client."""

    def __init__(self, name, model):
        self.name = name
        self.model = model

    def _column(self, key):
        column = getattr(self.model, key, None)
        if column is None or not hasattr(column, 'desc'):
            raise BackendError(f'Unknown column "{key}" on {self.name}.', code='unknown_column')
        return column

    def _query(self, filters):
        query = self.model.query
        for key, value in filters.items():
            query = query.filter(self._column(key) == value)
        return query

    def select(self, order=(), limit=None, **filters):
        """Return rows matching ``filters``; ``order`` keys prefixed with ``-`` sort descending."""
        with _guard(f'Reading {self.name}'):
            query = self._query(filters)
            for key in order:
                if key.startswith('-'):
                    query = query.order_by(self._column(key[1:]).desc())
                else:
                    query = query.order_by(self._column(key).asc())
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    def first(self, order=(), **filters):
        rows = self.select(order=order, limit=1, **filters)
        return rows[0] if rows else None

    def get(self, row_id):
        with _guard(f'Reading {self.name}'):
            return db.session.get(self.model, row_id)

    def count(self, **filters):
        with _guard(f'Counting {self.name}'):
            return self._query(filters).with_entities(func.count(self.model.id)).scalar() or 0

    def insert(self, values):
        with _guard(f'Inserting into {self.name}'):
            row = self.model(**values)
            db.session.add(row)
            db.session.commit()
            return row

    def update(self, row_id, values):
        with _guard(f'Updating {self.name}'):
            row = db.session.get(self.model, row_id)
            if row is None:
                raise BackendError(f'No {self.name} row with id {row_id}.', code='not_found')
            for key, value in values.items():
                self._column(key)
                setattr(row, key, value)
            db.session.commit()
            return row

    def delete(self, row_id):
        with _guard(f'Deleting from {self.name}'):
            row = db.session.get(self.model, row_id)
            if row is None:
                raise BackendError(f'No {self.name} row with id {row_id}.', code='not_found')
            db.session.delete(row)
            db.session.commit()


class IdentityAdmin:
    """Privileged identity operations (user creation, deletion, password sign-in)."""

    def get_user(self, user_id):
        with _guard('Loading user'):
            return db.session.get(User, user_id)

    def create_user(self, email, password, email_confirm=False):
        normalized = (email or '').strip().lower()
        with _guard('Creating user'):
            if User.query.filter(func.lower(User.email) == normalized).first():
                raise BackendError(
                    'A user with this email address has already been registered',
                    code='email_exists',
                )
            user = User(email=normalized)
            user.set_password(password)
            if email_confirm:
                user.email_confirmed_at = utc_now_naive()
            db.session.add(user)
            db.session.commit()
            return user

    def delete_user(self, user_id):
        with _guard('Deleting user'):
            user = db.session.get(User, user_id)
            if user is None:
                raise BackendError('User not found', code='user_not_found')
            db.session.delete(user)
            db.session.commit()

    def sign_in_with_password(self, email, password):
        normalized = (email or '').strip().lower()
        with _guard('Signing in'):
            user = User.query.filter(func.lower(User.email) == normalized).first()
            if user is None or not user.check_password(password or ''):
                raise BackendError('Invalid login credentials', code='invalid_credentials')
            if user.email_confirmed_at is None:
                raise BackendError('Email not confirmed', code='email_not_confirmed')
            user.last_sign_in_at = utc_now_naive()
            db.session.commit()
            return user


class ObjectStorage:
    """Bucket/path object store backed by a local folder."""

    def __init__(self, root, public_base_url=''):
        self.root = os.path.abspath(root)
        self.public_base_url = (public_base_url or '').rstrip('/')

    def resolve(self, bucket, path):
        """Return the absolute file path for ``bucket/path`` or ``None`` if it escapes the root."""
        safe_bucket = secure_filename(bucket or '')
        parts = [part for part in (path or '').split('/') if part]
        if not safe_bucket or safe_bucket != bucket or not parts:
            return None
        if any(secure_filename(part) != part for part in parts):
            return None
        bucket_root = os.path.join(self.root, safe_bucket)
        full_path = os.path.abspath(os.path.join(bucket_root, *parts))
        try:
            if os.path.commonpath([bucket_root, full_path]) != bucket_root:
                return None
        except ValueError:
            return None
        return full_path

    def upload(self, bucket, path, file):
        full_path = self.resolve(bucket, path)
        if not full_path:
            raise BackendError(f'Invalid object path "{path}".', code='invalid_key')
        if os.path.exists(full_path):
            raise BackendError('The resource already exists', code='duplicate')
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            file.save(full_path)
        except OSError as exc:
            current_app.logger.exception(f'Storing object {bucket}/{path} failed.')
            raise BackendError('Failed to store object.', code='storage_error') from exc
        return path

    def remove(self, bucket, path):
        full_path = self.resolve(bucket, path)
        if not full_path or not os.path.isfile(full_path):
            raise BackendError(f'Object {bucket}/{path} not found.', code='not_found')
        try:
            os.remove(full_path)
        except OSError as exc:
            current_app.logger.exception(f'Removing object {bucket}/{path} failed.')
            raise BackendError('Failed to remove object.', code='storage_error') from exc

    def get_public_url(self, bucket, path):
        if self.public_base_url:
            return f'{self.public_base_url}/{bucket}/{path}'
        return f'{STORAGE_ROUTE_PREFIX}/{bucket}/{path}'


class Backend:
    def __init__(self, storage_root, public_base_url=''):
        self.auth = IdentityAdmin()
        self.storage = ObjectStorage(storage_root, public_base_url)
        self._tables = {name: Table(name, model) for name, model in TABLE_MODELS.items()}

    def table(self, name):
        try:
            return self._tables[name]
        except KeyError:
            raise BackendError(f'Unknown table "{name}".', code='unknown_table') from None


def init_backend(app):
    backend = Backend(app.config['UPLOAD_FOLDER'], app.config.get('STORAGE_PUBLIC_BASE_URL', ''))
    app.extensions[BACKEND_EXTENSION_KEY] = backend
    return backend


def get_backend():
    return current_app.extensions[BACKEND_EXTENSION_KEY]

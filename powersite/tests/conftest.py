import io
import re
import uuid

import pytest
from PIL import Image

from powersite import create_app
from powersite.backend import BACKEND_EXTENSION_KEY, get_backend
from powersite.bootstrap import setup_admin
from powersite.models import AuthRateLimitBucket, db

CSRF_TOKEN_RE = re.compile(r'name="_csrf_token" value="([^"]+)"')
SETUP_SECRET = "test-setup-secret"
ADMIN_EMAIL = "owner@example.com"
ADMIN_PASSWORD = "owner-pass-123"


def extract_csrf_token(html):
    match = CSRF_TOKEN_RE.search(html or "")
    return match.group(1) if match else None


def build_test_app(tmp_path, overrides=None):
    db_path = tmp_path / f"site_test_{uuid.uuid4().hex[:8]}.db"
    upload_path = tmp_path / f"storage_{uuid.uuid4().hex[:8]}"

    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {},
        "UPLOAD_FOLDER": str(upload_path),
        "STORAGE_PUBLIC_BASE_URL": "",
        "ADMIN_SETUP_SECRET": SETUP_SECRET,
        "SESSION_COOKIE_SECURE": False,
        "REMEMBER_COOKIE_SECURE": False,
        "TRUST_PROXY_HEADERS": False,
        "SENTRY_DSN": "",
        "LOG_JSON": False,
    }
    if overrides:
        config.update(overrides)

    app = create_app(config)
    with app.app_context():
        AuthRateLimitBucket.query.delete()
        db.session.commit()
    return app


def png_bytes(size=(8, 8), color=(255, 180, 0)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


@pytest.fixture()
def make_app(tmp_path):
    def factory(overrides=None):
        return build_test_app(tmp_path, overrides)
    return factory


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def backend(app):
    return app.extensions[BACKEND_EXTENSION_KEY]


@pytest.fixture()
def csrf():
    def fetch(client, path="/"):
        token = extract_csrf_token(client.get(path).get_data(as_text=True))
        assert token, f"no CSRF token rendered on {path}"
        return token
    return fetch


@pytest.fixture()
def admin_account(app):
    with app.app_context():
        setup_admin(get_backend(), ADMIN_EMAIL, ADMIN_PASSWORD, SETUP_SECRET)
    return ADMIN_EMAIL, ADMIN_PASSWORD


@pytest.fixture()
def admin_client(client, admin_account, csrf):
    email, password = admin_account
    response = client.post(
        "/admin",
        data={"_csrf_token": csrf(client, "/admin"), "email": email, "password": password},
        follow_redirects=False,
    )
    assert response.status_code in (302, 303)
    assert response.headers["Location"].endswith("/admin/dashboard")
    return client

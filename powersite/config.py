import os
import tempfile

basedir = os.path.abspath(os.path.dirname(__file__))

DEFAULT_ADMIN_SETUP_SECRET = 'saurabh-enterprises-setup'
DEFAULT_MAP_EMBED_URL = (
    'https://www.google.com/maps/embed?pb=!1m18!1m12!1m3!1d28205.79382842823!2d76.83!3d28.19'
    '!2m3!1f0!2f0!3f0!3m2!1i1024!2i768!4f13.1!3m3!1m2!1s0x390d3d2e7c7e0001%3A0x4a3b5e0e2e0e0e0e'
    '!2sBhiwadi%2C%20Rajasthan!5e0!3m2!1sen!2sin!4v1640000000000!5m2!1sen!2sin'
)


def _env(name, default=''):
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _as_bool(value, default=False):
    if value is None or value == '':
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _on_serverless():
    return bool(_env('VERCEL') or _env('VERCEL_ENV'))


def _on_managed_host():
    return _on_serverless() or bool(_env('RAILWAY_ENVIRONMENT') or _env('RENDER'))


def _is_production():
    return 'production' in {_env('FLASK_ENV').lower(), _env('VERCEL_ENV').lower()}


def _database_url():
    url = _env('DATABASE_URL')
    if url.startswith('postgres://'):
        # Heroku-style URLs use a scheme SQLAlchemy no longer accepts.
        return 'postgresql://' + url[len('postgres://'):]
    if url:
        return url
    if _on_serverless():
        return 'sqlite:////tmp/powersite.db'
    return 'sqlite:///' + os.path.join(basedir, 'powersite.db')


def _storage_root():
    configured = _env('UPLOAD_FOLDER')
    if configured:
        return configured
    if _on_serverless():
        return os.path.join(tempfile.gettempdir(), 'powersite-storage')
    return os.path.join(basedir, 'storage')


class Config:
    SECRET_KEY = _env('SECRET_KEY')
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = {} if SQLALCHEMY_DATABASE_URI.startswith('sqlite') else {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Object storage: each bucket is a sub-folder of UPLOAD_FOLDER.
    UPLOAD_FOLDER = _storage_root()
    STORAGE_PUBLIC_BASE_URL = _env('STORAGE_PUBLIC_BASE_URL').rstrip('/')
    MAX_CONTENT_LENGTH = _as_int(_env('MAX_UPLOAD_MB'), 10) * 1024 * 1024
    MAX_UPLOAD_IMAGE_PIXELS = _as_int(_env('MAX_UPLOAD_IMAGE_PIXELS'), 40_000_000)
    ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
    ALLOWED_UPLOAD_MIME_TYPES = {'image/png', 'image/jpeg', 'image/gif', 'image/webp'}

    ADMIN_SETUP_SECRET = _env('ADMIN_SETUP_SECRET', DEFAULT_ADMIN_SETUP_SECRET)
    CSRF_EXEMPT_ENDPOINTS = ('functions.setup_admin',)
    SEED_DEFAULT_CONTENT = _as_bool(_env('SEED_DEFAULT_CONTENT'), True)

    ADMIN_LOGIN_LIMIT = _as_int(_env('ADMIN_LOGIN_LIMIT'), 5)
    ADMIN_LOGIN_WINDOW_SECONDS = _as_int(_env('ADMIN_LOGIN_WINDOW_SECONDS'), 300)
    CONTACT_FORM_LIMIT = _as_int(_env('CONTACT_FORM_LIMIT'), 12)
    CONTACT_FORM_WINDOW_SECONDS = _as_int(_env('CONTACT_FORM_WINDOW_SECONDS'), 3600)

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _as_bool(_env('SESSION_COOKIE_SECURE'), _is_production())
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    TRUST_PROXY_HEADERS = _as_bool(_env('TRUST_PROXY_HEADERS'), _on_managed_host())
    HSTS_ENABLED = _as_bool(_env('HSTS_ENABLED'), True)
    HSTS_MAX_AGE = _as_int(_env('HSTS_MAX_AGE'), 31536000)
    HSTS_INCLUDE_SUBDOMAINS = _as_bool(_env('HSTS_INCLUDE_SUBDOMAINS'), True)

    BUSINESS_NAME = _env('BUSINESS_NAME', 'Saurabh Enterprises')
    BUSINESS_TAGLINE = _env('BUSINESS_TAGLINE', 'Electrical Services & Supplies')
    BUSINESS_PHONE = _env('BUSINESS_PHONE', '+91 8949272586')
    BUSINESS_EMAIL = _env('BUSINESS_EMAIL', 'contact@saurabhenterprises.in')
    BUSINESS_ADDRESS = _env(
        'BUSINESS_ADDRESS',
        'C-28, Ganpati Plaza, Phool Bagh, Bhiwadi, Khairthal-Tijara, Rajasthan - 301019',
    )
    BUSINESS_HOURS = _env('BUSINESS_HOURS', 'Available 9 AM - 9 PM')
    WHATSAPP_NUMBER = _env('WHATSAPP_NUMBER', '919667000377')
    WHATSAPP_MESSAGE = _env(
        'WHATSAPP_MESSAGE',
        "Hello! I'm interested in your electrical services. Please provide more information.",
    )
    MAP_EMBED_URL = _env('MAP_EMBED_URL', DEFAULT_MAP_EMBED_URL)

    SENTRY_DSN = _env('SENTRY_DSN')
    SENTRY_ENVIRONMENT = _env('SENTRY_ENVIRONMENT')
    SENTRY_TRACES_SAMPLE_RATE = _as_float(_env('SENTRY_TRACES_SAMPLE_RATE'), 0.0)
    LOG_JSON = _as_bool(_env('LOG_JSON'), True)
    LOG_LEVEL = _env('LOG_LEVEL', 'INFO').upper()

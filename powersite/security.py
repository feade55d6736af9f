"""Request hardening: request ids, session CSRF tokens, CSP nonces and headers."""
import re
import secrets
from urllib.parse import urlparse

from flask import abort, g, request, session
from markupsafe import Markup, escape

CSRF_SESSION_KEY = '_csrf_token'
CSRF_HEADER = 'X-CSRF-Token'
UNSAFE_METHODS = frozenset({'POST', 'PUT', 'PATCH', 'DELETE'})
REQUEST_ID_PATTERN = re.compile(r'^[A-Za-z0-9._:-]{8,80}$')

# Third-party origins the public site and admin panel load assets or frames from.
ASSET_ORIGINS = {
    'script': ('https://cdn.jsdelivr.net',),
    'style': ('https://cdn.jsdelivr.net', 'https://cdnjs.cloudflare.com', 'https://fonts.googleapis.com'),
    'font': ('https://cdnjs.cloudflare.com', 'https://fonts.gstatic.com'),
    'frame': ('https://www.google.com',),
}
NO_INDEX_PREFIXES = ('/admin', '/functions/')
PUBLIC_CACHE_SECONDS = 7 * 24 * 3600


def get_csrf_token():
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def csrf_input():
    return Markup(  # nosec B704
        f'<input type="hidden" name="{CSRF_SESSION_KEY}" value="{escape(get_csrf_token())}">'
    )


def get_csp_nonce():
    if not getattr(g, 'csp_nonce', ''):
        g.csp_nonce = secrets.token_urlsafe(16)
    return g.csp_nonce


def safe_referrer_path(fallback):
    """Same-host path of the Referer header, or ``fallback`` when it points elsewhere."""
    parsed = urlparse((request.referrer or '').strip())
    if not parsed.path and not parsed.netloc:
        return fallback
    if parsed.scheme not in ('', 'http', 'https'):
        return fallback
    if parsed.netloc and parsed.netloc != request.host:
        return fallback
    path = parsed.path or '/'
    if not path.startswith('/'):
        return fallback
    return f'{path}?{parsed.query}' if parsed.query else path


def content_security_policy(nonce):
    def sources(kind, *local):
        return ' '.join(("'self'",) + local + ASSET_ORIGINS.get(kind, ()))

    nonce_source = f"'nonce-{nonce}'"
    directives = [
        "default-src 'self'",
        "base-uri 'self'",
        "form-action 'self'",
        "object-src 'none'",
        "img-src 'self' data: https:",
        f"script-src {sources('script', nonce_source)}",
        f"style-src {sources('style', nonce_source)}",
        f"font-src {sources('font', 'data:')}",
        f"frame-src {' '.join(ASSET_ORIGINS['frame'])}",
        "frame-ancestors 'none'",
    ]
    return '; '.join(directives)


def hsts_value(config):
    value = f"max-age={max(0, int(config.get('HSTS_MAX_AGE', 31536000)))}"
    if config.get('HSTS_INCLUDE_SUBDOMAINS', True):
        value += '; includeSubDomains'
    return value


def init_security(app):
    @app.before_request
    def tag_request():
        incoming = (request.headers.get('X-Request-ID') or '').strip()
        g.request_id = incoming if REQUEST_ID_PATTERN.match(incoming) else secrets.token_hex(16)
        get_csp_nonce()

    @app.before_request
    def check_csrf_token():
        if request.method not in UNSAFE_METHODS:
            return None
        if request.endpoint in app.config.get('CSRF_EXEMPT_ENDPOINTS', ()):
            return None
        expected = session.get(CSRF_SESSION_KEY)
        provided = request.form.get(CSRF_SESSION_KEY) or request.headers.get(CSRF_HEADER)
        if not (expected and provided and secrets.compare_digest(expected, provided)):
            abort(400, description='Invalid or missing CSRF token.')
        return None

    @app.after_request
    def harden_response(response):
        headers = response.headers
        headers['X-Request-ID'] = getattr(g, 'request_id', '')
        headers.setdefault('X-Content-Type-Options', 'nosniff')
        headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        headers.setdefault('Permissions-Policy', 'geolocation=(), microphone=(), camera=()')
        if request.is_secure and app.config.get('HSTS_ENABLED', True):
            headers.setdefault('Strict-Transport-Security', hsts_value(app.config))
        if request.path.startswith(NO_INDEX_PREFIXES):
            headers.setdefault('X-Robots-Tag', 'noindex, nofollow, noarchive')
            headers.setdefault('X-Frame-Options', 'DENY')

        if response.mimetype == 'text/html':
            headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
            headers['Content-Security-Policy'] = content_security_policy(get_csp_nonce())
        elif request.path.startswith('/storage/') and response.status_code in (200, 304):
            headers['Cache-Control'] = f'public, max-age={PUBLIC_CACHE_SECONDS}'
        return response

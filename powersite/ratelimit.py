"""Per-IP fixed-window counters for the admin login and contact forms."""
from datetime import timedelta

from flask import current_app

from .models import db, AuthRateLimitBucket, utc_now_naive
from .utils import get_request_ip

ADMIN_LOGIN_SCOPE = 'admin_login'
CONTACT_FORM_SCOPE = 'contact_form'

_cleanup_call_counter = 0


def _cleanup_expired_buckets():
    now = utc_now_naive()
    try:
        AuthRateLimitBucket.query.filter(AuthRateLimitBucket.reset_at < now).delete(synchronize_session=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Failed to purge expired rate limit buckets.')


def get_bucket(scope, window_seconds):
    global _cleanup_call_counter
    _cleanup_call_counter += 1
    if _cleanup_call_counter % 50 == 0:
        _cleanup_expired_buckets()

    ip = get_request_ip()
    now = utc_now_naive()
    bucket = AuthRateLimitBucket.query.filter_by(scope=scope, ip=ip).first()
    if not bucket:
        bucket = AuthRateLimitBucket(
            scope=scope,
            ip=ip,
            count=0,
            reset_at=now + timedelta(seconds=window_seconds),
        )
        db.session.add(bucket)
        db.session.commit()
        return bucket
    if bucket.reset_at <= now:
        bucket.count = 0
        bucket.reset_at = now + timedelta(seconds=window_seconds)
        db.session.commit()
    return bucket


def is_rate_limited(scope, limit, window_seconds):
    """Return ``(limited, seconds_until_reset)`` for the current client IP."""
    bucket = get_bucket(scope, window_seconds)
    if bucket.count < limit:
        return False, 0
    seconds = max(1, int((bucket.reset_at - utc_now_naive()).total_seconds()))
    return True, seconds


def register_attempt(scope, window_seconds):
    bucket = get_bucket(scope, window_seconds)
    bucket.count += 1
    db.session.commit()
    return bucket.count


def clear_attempts(scope):
    bucket = AuthRateLimitBucket.query.filter_by(scope=scope, ip=get_request_ip()).first()
    if bucket:
        db.session.delete(bucket)
        db.session.commit()

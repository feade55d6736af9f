"""Small request and input helpers shared by the route modules."""
import ipaddress
import re

from flask import request

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def clean_text(value, max_length=255):
    return (value or '').strip()[:max_length]


def is_valid_email(value):
    return bool(EMAIL_RE.match(value or ''))


def normalized_ip(value):
    candidate = (value or '').split(',', 1)[0].strip()
    if not candidate:
        return ''
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return ''


def get_request_ip():
    # remote_addr already reflects X-Forwarded-For when TRUST_PROXY_HEADERS is on.
    remote_ip = normalized_ip(request.remote_addr)
    return remote_ip or 'unknown'


def parse_int(value, default=0, min_value=None, max_value=None):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    if min_value is not None and parsed < min_value:
        return min_value
    if max_value is not None and parsed > max_value:
        return max_value
    return parsed

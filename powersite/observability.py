"""Structured logging and optional Sentry error reporting."""
import json
import logging

from flask import g, has_request_context, request

_sentry_ready = False


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, tagged with the request it was logged from."""

    def format(self, record):
        entry = {
            'time': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if has_request_context():
            entry['request_id'] = getattr(g, 'request_id', '')
            entry['method'] = request.method
            entry['path'] = request.path
            entry['remote_ip'] = request.remote_addr
        if record.exc_info:
            entry['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(app):
    level_name = str(app.config.get('LOG_LEVEL') or 'INFO').upper()
    app.logger.setLevel(getattr(logging, level_name, logging.INFO))
    if app.config.get('LOG_JSON', True):
        formatter = JsonLogFormatter()
        for handler in app.logger.handlers:
            handler.setFormatter(formatter)


def init_sentry(app):
    global _sentry_ready
    dsn = (app.config.get('SENTRY_DSN') or '').strip()
    if _sentry_ready or not dsn:
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    try:
        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            environment=app.config.get('SENTRY_ENVIRONMENT') or None,
            traces_sample_rate=float(app.config.get('SENTRY_TRACES_SAMPLE_RATE') or 0.0),
            send_default_pii=False,
        )
    except Exception:
        app.logger.exception('Sentry could not be initialised; continuing without error reporting.')
        return
    _sentry_ready = True
    app.logger.info('Sentry error reporting enabled.')

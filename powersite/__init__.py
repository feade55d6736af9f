import os
import secrets
import warnings

from flask import Flask, flash, redirect, render_template, url_for
from flask_login import LoginManager
from sqlalchemy import text
from werkzeug.middleware.proxy_fix import ProxyFix

from .backend import BackendError, get_backend, init_backend
from .config import Config
from .content import mailto_link, tel_link, whatsapp_link
from .models import db
from .observability import configure_logging, init_sentry
from .security import csrf_input, get_csp_nonce, get_csrf_token, init_security, safe_referrer_path

login_manager = LoginManager()
login_manager.login_view = 'admin.login'
login_manager.login_message = 'Please sign in to access the admin panel.'
login_manager.login_message_category = 'danger'


@login_manager.user_loader
def load_user(user_id):
    try:
        return get_backend().auth.get_user(str(user_id))
    except BackendError:
        return None


def business_details(config):
    """Contact details shown in the header, footer and contact section."""
    phone = config.get('BUSINESS_PHONE', '')
    email = config.get('BUSINESS_EMAIL', '')
    return {
        'name': config.get('BUSINESS_NAME', ''),
        'tagline': config.get('BUSINESS_TAGLINE', ''),
        'phone': phone,
        'phone_href': tel_link(phone),
        'email': email,
        'email_href': mailto_link(email),
        'address': config.get('BUSINESS_ADDRESS', ''),
        'hours': config.get('BUSINESS_HOURS', ''),
        'map_embed_url': config.get('MAP_EMBED_URL', ''),
        'whatsapp_href': whatsapp_link(config.get('WHATSAPP_NUMBER', ''), config.get('WHATSAPP_MESSAGE', '')),
    }


def register_error_handlers(app):
    @app.errorhandler(400)
    def bad_request(error):
        if 'CSRF' in str(getattr(error, 'description', '') or ''):
            flash('Your form session expired. Please retry your action.', 'danger')
            return redirect(safe_referrer_path(url_for('main.index')))
        return error

    @app.errorhandler(404)
    def not_found(error):
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def server_error(error):
        return render_template('errors/500.html'), 500


def prepare_database(app):
    with app.app_context():
        try:
            db.create_all()
        except Exception:
            app.logger.exception('Creating tables failed; the schema may need a manual migration.')
            return
        from .seed import seed_database
        try:
            seed_database(include_catalog=app.config.get('SEED_DEFAULT_CONTENT', True))
        except Exception:
            db.session.rollback()
            app.logger.exception('Seeding default content failed.')


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    configure_logging(app)

    if not app.config.get('SECRET_KEY'):
        app.config['SECRET_KEY'] = secrets.token_urlsafe(32)
        warnings.warn(
            'SECRET_KEY is not set; sessions are signed with a random key and will not survive a restart.',
            stacklevel=2,
        )
    if app.config.get('TRUST_PROXY_HEADERS'):
        # One hop: the hosting platform's edge proxy.
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    init_sentry(app)
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    db.init_app(app)
    login_manager.init_app(app)
    init_backend(app)
    init_security(app)
    register_error_handlers(app)

    @app.context_processor
    def template_globals():
        return {
            'business': business_details(app.config),
            'csrf_token': get_csrf_token,
            'csrf_input': csrf_input,
            'csp_nonce': get_csp_nonce(),
        }

    @app.get('/healthz')
    def healthz():
        try:
            db.session.execute(text('SELECT 1'))
        except Exception:
            db.session.rollback()
            app.logger.exception('Health check database probe failed.')
            return {'status': 'degraded'}, 503
        return {'status': 'ok'}, 200

    from .routes.admin import admin_bp
    from .routes.functions import functions_bp
    from .routes.main import main_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(functions_bp, url_prefix='/functions/v1')

    prepare_database(app)
    return app

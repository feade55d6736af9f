"""Server-side functions callable cross-origin (JSON in, JSON out)."""
from flask import Blueprint, current_app, jsonify, make_response, request

from ..backend import get_backend
from ..bootstrap import BootstrapError, setup_admin as run_setup_admin

functions_bp = Blueprint('functions', __name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
    'Access-Control-Allow-Headers': (
        'authorization, x-client-info, apikey, content-type, x-supabase-client-platform, '
        'x-supabase-client-platform-version, x-supabase-client-runtime, x-supabase-client-runtime-version'
    ),
}


def _with_cors(response):
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response


@functions_bp.route('/setup-admin', methods=['POST', 'OPTIONS'])
def setup_admin():
    if request.method == 'OPTIONS':
        return _with_cors(make_response('ok', 200))

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    try:
        result = run_setup_admin(
            get_backend(),
            payload.get('email'),
            payload.get('password'),
            payload.get('secretKey'),
        )
    except BootstrapError as exc:
        if exc.status_code >= 500:
            current_app.logger.error(f'Error in setup-admin function: {exc.message}')
        return _with_cors(make_response(jsonify(exc.to_dict()), exc.status_code))
    except Exception:
        current_app.logger.exception('Error in setup-admin function')
        body = {'error': 'Internal server error', 'kind': 'upstream'}
        return _with_cors(make_response(jsonify(body), 500))
    return _with_cors(make_response(jsonify(result.to_dict()), 200))

# utils/auth.py
import hmac
from functools import wraps

from flask import request, jsonify, current_app


def api_key_required(f):
    """
    Decorator to require the shared station key on write routes.
    Open when API_KEY is not configured (development and tests).
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('API_KEY')
        if not expected:
            return f(*args, **kwargs)

        provided = request.headers.get('X-API-Key', '')
        if not hmac.compare_digest(provided, expected):
            return jsonify({
                'success': False,
                'message': 'Authentication required',
                'error_code': 'unauthorized'
            }), 401

        return f(*args, **kwargs)

    return decorated_function

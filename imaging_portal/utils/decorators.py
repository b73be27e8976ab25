import hmac
from functools import wraps
from flask import jsonify, request, current_app


def require_internal_token(f):
    """
    Decorator for internal push endpoints.

    When INGEST_PUSH_TOKEN is configured the request must carry
    'Authorization: Bearer <token>'. Unset means the endpoint is protected
    at the network layer instead.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('INGEST_PUSH_TOKEN')
        if expected:
            header = request.headers.get('Authorization', '')
            scheme, _, token = header.partition(' ')
            if scheme.lower() != 'bearer' or not hmac.compare_digest(token.strip(), expected):
                return jsonify({
                    'success': False,
                    'error': 'Authentication required'
                }), 401
        return f(*args, **kwargs)
    return decorated_function


def owns_study(study, user_id) -> bool:
    """True if the study exists and belongs to user_id"""
    return study is not None and str(study.user_id) == str(user_id)

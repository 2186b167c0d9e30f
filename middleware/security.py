# middleware/security.py
"""
Security Middleware for Request Processing
"""

from flask import request, jsonify, g, current_app
from functools import wraps
import math
import logging

logger = logging.getLogger(__name__)


def security_headers(response):
    """Add security and no-cache headers to all responses"""
    for header, value in current_app.config['SECURITY_HEADERS'].items():
        response.headers[header] = value

    return response


def get_client_ip() -> str:
    """Client identifier: first configured forwarding header present, else 'unknown'"""
    for header in current_app.config['CLIENT_IP_HEADERS']:
        value = request.headers.get(header)
        if value:
            return value
    return 'unknown'


def apply_rate_limit_headers(response, result):
    response.headers['X-RateLimit-Limit'] = str(result.limit)
    response.headers['X-RateLimit-Remaining'] = str(result.remaining)
    response.headers['X-RateLimit-Reset'] = str(math.ceil(result.reset_time))
    return response


def rate_limit(methods=('POST',)):
    """
    Decorator enforcing the global and the per-client limiters

    Requests whose method is not in `methods` pass straight through so the view
    can answer OPTIONS or reject the method itself. Both limiters are consulted
    on every limited request; a global denial still uses up one per-client slot.
    The per-client decision is kept in g.rate_limit and reflected in the
    X-RateLimit-* headers of successful responses.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if request.method not in methods:
                return f(*args, **kwargs)

            global_limiter = current_app.rate_limiters['global']
            client_limiter = current_app.rate_limiters['submit']
            client_ip = get_client_ip()

            global_result = global_limiter.is_allowed(current_app.config['RATELIMIT_GLOBAL_KEY'])
            client_result = client_limiter.is_allowed(client_ip)

            if not global_result.allowed or not client_result.allowed:
                if not global_result.allowed:
                    scope, limiter, denied = 'global', global_limiter, global_result
                else:
                    scope, limiter, denied = 'per-ip', client_limiter, client_result

                retry_after = limiter.retry_after(denied)
                current_app.telemetry.event(
                    'warn', 'Rate limit exceeded',
                    rateLimitType=scope,
                    clientIP=client_ip,
                    userAgent=request.headers.get('User-Agent', 'unknown'),
                    resetTime=denied.reset_time
                )

                response = jsonify({
                    'success': False,
                    'error': 'Rate limit exceeded',
                    'message': 'Too many requests. Please try again later.',
                    'retryAfter': retry_after
                })
                response.status_code = 429
                response.headers['Retry-After'] = str(retry_after)
                return apply_rate_limit_headers(response, denied)

            g.rate_limit = client_result
            g.client_ip = client_ip

            response = current_app.make_response(f(*args, **kwargs))
            if response.status_code == 200 and current_app.config.get('RATELIMIT_HEADERS_ENABLED', True):
                apply_rate_limit_headers(response, client_result)

            return response
        return decorated_function
    return decorator

# api/health.py
"""
Health check API
"""

from flask import Blueprint, jsonify, current_app
from datetime import datetime, timezone
import sys
import platform
import logging
from typing import Dict

from email_validator import validate_email, EmailNotValidError

from middleware.security import get_client_ip

health_bp = Blueprint('health', __name__)
logger = logging.getLogger(__name__)

CRITICAL_CHECKS = ('email', 'runtime')
MIN_PYTHON = (3, 9)


def check_email_configuration(config) -> Dict[str, str]:
    """Email transport and addresses are configured and well formed"""
    if not config.get('SMTP_HOST'):
        return {'status': 'unhealthy', 'message': 'SMTP host not configured'}

    from_address = config.get('EMAIL_FROM_ADDRESS')
    to_address = config.get('EMAIL_TO_ADDRESS')
    if not from_address or not to_address:
        return {'status': 'unhealthy', 'message': 'Email addresses not configured'}

    for label, address in (('sender', from_address), ('recipient', to_address)):
        try:
            validate_email(address, check_deliverability=False)
        except EmailNotValidError as e:
            return {'status': 'unhealthy', 'message': f'Invalid {label} address: {str(e)}'}

    return {'status': 'healthy', 'message': 'Email notification configured'}


def check_logging_configuration(config) -> Dict[str, str]:
    if not config.get('LOG_FILE'):
        return {'status': 'warning', 'message': 'Logging to stdout only; LOG_FILE not configured'}
    return {'status': 'healthy', 'message': f"Logging to {config['LOG_FILE']}"}


def check_runtime(rate_limiters) -> Dict[str, str]:
    version = platform.python_version()
    if sys.version_info[:2] < MIN_PYTHON:
        return {
            'status': 'warning',
            'message': f'Python {version} is below recommended version {MIN_PYTHON[0]}.{MIN_PYTHON[1]}'
        }

    tracked = sum(limiter.get_stats()['active_entries'] for limiter in rate_limiters.values())
    return {
        'status': 'healthy',
        'message': f'Runtime healthy - Python {version}, active rate limit windows: {tracked}'
    }


@health_bp.route('/health', methods=['GET'])
def health_check():
    """Configuration and runtime checks for uptime monitoring"""
    telemetry = current_app.telemetry
    client_ip = get_client_ip()

    global_limiter = current_app.rate_limiters['global']
    rate_limit = global_limiter.is_allowed(f'health-{client_ip}')

    if not rate_limit.allowed:
        retry_after = global_limiter.retry_after(rate_limit)
        telemetry.event('warn', 'Rate limit exceeded for health check', clientIP=client_ip)
        response = jsonify({
            'error': 'Rate limit exceeded',
            'message': 'Too many health check requests'
        })
        response.status_code = 429
        response.headers['Retry-After'] = str(retry_after)
        return response

    checks = {
        'email': check_email_configuration(current_app.config),
        'logging': check_logging_configuration(current_app.config),
        'runtime': check_runtime(current_app.rate_limiters)
    }
    failed = [name for name in CRITICAL_CHECKS if checks[name]['status'] != 'healthy']
    status = 'unhealthy' if failed else 'healthy'

    telemetry.event(
        'info' if status == 'healthy' else 'warn', 'Health check completed',
        status=status,
        failedChecks=', '.join(failed) or 'none'
    )

    return jsonify({
        'status': status,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'version': current_app.config.get('VERSION', '1.0.0'),
        'environment': current_app.config.get('ENVIRONMENT', 'unknown'),
        'checks': checks
    }), 200 if status == 'healthy' else 503

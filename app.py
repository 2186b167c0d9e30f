# app.py
"""
Flask Application Factory for the Date Planner Submission Gateway

This application factory wires together:
- Environment-based configuration management
- Stream and rotating-file logging
- CORS, security headers and in-memory rate limiting
- Best-effort email notification with retries
- Structured telemetry for requests, submissions and email delivery
"""

import os
import sys
import time
import atexit
import logging
import logging.handlers
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify, g
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.exceptions import HTTPException

from config.settings import get_config
from core.rate_limiter import RateLimiter
from core.template_engine import PlanEmailRenderer
from services.email_transport import EmailTransport, SMTPEmailTransport
from services.notifier import PlanNotifier
from services.telemetry import TelemetryLogger
from middleware.security import security_headers
from api.plans import plans_bp
from api.health import health_bp

# Loggers that receive the application's handlers
APPLICATION_LOGGERS = ('date_planner', 'api', 'core', 'middleware', 'services')


def setup_logging(app: Flask) -> None:
    """
    Configure application logging

    Everything goes to stdout; LOG_FILE adds a rotating file handler with a
    more detailed format.
    """
    # Remove default Flask handlers to avoid duplicate logs
    app.logger.handlers.clear()

    stream_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)s[%(process)d]: %(levelname)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(funcName)-15s:%(lineno)-4d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)

    handlers = []

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(stream_formatter)
    stream_handler.setLevel(log_level)
    handlers.append(stream_handler)

    log_file = app.config.get('LOG_FILE')
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    for logger in [app.logger] + [logging.getLogger(name) for name in APPLICATION_LOGGERS]:
        logger.handlers.clear()
        logger.setLevel(log_level)
        for handler in handlers:
            logger.addHandler(handler)

    # Suppress verbose third-party logs outside debug mode
    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('aiosmtplib').setLevel(logging.WARNING)


def configure_security(app: Flask) -> Dict[str, RateLimiter]:
    """
    Configure CORS and the in-memory rate limiters

    Returns:
        Dictionary containing the limiters:
        - submit: per-client plan submissions
        - global: requests across all clients (also backs the health check)
    """
    # send_wildcard keeps the literal '*' instead of echoing the request origin
    CORS(app,
         resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}},
         methods=app.config['CORS_METHODS'],
         allow_headers=app.config['CORS_ALLOW_HEADERS'],
         send_wildcard=True)

    submit_requests, submit_window = app.config['RATELIMIT_SUBMIT']
    global_requests, global_window = app.config['RATELIMIT_GLOBAL']

    rate_limiters = {
        'submit': RateLimiter(submit_requests, submit_window, name='submit'),
        'global': RateLimiter(global_requests, global_window, name='global')
    }

    if app.config.get('RATELIMIT_SWEEPER_ENABLED', True):
        for limiter in rate_limiters.values():
            limiter.start_sweeper(app.config['RATELIMIT_SWEEP_INTERVAL'])

    app.logger.info(
        f"Security features configured (submit {submit_requests}/{submit_window}s, "
        f"global {global_requests}/{global_window}s)"
    )
    return rate_limiters


def configure_notifications(app: Flask, email_transport: Optional[EmailTransport] = None) -> PlanNotifier:
    """
    Build the plan notifier

    An explicitly passed transport wins; otherwise SMTP is used when SMTP_HOST
    is set. Without either, submissions are still accepted with emailSent false.
    """
    if email_transport is None and app.config.get('SMTP_HOST'):
        email_transport = SMTPEmailTransport(
            host=app.config['SMTP_HOST'],
            port=app.config['SMTP_PORT'],
            username=app.config.get('SMTP_USERNAME') or None,
            password=app.config.get('SMTP_PASSWORD') or None,
            timeout=app.config['SMTP_TIMEOUT'],
            validate_certs=app.config['SMTP_VALIDATE_CERTS']
        )

    notifier = PlanNotifier(
        transport=email_transport,
        from_address=app.config.get('EMAIL_FROM_ADDRESS'),
        to_address=app.config.get('EMAIL_TO_ADDRESS'),
        renderer=PlanEmailRenderer(),
        max_attempts=app.config['NOTIFY_MAX_ATTEMPTS'],
        backoff_base=app.config['NOTIFY_BACKOFF_BASE']
    )

    if notifier.configured:
        app.logger.info(f"Email notifications enabled for {notifier.to_address}")
    else:
        app.logger.warning("Email notifications not configured; submissions will report emailSent=false")

    return notifier


def register_blueprints(app: Flask) -> None:
    """
    Register all application blueprints with proper URL prefixes
    """
    # Plan submission API
    app.register_blueprint(plans_bp, url_prefix='/api')

    # Health API
    app.register_blueprint(health_bp, url_prefix='/api')

    app.logger.info("Application blueprints registered")


def configure_error_handlers(app: Flask) -> None:
    """
    Configure JSON error responses
    """
    @app.errorhandler(400)
    def bad_request(error):
        app.logger.warning(f"Bad request from {request.remote_addr}: {error}")
        return jsonify({
            'success': False,
            'error': 'Bad Request',
            'message': 'Invalid request format or parameters'
        }), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Not Found',
            'message': 'The requested resource was not found'
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'success': False,
            'error': 'Method not allowed',
            'message': f'{request.method} is not supported for this endpoint'
        }), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        app.logger.warning(f"Oversized request body from {request.remote_addr}")
        return jsonify({
            'success': False,
            'error': 'Payload Too Large',
            'message': 'Request body exceeds the maximum allowed size'
        }), 413

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify({
            'error': 'Internal server error',
            'message': 'An unexpected error occurred while processing your request'
        }), 500

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle unexpected exceptions"""
        if isinstance(e, HTTPException):
            return e

        app.logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'error': 'Internal server error',
            'message': 'An unexpected error occurred while processing your request'
        }), 500


def configure_request_middleware(app: Flask) -> None:
    """
    Configure request/response middleware for security and monitoring
    """
    @app.before_request
    def before_request():
        # Store request start time for performance monitoring
        g.start_time = time.monotonic()

    @app.after_request
    def after_request(response):
        response = security_headers(response)

        if hasattr(g, 'start_time'):
            duration = (time.monotonic() - g.start_time) * 1000
            app.telemetry.log_api_request(request.path, request.method, response.status_code, duration)

            if duration > app.config.get('SLOW_REQUEST_THRESHOLD', 20000):
                app.logger.warning(f"Slow request ({duration:.0f}ms): {request.method} {request.path}")

        return response


def create_app(config_name: Optional[str] = None,
               config_overrides: Optional[Dict[str, Any]] = None,
               email_transport: Optional[EmailTransport] = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: Configuration environment ('development', 'testing', 'production')
        config_overrides: Settings applied on top of the environment configuration
        email_transport: Transport used for notifications instead of SMTP

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration based on environment
    config_name = config_name or os.environ.get('FLASK_ENV', 'production')
    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    # Configure proxy handling for deployment behind nginx
    if app.config.get('PROXY_FIX'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    setup_logging(app)
    app.logger.info(f"Starting Date Planner gateway in {config_name} mode")

    app.telemetry = TelemetryLogger()
    app.rate_limiters = configure_security(app)
    app.notifier = configure_notifications(app, email_transport)

    register_blueprints(app)
    configure_error_handlers(app)
    configure_request_middleware(app)

    if app.config.get('RATELIMIT_SWEEPER_ENABLED', True):
        def shutdown_handler():
            for limiter in app.rate_limiters.values():
                limiter.close()

        atexit.register(shutdown_handler)

    app.logger.info("Flask application factory completed successfully")
    return app


if __name__ == '__main__':
    # Development server
    app = create_app('development')
    app.run(
        host=os.environ.get('HOST', '127.0.0.1'),
        port=int(os.environ.get('PORT', 5000)),
        debug=True,
        use_reloader=True
    )

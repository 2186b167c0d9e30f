# api/plans.py
"""
Date plan submission API
"""

from flask import Blueprint, request, jsonify, g, current_app
import json
import time
import string
import secrets
import traceback

from core.models import NotificationDelivered, PlanSubmission
from core.validator import validate_plan_submission
from middleware.security import rate_limit

plans_bp = Blueprint('plans', __name__)

# Every method is routed here so the view answers unsupported ones itself
SUBMIT_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_submission_id() -> str:
    """sub_<epoch milliseconds>_<9 random lowercase alphanumerics>"""
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"sub_{int(time.time() * 1000)}_{suffix}"


@plans_bp.route('/submitPlan', methods=SUBMIT_METHODS)
@rate_limit(methods=('POST',))
def submit_plan():
    """
    Accept a date plan, validate it and send a best-effort notification

    The response is 200 whenever the plan itself is valid; emailSent tells the
    client whether the notification went out.
    """
    telemetry = current_app.telemetry
    user_agent = request.headers.get('User-Agent')

    if request.method == 'OPTIONS':
        return '', 200

    if request.method != 'POST':
        telemetry.event(
            'warn', 'Method not allowed for plan submission',
            method=request.method,
            userAgent=user_agent or 'unknown'
        )
        return jsonify({
            'success': False,
            'error': 'Method not allowed',
            'message': 'Only POST requests are supported'
        }), 405

    try:
        payload = json.loads(request.get_data(as_text=True))
    except (ValueError, RecursionError) as e:
        telemetry.event(
            'warn', 'Failed to parse request body',
            error=str(e),
            userAgent=user_agent or 'unknown'
        )
        return jsonify({
            'success': False,
            'error': 'Invalid JSON',
            'message': 'Request body must be valid JSON'
        }), 400

    # Diagnostics are stamped server-side; client-sent values are overwritten
    if isinstance(payload, dict):
        payload['userAgent'] = user_agent
        payload['ipAddress'] = g.client_ip

    validation = validate_plan_submission(
        payload, max_payload_bytes=current_app.config['MAX_PAYLOAD_BYTES']
    )

    if not validation.is_valid:
        details = [error.to_dict() for error in validation.errors]
        telemetry.event(
            'warn', 'Plan submission validation failed',
            validationErrors=json.dumps(details),
            userAgent=user_agent or 'unknown',
            ipAddress=g.client_ip
        )
        return jsonify({
            'success': False,
            'error': 'Validation failed',
            'message': 'Please check your input data',
            'details': details
        }), 400

    try:
        return _accept_submission(validation.sanitized)
    except Exception as e:
        telemetry.event(
            'error', 'Unexpected error processing plan submission',
            error=str(e),
            stack=traceback.format_exc(),
            userAgent=user_agent or 'unknown'
        )
        telemetry.flush()
        return jsonify({
            'error': 'Internal server error',
            'message': 'An unexpected error occurred while processing your request'
        }), 500


def _accept_submission(plan: PlanSubmission):
    telemetry = current_app.telemetry
    notifier = current_app.notifier
    submission_id = generate_submission_id()

    telemetry.log_plan_submission(
        submission_id,
        name=plan.name,
        date=plan.date,
        activities_count=len(plan.activities),
        has_custom_activity=bool(plan.custom_activity),
        user_agent=plan.user_agent,
        ip_address=plan.ip_address
    )

    recipient = notifier.to_address or 'unknown'
    telemetry.log_email_event('attempt', recipient, submission_id)

    result = notifier.notify(plan, submission_id)

    if isinstance(result, NotificationDelivered):
        telemetry.log_email_event('success', recipient, submission_id,
                                  duration_ms=result.duration_ms, attempts=result.attempts)
    else:
        telemetry.log_email_event('failure', recipient, submission_id,
                                  error_message=result.error,
                                  duration_ms=result.duration_ms, attempts=result.attempts)

    telemetry.flush()

    return jsonify({
        'success': True,
        'message': 'Plan submission received successfully',
        'submissionId': submission_id,
        'submittedAt': plan.submitted_at,
        'emailSent': bool(result)
    }), 200

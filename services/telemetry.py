# services/telemetry.py
"""
Structured telemetry for the submission gateway and notifier

Each record is {level, message, properties, metrics}. Records go to the
standard logging tree: properties and metrics are appended to the message as
JSON and also attached to the LogRecord as `telemetry_*` attributes, so any
handler configured by the application (stream, file, journald) can fan them
out.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'error': logging.ERROR,
}


@dataclass
class TelemetryRecord:
    """One structured log event"""
    level: str
    message: str
    properties: Dict[str, Any] = field(default_factory=dict)
    metrics: Optional[Dict[str, float]] = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TelemetryLogger:
    """
    Structured logger injected into the gateway and notifier
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('date_planner.telemetry')

    def log(self, record: TelemetryRecord) -> None:
        if record.level not in LEVELS:
            raise ValueError(f"Unknown telemetry level '{record.level}'")

        payload = {'properties': record.properties}
        if record.metrics:
            payload['metrics'] = record.metrics

        self.logger.log(
            LEVELS[record.level],
            f"[{record.level.upper()}] {record.message} {json.dumps(payload, default=str, sort_keys=True)}",
            extra={
                'telemetry_message': record.message,
                'telemetry_properties': record.properties,
                'telemetry_metrics': record.metrics or {}
            }
        )

    def event(self, level: str, message: str, metrics: Optional[Dict[str, float]] = None,
              **properties: Any) -> None:
        """Shorthand for log(TelemetryRecord(...))"""
        self.log(TelemetryRecord(level, message, properties, metrics))

    def log_api_request(self, endpoint: str, method: str, status_code: int,
                        duration_ms: float) -> None:
        self.log(TelemetryRecord(
            level='warn' if status_code >= 400 else 'info',
            message='API request completed',
            properties={
                'endpoint': endpoint,
                'method': method,
                'statusCode': str(status_code),
                'timestamp': _utc_now()
            },
            metrics={'requestDuration': round(duration_ms, 2), 'statusCode': status_code}
        ))

    def log_plan_submission(self, submission_id: str, name: str, date: str,
                            activities_count: int, has_custom_activity: bool,
                            user_agent: Optional[str] = None,
                            ip_address: Optional[str] = None) -> None:
        """Record an accepted plan. The plan's name stays out of the log."""
        self.log(TelemetryRecord(
            level='info',
            message='Plan submission received',
            properties={
                'submissionId': submission_id,
                'planDate': date,
                'nameLength': str(len(name)),
                'activitiesCount': str(activities_count),
                'hasCustomActivity': str(has_custom_activity).lower(),
                'userAgent': user_agent or 'unknown',
                'ipAddress': ip_address or 'unknown',
                'timestamp': _utc_now()
            },
            metrics={'activitiesCount': activities_count}
        ))

    def log_email_event(self, event: str, recipient: str,
                        submission_id: Optional[str] = None,
                        error_message: Optional[str] = None,
                        duration_ms: Optional[float] = None,
                        attempts: Optional[int] = None) -> None:
        """event is one of 'attempt', 'success', 'failure'"""
        properties = {
            'event': f'email_{event}',
            'recipientEmail': recipient,
            'planSubmissionId': submission_id or 'unknown',
            'timestamp': _utc_now()
        }
        if error_message:
            properties['errorMessage'] = error_message

        metrics = {}
        if duration_ms is not None:
            metrics['emailDeliveryDuration'] = round(duration_ms, 2)
        if attempts is not None:
            metrics['emailAttempts'] = attempts

        self.log(TelemetryRecord(
            level='error' if event == 'failure' else 'info',
            message=f'Email notification {event}',
            properties=properties,
            metrics=metrics or None
        ))

    def flush(self) -> None:
        current = self.logger
        while current is not None:
            for handler in current.handlers:
                handler.flush()
            current = current.parent if current.propagate else None

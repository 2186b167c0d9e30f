# core/validator.py
"""
Input validation and sanitization for date plan submissions

Validation never raises: callers receive a ValidationResult carrying either a
sanitized PlanSubmission or the accumulated field errors. Three whole-payload
gates (shape, size, suspicious content) short-circuit before any field is
looked at.
"""

import json
import re
import logging
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from core.models import PlanSubmission, ValidationError, ValidationResult

logger = logging.getLogger(__name__)

MAX_PAYLOAD_BYTES = 10000
MAX_NAME_LENGTH = 100
MAX_ACTIVITIES = 20
MAX_ACTIVITY_LENGTH = 100
MAX_CUSTOM_ACTIVITY_LENGTH = 200
MAX_SANITIZED_LENGTH = 500

# Patterns matched against the serialized payload
SUSPICIOUS_PATTERNS = [
    r"<script[^>]*>.*?</script>",
    r"javascript:",
    r"on\w+\s*=",
    r"eval\s*\(",
    r"expression\s*\(",
    r"vbscript:",
    r"data:text/html"
]

_COMPILED_PATTERNS = [
    re.compile(pattern, re.IGNORECASE | re.DOTALL)
    for pattern in SUSPICIOUS_PATTERNS
]

NAME_RE = re.compile(r"[a-zA-Z0-9\s\-'.,]+", re.ASCII)
ACTIVITY_RE = re.compile(r"[a-zA-Z0-9\s\-'.,!?()&:]+", re.ASCII)
TIME_RE = re.compile(r"([0-1]?[0-9]|2[0-3]):[0-5][0-9]", re.ASCII)

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_DISALLOWED_CHARS_RE = re.compile(r"[^\w\s\-'.,!?()&:]", re.ASCII)
_WHITESPACE_RE = re.compile(r"\s+", re.ASCII)


def sanitize_string(value: str) -> str:
    """
    Normalize an untrusted string to the allowed character set

    Removes angle brackets and any character outside the allow-list, collapses
    whitespace runs (newlines and tabs included) into single spaces, trims and
    truncates. Applying it twice gives the same result as applying it once.
    """
    value = _ANGLE_BRACKETS_RE.sub('', value)
    value = _DISALLOWED_CHARS_RE.sub('', value)
    value = _WHITESPACE_RE.sub(' ', value).strip()
    return value[:MAX_SANITIZED_LENGTH].rstrip()


def serialize_payload(data: Any) -> str:
    """Compact JSON form used for the size and content gates"""
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False, default=str)


def contains_suspicious_content(text: str) -> bool:
    return any(pattern.search(text) for pattern in _COMPILED_PATTERNS)


def _shift_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year + years, day=28)


def parse_iso_date(value: str) -> Optional[date]:
    """Parse an ISO-8601 date or datetime string to its calendar date"""
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is not None:
            # Offsets near year 1 or 9999 leave the representable range
            parsed = parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None
    return parsed.date()


def _validate_name(name: Any, errors: List[ValidationError]) -> None:
    if not name or not isinstance(name, str):
        errors.append(ValidationError('name', 'Name is required and must be a string'))
    elif not name.strip():
        errors.append(ValidationError('name', 'Name cannot be empty'))
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(ValidationError('name', f'Name must be less than {MAX_NAME_LENGTH} characters'))
    elif not NAME_RE.fullmatch(name):
        errors.append(ValidationError('name', 'Name contains invalid characters'))


def _validate_date(value: Any, now: datetime, errors: List[ValidationError]) -> None:
    if not value or not isinstance(value, str):
        errors.append(ValidationError('date', 'Date is required and must be a string'))
        return

    parsed = parse_iso_date(value)
    if parsed is None:
        errors.append(ValidationError('date', 'Date must be a valid ISO date string'))
        return

    today = now.date()
    if not _shift_years(today, -1) <= parsed <= _shift_years(today, 1):
        errors.append(ValidationError(
            'date', 'Date must be within a reasonable range (past year to next year)'
        ))


def _validate_time(value: Any, errors: List[ValidationError]) -> None:
    if not value or not isinstance(value, str):
        errors.append(ValidationError('time', 'Time is required and must be a string'))
    elif not TIME_RE.fullmatch(value):
        errors.append(ValidationError('time', 'Time must be in HH:MM format'))


def _is_valid_activity(activity: Any) -> bool:
    return (
        isinstance(activity, str)
        and bool(activity.strip())
        and len(activity) <= MAX_ACTIVITY_LENGTH
        and ACTIVITY_RE.fullmatch(activity) is not None
    )


def _validate_activities(activities: Any, errors: List[ValidationError]) -> None:
    if not isinstance(activities, list):
        errors.append(ValidationError('activities', 'Activities must be an array'))
    elif not activities:
        errors.append(ValidationError('activities', 'At least one activity is required'))
    elif len(activities) > MAX_ACTIVITIES:
        errors.append(ValidationError(
            'activities', f'Too many activities (maximum {MAX_ACTIVITIES} allowed)'
        ))
    elif not all(_is_valid_activity(activity) for activity in activities):
        errors.append(ValidationError(
            'activities',
            'All activities must be valid strings (max 100 chars, alphanumeric and basic punctuation only)'
        ))


def _validate_custom_activity(value: Any, errors: List[ValidationError]) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        errors.append(ValidationError('customActivity', 'Custom activity must be a string'))
    elif len(value) > MAX_CUSTOM_ACTIVITY_LENGTH:
        errors.append(ValidationError(
            'customActivity',
            f'Custom activity must be less than {MAX_CUSTOM_ACTIVITY_LENGTH} characters'
        ))
    elif value.strip() and not ACTIVITY_RE.fullmatch(value):
        errors.append(ValidationError('customActivity', 'Custom activity contains invalid characters'))


def _optional_sanitized(value: Any) -> Optional[str]:
    if not value:
        return None
    return sanitize_string(str(value))


def _iso_timestamp(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f'{moment.microsecond // 1000:03d}Z'


def validate_plan_submission(data: Any, now: Optional[datetime] = None,
                             max_payload_bytes: int = MAX_PAYLOAD_BYTES) -> ValidationResult:
    """
    Validate and sanitize an untrusted plan submission

    Args:
        data: Decoded JSON request body
        now: Reference time for the date range and the submittedAt stamp
        max_payload_bytes: Size limit of the serialized payload

    Returns:
        ValidationResult with the sanitized PlanSubmission or the field errors
    """
    if not isinstance(data, dict):
        return ValidationResult(False, [
            ValidationError('body', 'Request body is required and must be an object')
        ])

    serialized = serialize_payload(data)

    if len(serialized.encode('utf-8')) > max_payload_bytes:
        return ValidationResult(False, [ValidationError('body', 'Request payload too large')])

    if contains_suspicious_content(serialized):
        logger.warning("Suspicious content pattern found in plan submission")
        return ValidationResult(False, [
            ValidationError('body', 'Request contains potentially malicious content')
        ])

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    errors: List[ValidationError] = []
    _validate_name(data.get('name'), errors)
    _validate_date(data.get('date'), now, errors)
    _validate_time(data.get('time'), errors)
    _validate_activities(data.get('activities'), errors)
    _validate_custom_activity(data.get('customActivity'), errors)

    if errors:
        return ValidationResult(False, errors)

    sanitized = PlanSubmission(
        name=sanitize_string(data['name']),
        date=data['date'],
        time=data['time'],
        activities=[sanitize_string(activity) for activity in data['activities']],
        custom_activity=_optional_sanitized(data.get('customActivity')),
        submitted_at=_iso_timestamp(now),
        user_agent=_optional_sanitized(data.get('userAgent')),
        ip_address=_optional_sanitized(data.get('ipAddress'))
    )
    return ValidationResult(True, [], sanitized)

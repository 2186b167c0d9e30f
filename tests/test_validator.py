# tests/test_validator.py
from datetime import datetime, timezone

import pytest

from core.validator import (
    parse_iso_date,
    sanitize_string,
    serialize_payload,
    validate_plan_submission,
)
from conftest import make_plan, plan_date

NOW = datetime(2026, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)


def fields(result):
    return [error.field for error in result.errors]


def test_valid_plan_is_sanitized_and_stamped():
    data = make_plan(date='2026-02-14', customActivity='  Stargazing   at\tthe   pier  ',
                     userAgent='Mozilla/5.0 <x>', ipAddress='203.0.113.9')
    result = validate_plan_submission(data, now=NOW)

    assert result.is_valid
    assert result.errors == []
    plan = result.sanitized
    assert plan.name == 'Alex'
    assert plan.date == '2026-02-14'
    assert plan.time == '19:30'
    assert plan.activities == ['Dinner', 'Movie']
    assert plan.custom_activity == 'Stargazing at the pier'
    assert plan.user_agent == 'Mozilla5.0 x'
    assert plan.ip_address == '203.0.113.9'
    assert plan.submitted_at == '2026-03-01T12:00:00.123Z'


def test_empty_custom_activity_becomes_none():
    result = validate_plan_submission(make_plan(customActivity='', date='2026-02-14'), now=NOW)
    assert result.is_valid
    assert result.sanitized.custom_activity is None


@pytest.mark.parametrize('data', [None, [], 'plan', 42])
def test_non_object_body_is_rejected(data):
    result = validate_plan_submission(data, now=NOW)
    assert not result.is_valid
    assert [e.to_dict() for e in result.errors] == [
        {'field': 'body', 'message': 'Request body is required and must be an object'}
    ]


def test_oversized_payload_is_rejected_with_single_error():
    data = make_plan(padding='a' * 10001)
    result = validate_plan_submission(data, now=NOW)
    assert not result.is_valid
    assert len(result.errors) == 1
    assert result.errors[0].field == 'body'
    assert result.errors[0].message == 'Request payload too large'


def test_payload_size_counts_utf8_bytes():
    # Two-byte characters: well under 10000 characters but over 10000 bytes
    data = make_plan(date='2026-02-14', note='é' * 5001)
    result = validate_plan_submission(data, now=NOW)
    assert [e.message for e in result.errors] == ['Request payload too large']


@pytest.mark.parametrize('payload', [
    {'name': "<script>alert('x')</script>"},
    {'customActivity': 'javascript:alert(1)'},
    {'note': 'img onerror = steal()'},
    {'note': 'EVAL (document.cookie)'},
    {'note': 'data:text/html;base64,xyz'},
    {'note': 'vbscript:msgbox'},
    {'note': 'width: expression(alert(1))'},
])
def test_suspicious_content_is_rejected(payload):
    data = make_plan(date='2026-02-14', **payload)
    result = validate_plan_submission(data, now=NOW)
    assert not result.is_valid
    assert [e.to_dict() for e in result.errors] == [
        {'field': 'body', 'message': 'Request contains potentially malicious content'}
    ]


def test_suspicious_pattern_matches_inside_unrelated_field():
    # 'onion=' looks like an event handler attribute; false positives are accepted
    data = make_plan(date='2026-02-14', notes='onion=yes')
    result = validate_plan_submission(data, now=NOW)
    assert fields(result) == ['body']


def test_field_errors_accumulate():
    data = {'name': '', 'date': 'not-a-date', 'time': '25:00', 'activities': []}
    result = validate_plan_submission(data, now=NOW)

    assert not result.is_valid
    assert result.sanitized is None
    assert fields(result) == ['name', 'date', 'time', 'activities']
    messages = {e.field: e.message for e in result.errors}
    assert messages['name'] == 'Name is required and must be a string'
    assert messages['date'] == 'Date must be a valid ISO date string'
    assert messages['time'] == 'Time must be in HH:MM format'
    assert messages['activities'] == 'At least one activity is required'


def test_missing_fields_are_reported():
    result = validate_plan_submission({}, now=NOW)
    assert fields(result) == ['name', 'date', 'time', 'activities']
    assert result.errors[3].message == 'Activities must be an array'


@pytest.mark.parametrize('name, message', [
    ('   ', 'Name cannot be empty'),
    ('A' * 101, 'Name must be less than 100 characters'),
    ('Alex!', 'Name contains invalid characters'),
    ('Zoë', 'Name contains invalid characters'),
    (7, 'Name is required and must be a string'),
])
def test_name_rules(name, message):
    result = validate_plan_submission(make_plan(name=name, date='2026-02-14'), now=NOW)
    assert [e.to_dict() for e in result.errors] == [{'field': 'name', 'message': message}]


@pytest.mark.parametrize('name', ['A' * 100, "O'Brien-Smith, Jr.", 'Pat 2'])
def test_name_accepts_allowed_characters(name):
    assert validate_plan_submission(make_plan(name=name, date='2026-02-14'), now=NOW).is_valid


@pytest.mark.parametrize('value', ['2025-03-01', '2027-03-01', '2026-02-14T19:00:00Z', '2026-02-14T19:00:00'])
def test_date_range_bounds_are_inclusive(value):
    assert validate_plan_submission(make_plan(date=value), now=NOW).is_valid


@pytest.mark.parametrize('value', ['2025-02-28', '2027-03-02'])
def test_date_outside_range_is_rejected(value):
    result = validate_plan_submission(make_plan(date=value), now=NOW)
    assert [e.message for e in result.errors] == [
        'Date must be within a reasonable range (past year to next year)'
    ]


@pytest.mark.parametrize('value', ['0001-01-01T00:00:00+01:00', '9999-12-31T23:59:59-01:00'])
def test_date_offset_beyond_datetime_range_is_a_field_error(value):
    result = validate_plan_submission(make_plan(date=value), now=NOW)
    assert [e.to_dict() for e in result.errors] == [
        {'field': 'date', 'message': 'Date must be a valid ISO date string'}
    ]


def test_date_range_handles_leap_day():
    leap = datetime(2028, 2, 29, tzinfo=timezone.utc)
    assert validate_plan_submission(make_plan(date='2027-02-28'), now=leap).is_valid
    assert validate_plan_submission(make_plan(date='2029-02-28'), now=leap).is_valid
    assert not validate_plan_submission(make_plan(date='2029-03-01'), now=leap).is_valid


def test_date_range_defaults_to_current_time():
    assert validate_plan_submission(make_plan(date=plan_date(30))).is_valid
    assert not validate_plan_submission(make_plan(date=plan_date(400))).is_valid


@pytest.mark.parametrize('value', ['00:00', '9:05', '09:05', '23:59'])
def test_time_accepts_valid_values(value):
    assert validate_plan_submission(make_plan(time=value, date='2026-02-14'), now=NOW).is_valid


@pytest.mark.parametrize('value', ['24:00', '12:60', '1230', '12:3', ' 12:30', 'noon'])
def test_time_rejects_invalid_values(value):
    result = validate_plan_submission(make_plan(time=value, date='2026-02-14'), now=NOW)
    assert fields(result) == ['time']


def test_activities_limits():
    too_many = make_plan(activities=['Walk'] * 21, date='2026-02-14')
    assert [e.message for e in validate_plan_submission(too_many, now=NOW).errors] == [
        'Too many activities (maximum 20 allowed)'
    ]

    assert validate_plan_submission(make_plan(activities=['Walk'] * 20, date='2026-02-14'), now=NOW).is_valid


@pytest.mark.parametrize('activities', [['Dinner', ''], ['Dinner', 5], ['A' * 101], ['Dinner; drinks']])
def test_invalid_activity_entries(activities):
    result = validate_plan_submission(make_plan(activities=activities, date='2026-02-14'), now=NOW)
    assert fields(result) == ['activities']


def test_activity_punctuation_is_allowed():
    data = make_plan(activities=['Coffee & cake (maybe)!', 'Walk: the park?'], date='2026-02-14')
    assert validate_plan_submission(data, now=NOW).is_valid


@pytest.mark.parametrize('value, message', [
    (12, 'Custom activity must be a string'),
    ('A' * 201, 'Custom activity must be less than 200 characters'),
    ('Picnic #1', 'Custom activity contains invalid characters'),
])
def test_custom_activity_rules(value, message):
    result = validate_plan_submission(make_plan(customActivity=value, date='2026-02-14'), now=NOW)
    assert [e.to_dict() for e in result.errors] == [{'field': 'customActivity', 'message': message}]


def test_sanitize_string_rules():
    assert sanitize_string('  Hello\n\n  <b>World</b> ') == 'Hello bWorldb'
    assert sanitize_string('Tom & Jerry') == 'Tom & Jerry'
    assert sanitize_string('a\tb\r\nc') == 'a b c'
    assert sanitize_string('<>') == ''
    assert sanitize_string('x#y$z') == 'xyz'
    assert len(sanitize_string('word ' * 200)) <= 500


@pytest.mark.parametrize('value', [
    '  <b>Hi</b>   there  ', 'Café # 1', 'a' * 499 + ' b', 'x' * 600, '\n\t', 'a <> b',
])
def test_sanitize_string_is_idempotent(value):
    once = sanitize_string(value)
    assert sanitize_string(once) == once


def test_serialize_payload_is_compact():
    assert serialize_payload({'a': [1, 2], 'b': 'é'}) == '{"a":[1,2],"b":"é"}'


@pytest.mark.parametrize('value, expected', [
    ('2026-02-14', '2026-02-14'),
    ('2026-02-14T23:30:00-05:00', '2026-02-15'),
    ('2026-02-14T10:00:00Z', '2026-02-14'),
    ('14/02/2026', None),
    ('', None),
    ('0001-01-01T00:00:00+01:00', None),
    ('9999-12-31T23:59:59-01:00', None),
])
def test_parse_iso_date(value, expected):
    parsed = parse_iso_date(value)
    assert (parsed.isoformat() if parsed else None) == expected

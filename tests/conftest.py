# tests/conftest.py
"""
Shared fixtures: an application in testing mode with an in-memory email
transport, and plan payloads dated relative to today.
"""

from datetime import date, timedelta

import pytest

from app import create_app
from services.email_transport import SendOutcome


class RecordingTransport:
    """Email transport that records messages and replays scripted outcomes"""

    def __init__(self, outcomes=None):
        # Each outcome is a SendOutcome or an exception to raise; the last one repeats
        self.outcomes = list(outcomes or [SendOutcome(success=True, message_id='<test@example.com>')])
        self.messages = []

    def send(self, message):
        self.messages.append(message)
        index = min(len(self.messages), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def plan_date(days_from_today: int = 30) -> str:
    return (date.today() + timedelta(days=days_from_today)).isoformat()


def make_plan(**overrides):
    plan = {
        'name': 'Alex',
        'date': plan_date(),
        'time': '19:30',
        'activities': ['Dinner', 'Movie'],
    }
    plan.update(overrides)
    return plan


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def app(transport):
    app = create_app('testing', email_transport=transport)
    yield app
    for limiter in app.rate_limiters.values():
        limiter.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def valid_plan():
    return make_plan()

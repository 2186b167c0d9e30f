# tests/test_health.py
import pytest

from app import create_app

HEALTHY_EMAIL = {
    'EMAIL_FROM_ADDRESS': 'noreply@dateplanner.dev',
    'EMAIL_TO_ADDRESS': 'plans@dateplanner.dev',
}


@pytest.fixture
def health_client(transport):
    app = create_app('testing', config_overrides=dict(HEALTHY_EMAIL, LOG_FILE=''),
                     email_transport=transport)
    return app.test_client()


def test_health_reports_checks(health_client):
    response = health_client.get('/api/health')

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'healthy'
    assert body['version']
    assert body['environment']
    assert body['timestamp']
    assert set(body['checks']) == {'email', 'logging', 'runtime'}
    assert body['checks']['email']['status'] == 'healthy'
    assert body['checks']['runtime']['status'] == 'healthy'
    # stdout-only logging is not critical
    assert body['checks']['logging']['status'] == 'warning'
    assert response.headers['X-Content-Type-Options'] == 'nosniff'


def test_log_file_makes_logging_healthy(transport, tmp_path):
    log_file = tmp_path / 'logs' / 'gateway.log'
    app = create_app('testing', config_overrides=dict(HEALTHY_EMAIL, LOG_FILE=str(log_file)),
                     email_transport=transport)

    body = app.test_client().get('/api/health').get_json()

    assert body['checks']['logging']['status'] == 'healthy'
    assert log_file.parent.is_dir()


@pytest.mark.parametrize('overrides, message', [
    ({'SMTP_HOST': ''}, 'SMTP host not configured'),
    ({'EMAIL_TO_ADDRESS': ''}, 'Email addresses not configured'),
    ({'EMAIL_TO_ADDRESS': 'not-an-email'}, 'Invalid recipient address'),
])
def test_email_misconfiguration_is_unhealthy(transport, overrides, message):
    app = create_app('testing', config_overrides=dict(HEALTHY_EMAIL, **overrides),
                     email_transport=transport)

    response = app.test_client().get('/api/health')

    assert response.status_code == 503
    body = response.get_json()
    assert body['status'] == 'unhealthy'
    assert body['checks']['email']['status'] == 'unhealthy'
    assert body['checks']['email']['message'].startswith(message)


def test_health_is_rate_limited_per_client(transport):
    app = create_app('testing', config_overrides=dict(HEALTHY_EMAIL, RATELIMIT_GLOBAL=(2, 60)),
                     email_transport=transport)
    client = app.test_client()
    headers = {'X-Forwarded-For': '198.51.100.20'}

    assert client.get('/api/health', headers=headers).status_code == 200
    assert client.get('/api/health', headers=headers).status_code == 200

    response = client.get('/api/health', headers=headers)
    assert response.status_code == 429
    assert response.get_json()['error'] == 'Rate limit exceeded'
    assert int(response.headers['Retry-After']) > 0

    other = client.get('/api/health', headers={'X-Forwarded-For': '198.51.100.21'})
    assert other.status_code == 200


def test_health_rejects_post(health_client):
    response = health_client.post('/api/health')

    assert response.status_code == 405
    assert response.get_json()['success'] is False

import os
import sys
from datetime import datetime, timedelta

import pytest

# Ensure the backend root (containing the `livequiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from livequiz import create_app, db, socketio
from livequiz.services.live import clock


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ['http://localhost:5173']
    LOG_LEVEL = 'INFO'
    MAX_QUESTIONS_PER_QUIZ = 30
    ENABLE_EXPIRY_SWEEP = False
    TIMER_HEARTBEAT_SEC = 0


SINGLE_CHOICE = {
    'type': 'single_choice',
    'question': 'Capital of France?',
    'options': ['Paris', 'Lyon', 'Nice'],
    'correct_answer': 'Paris',
    'points': 3,
    'time_limit_seconds': 20,
}


class FakeClock:
    """Stands in for the server clock so countdowns are deterministic."""

    def __init__(self, start):
        self.current = start

    def now(self):
        return self.current

    def advance(self, seconds):
        self.current += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def fake_clock(monkeypatch):
    fc = FakeClock(datetime(2026, 1, 1, 12, 0, 0))
    monkeypatch.setattr(clock, 'now', fc.now)
    return fc


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import livequiz.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def host_client(client):
    res = client.post('/register', json={'username': 'host', 'password': 'secret'})
    assert res.status_code == 201
    return client


@pytest.fixture()
def make_quiz(host_client):
    """Create a quiz owned by the logged-in host and return its id."""
    def _make(questions=(SINGLE_CHOICE,), **settings):
        body = {'title': 'General knowledge'}
        body.update(settings)
        res = host_client.post('/api/quizzes', json=body)
        assert res.status_code == 201, res.get_json()
        quiz_id = res.get_json()['quiz']['id']
        for q in questions:
            res = host_client.post(f'/api/quizzes/{quiz_id}/questions', json=q)
            assert res.status_code == 201, res.get_json()
        return quiz_id
    return _make


@pytest.fixture()
def open_quiz(host_client):
    """Open a session for the quiz and return its access code."""
    def _open(quiz_id):
        res = host_client.post(f'/api/quizzes/{quiz_id}/open')
        assert res.status_code == 200, res.get_json()
        return res.get_json()['session']['access_code']
    return _open


@pytest.fixture()
def launch_quiz(host_client):
    def _launch(quiz_id):
        res = host_client.post(f'/api/quizzes/{quiz_id}/launch')
        assert res.status_code == 200, res.get_json()
        return res.get_json()
    return _launch


@pytest.fixture()
def join(client):
    """Join with the access code and return the participant auth headers."""
    def _join(code, pseudo):
        res = client.post('/api/participant/join', json={'code': code, 'pseudo': pseudo})
        assert res.status_code == 201, res.get_json()
        return {'X-Participant-Token': res.get_json()['session_token']}
    return _join


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass

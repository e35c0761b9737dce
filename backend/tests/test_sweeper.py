import pytest

from conftest import SINGLE_CHOICE
from livequiz import db
from livequiz.models import QuizSession
from livequiz.services.live import sweeper


@pytest.fixture()
def sweep_enabled(flask_app, monkeypatch, fake_clock):
    flask_app.config['ENABLE_EXPIRY_SWEEP'] = True
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    sleeps = []

    def fake_sleep(seconds):
        sleeps.append(seconds)
        fake_clock.advance(seconds)

    monkeypatch.setattr(sweeper.time, 'sleep', fake_sleep)
    monkeypatch.setattr(sweeper, '_scheduled_sweeps', set())
    return sleeps


def _session_state(quiz_id):
    # The sweep commits from its own app context
    db.session.expire_all()
    return QuizSession.query.filter_by(quiz_id=quiz_id).one().state


def test_sweep_finishes_expired_last_question(sweep_enabled, make_quiz, open_quiz, launch_quiz, join):
    quiz_id = make_quiz()
    code = open_quiz(quiz_id)
    join(code, 'Alice')
    data = launch_quiz(quiz_id)
    # Response was built before the sweep ran
    assert data['session']['state'] == 'active'
    assert sweep_enabled == [20]
    assert _session_state(quiz_id) == 'finished'


def test_sweep_heartbeat_splits_the_wait(flask_app, sweep_enabled, make_quiz, open_quiz, launch_quiz, join):
    flask_app.config['TIMER_HEARTBEAT_SEC'] = 6
    quiz_id = make_quiz()
    join(open_quiz(quiz_id), 'Alice')
    launch_quiz(quiz_id)
    assert sweep_enabled == [6, 6, 6, 2]
    assert _session_state(quiz_id) == 'finished'


def test_sweep_skips_intermediate_questions(host_client, sweep_enabled, make_quiz, open_quiz, launch_quiz, join):
    quiz_id = make_quiz(questions=(SINGLE_CHOICE, dict(SINGLE_CHOICE, time_limit_seconds=10)))
    join(open_quiz(quiz_id), 'Alice')
    launch_quiz(quiz_id)
    assert sweep_enabled == []
    assert _session_state(quiz_id) == 'active'

    host_client.post(f'/api/quizzes/{quiz_id}/next-question')
    assert sweep_enabled == [10]
    assert _session_state(quiz_id) == 'finished'


def test_sweep_disabled_by_default_in_tests(flask_app, monkeypatch, make_quiz, open_quiz, launch_quiz):
    flask_app.config['ENABLE_EXPIRY_SWEEP'] = True
    monkeypatch.setattr(sweeper.time, 'sleep', lambda seconds: pytest.fail('sweep should not run'))
    quiz_id = make_quiz()
    open_quiz(quiz_id)
    launch_quiz(quiz_id)
    assert _session_state(quiz_id) == 'active'


def test_quick_start_schedules_sweep_on_first_read(host_client, sweep_enabled, make_quiz):
    quiz_id = make_quiz()
    code = host_client.post(f'/api/quizzes/{quiz_id}/start').get_json()['session']['access_code']
    token = host_client.post('/api/participant/join', json={'code': code, 'pseudo': 'Alice'}).get_json()['session_token']
    # No clock yet, so nothing to wait for
    assert sweep_enabled == []

    state = host_client.get('/api/participant/state', headers={'X-Participant-Token': token}).get_json()
    assert sweep_enabled == [20]
    assert state['finished'] is True
    assert _session_state(quiz_id) == 'finished'

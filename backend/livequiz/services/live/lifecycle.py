"""Quiz/session state machine.

States: draft -> ready -> open -> active -> finished, with finished able to
open a fresh session again. Every transition on a session row is a
conditional UPDATE on the state (and position) the caller observed, so a
host action racing a lazy auto-finish loses cleanly with a conflict instead
of applying twice.
"""

import random
from typing import Iterable, Optional

from flask import current_app

from livequiz import db
from livequiz.models import Quiz, QuizSession, LIVE_STATES
from . import clock
from .errors import StateConflictError, ValidationError
from .notify import notify_state_change


ACCESS_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ACCESS_CODE_LENGTH = 6
OPENABLE_STATES = ('draft', 'ready', 'finished')
AUTHORING_STATES = ('draft', 'ready')


def generate_access_code(length: int = ACCESS_CODE_LENGTH) -> str:
    """Generate a short code not used by any open or active session."""
    while True:
        code = ''.join(random.choices(ACCESS_CODE_ALPHABET, k=length))
        clash = (
            QuizSession.query
            .filter(QuizSession.access_code == code, QuizSession.state.in_(LIVE_STATES))
            .first()
        )
        if not clash:
            return code


def live_session_for(quiz: Quiz) -> Optional[QuizSession]:
    return (
        QuizSession.query
        .filter(QuizSession.quiz_id == quiz.id, QuizSession.state.in_(LIVE_STATES))
        .order_by(QuizSession.id.desc())
        .first()
    )


def latest_session_for(quiz: Quiz) -> Optional[QuizSession]:
    return QuizSession.query.filter_by(quiz_id=quiz.id).order_by(QuizSession.id.desc()).first()


def assert_quiz_editable(quiz: Quiz) -> None:
    if quiz.state in LIVE_STATES or live_session_for(quiz) is not None:
        raise StateConflictError('Quiz cannot be modified while a session is open or active. End it first.')


def set_authoring_state(quiz: Quiz, state: str) -> None:
    if state not in AUTHORING_STATES:
        raise ValidationError(f"State can only be set to one of {', '.join(AUTHORING_STATES)}")
    if state != 'draft' and quiz.question_count < 1:
        raise ValidationError('A quiz with no questions must stay in draft')
    quiz.state = state


def _transition(session: QuizSession, from_states: Iterable[str], values: dict, **expected) -> bool:
    query = QuizSession.query.filter(
        QuizSession.id == session.id,
        QuizSession.state.in_(tuple(from_states)),
    )
    for column, value in expected.items():
        query = query.filter(getattr(QuizSession, column) == value)
    return query.update(values, synchronize_session=False) == 1


def _set_quiz_state(quiz_id: int, state: str) -> None:
    Quiz.query.filter_by(id=quiz_id).update({Quiz.state: state}, synchronize_session=False)


def _commit_and_refresh(*instances) -> None:
    db.session.commit()
    for instance in instances:
        db.session.refresh(instance)


def open_session(quiz: Quiz, host_id: Optional[int] = None) -> QuizSession:
    if quiz.state in LIVE_STATES:
        raise StateConflictError(
            'Quiz is already open. Launch it to start.' if quiz.state == 'open' else 'Quiz is already running.'
        )
    if quiz.state not in OPENABLE_STATES:
        raise StateConflictError('A quiz can only be opened from draft, ready or finished')
    if quiz.question_count < 1:
        raise StateConflictError('A quiz needs at least 1 question before it can be opened')
    if live_session_for(quiz) is not None:
        raise StateConflictError('Quiz already has a live session')

    claimed = (
        Quiz.query
        .filter(Quiz.id == quiz.id, Quiz.state.in_(OPENABLE_STATES))
        .update({Quiz.state: 'open'}, synchronize_session=False)
    )
    if not claimed:
        db.session.rollback()
        raise StateConflictError('Quiz changed state concurrently; re-read it and retry')

    session = QuizSession(
        quiz_id=quiz.id,
        host_id=host_id,
        access_code=generate_access_code(),
        state='open',
        current_question_position=1,
        current_question_started_at=None,
        started_at=None,
    )
    db.session.add(session)
    _commit_and_refresh(quiz, session)
    current_app.logger.info(f"[open] quiz={quiz.id} session={session.id} code={session.access_code}")
    return session


def launch_session(quiz: Quiz) -> QuizSession:
    session = live_session_for(quiz)
    if quiz.state != 'open' or session is None or session.state != 'open':
        raise StateConflictError('Open the quiz first, then launch it')

    ts = clock.now()
    if not _transition(session, ('open',), {
        QuizSession.state: 'active',
        QuizSession.started_at: ts,
        QuizSession.current_question_started_at: ts,
    }):
        db.session.rollback()
        raise StateConflictError('Session is no longer open')
    _set_quiz_state(quiz.id, 'active')
    _commit_and_refresh(quiz, session)
    current_app.logger.info(f"[launch] quiz={quiz.id} session={session.id}")
    notify_state_change(session, 'launch')
    return session


def start_session(quiz: Quiz, host_id: Optional[int] = None) -> QuizSession:
    """Open and activate in one step.

    The question clock stays unset; the first state read starts it.
    """
    session = open_session(quiz, host_id)
    if not _transition(session, ('open',), {QuizSession.state: 'active'}):
        db.session.rollback()
        raise StateConflictError('Session is no longer open')
    _set_quiz_state(quiz.id, 'active')
    _commit_and_refresh(quiz, session)
    current_app.logger.info(f"[start] quiz={quiz.id} session={session.id} clock=deferred")
    return session


def advance_question(quiz: Quiz) -> QuizSession:
    session = live_session_for(quiz)
    if quiz.state != 'active' or session is None or session.state != 'active':
        raise StateConflictError('The quiz must be active to move to the next question')

    total = quiz.question_count
    pos = int(session.current_question_position or 1)
    if pos >= total:
        raise StateConflictError('Last question reached. End the quiz to finish it.')

    if not _transition(session, ('active',), {
        QuizSession.current_question_position: pos + 1,
        QuizSession.current_question_started_at: clock.now(),
    }, current_question_position=pos):
        db.session.rollback()
        raise StateConflictError('Session changed concurrently; re-read the state')
    _commit_and_refresh(session)
    current_app.logger.info(f"[advance] quiz={quiz.id} session={session.id} position {pos} -> {pos + 1}")
    notify_state_change(session, 'advance')
    return session


def end_session(quiz: Quiz) -> QuizSession:
    session = live_session_for(quiz)
    if session is None:
        if quiz.state == 'finished':
            raise StateConflictError('Quiz is already finished')
        raise StateConflictError('Only an open or active quiz can be ended')

    if not _transition(session, LIVE_STATES, {
        QuizSession.state: 'finished',
        QuizSession.ended_at: clock.now(),
    }):
        db.session.rollback()
        raise StateConflictError('Quiz is already finished')
    _set_quiz_state(quiz.id, 'finished')
    _commit_and_refresh(quiz, session)
    current_app.logger.info(f"[end] quiz={quiz.id} session={session.id}")
    notify_state_change(session, 'end')
    return session


def finish_session(session: QuizSession, reason: str) -> bool:
    """Implicit active -> finished transition. Returns False if someone got there first."""
    finished = _transition(session, ('active',), {
        QuizSession.state: 'finished',
        QuizSession.ended_at: clock.now(),
    })
    if finished:
        _set_quiz_state(session.quiz_id, 'finished')
    db.session.commit()
    db.session.refresh(session)
    db.session.refresh(session.quiz)
    if finished:
        current_app.logger.info(f"[auto-finish] session={session.id} reason={reason}")
        notify_state_change(session, f"auto_finish:{reason}")
    return finished

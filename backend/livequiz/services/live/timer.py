"""Per-question countdown computed from the stored question start time."""

import math
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from livequiz import db
from livequiz.models import Question, QuizSession
from . import clock


MIN_DURATION_SEC = 5
MAX_DURATION_SEC = 120
DEFAULT_DURATION_SEC = 30


@dataclass
class TimerReading:
    duration: int
    elapsed: float
    remaining: int
    started_at: Optional[object]

    @property
    def expired(self) -> bool:
        return self.remaining <= 0


def clamp_duration(raw) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_DURATION_SEC
    return max(MIN_DURATION_SEC, min(MAX_DURATION_SEC, value))


def current_question(session: QuizSession) -> Optional[Question]:
    questions = session.quiz.questions
    if not questions:
        return None
    pos = int(session.current_question_position or 1)
    for q in questions:
        if q.position == pos:
            return q
    # Keep the last question on screen if the position ever overshoots
    return questions[min(max(pos, 1), len(questions)) - 1]


def ensure_question_clock(session: QuizSession) -> bool:
    """Stamp the current question start time if it is still unset.

    The first reader after launch starts the clock. Conditional on the column
    still being null, so concurrent readers stamp it once.
    Starting the clock of the last question also schedules the expiry sweep.
    """
    if session.current_question_started_at is not None:
        return False
    ts = clock.now()
    updated = (
        QuizSession.query
        .filter(QuizSession.id == session.id,
                QuizSession.state == 'active',
                QuizSession.current_question_started_at.is_(None))
        .update({
            QuizSession.current_question_started_at: ts,
            QuizSession.started_at: db.func.coalesce(QuizSession.started_at, ts),
        }, synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(session)
    if updated:
        current_app.logger.info(f"[timer-start] session={session.id} position={session.current_question_position}")
        from .sweeper import schedule_expiry_sweep
        schedule_expiry_sweep(current_app._get_current_object(), session.id)
    return bool(updated)


def read_timer(session: QuizSession, question: Question) -> TimerReading:
    duration = clamp_duration(question.time_limit_seconds)
    started_at = session.current_question_started_at
    elapsed = clock.elapsed_seconds_since(started_at)
    remaining = max(0, math.ceil(duration - elapsed))
    return TimerReading(duration=duration, elapsed=elapsed, remaining=min(remaining, duration), started_at=started_at)

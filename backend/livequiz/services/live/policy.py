"""Auto-advance policy, evaluated on every state read.

Two triggers are computed for the current question: everyone answered, or
the countdown reached zero. Only the last question acts on them, by
finishing the session; earlier questions wait for the host to advance.
"""

from dataclasses import dataclass
from typing import Optional

from livequiz.models import Participant, Question, QuizSession, Response
from . import lifecycle, timer


@dataclass
class PolicyOutcome:
    session: QuizSession
    question: Optional[Question] = None
    reading: Optional[timer.TimerReading] = None
    participant_count: int = 0
    response_count: int = 0
    all_answered: bool = False
    timed_out: bool = False
    is_last_question: bool = False
    finished_now: bool = False

    @property
    def finished(self) -> bool:
        return self.session.state == 'finished'


def count_participants(session: QuizSession) -> int:
    return Participant.query.filter_by(session_id=session.id).count()


def count_responses(session: QuizSession, question: Question) -> int:
    return (
        Response.query
        .join(Participant, Participant.id == Response.participant_id)
        .filter(Participant.session_id == session.id, Response.question_id == question.id)
        .count()
    )


def evaluate(session: QuizSession) -> PolicyOutcome:
    outcome = PolicyOutcome(session=session)
    if session.state != 'active':
        return outcome

    timer.ensure_question_clock(session)
    question = timer.current_question(session)
    if question is None:
        return outcome

    reading = timer.read_timer(session, question)
    outcome.question = question
    outcome.reading = reading
    outcome.participant_count = count_participants(session)
    outcome.response_count = count_responses(session, question)
    outcome.all_answered = outcome.participant_count > 0 and outcome.response_count >= outcome.participant_count
    outcome.timed_out = reading.expired
    outcome.is_last_question = question.position >= session.quiz.question_count

    if outcome.is_last_question and (outcome.all_answered or outcome.timed_out):
        reason = 'all_answered' if outcome.all_answered else 'timeout'
        outcome.finished_now = lifecycle.finish_session(session, reason)
    return outcome

import math
from dataclasses import dataclass
from typing import Any, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from livequiz import db
from livequiz.models import Participant, Question, Quiz, Response, Score
from . import clock, policy, timer
from .errors import StateConflictError, ValidationError


@dataclass
class SubmissionResult:
    response: Response
    is_correct: Optional[bool]
    points_earned: int
    speed_bonus_earned: int
    total_score: int
    correct_answer: Any
    auto_finished: bool

    def to_dict(self):
        return {
            'recorded': True,
            'is_correct': self.is_correct,
            'correct_answer': self.correct_answer,
            'points_earned': self.points_earned,
            'speed_bonus_earned': self.speed_bonus_earned,
            'total_score': self.total_score,
            'auto_finished': self.auto_finished,
        }


def normalize_bool(value) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == 'true':
            return True
        if lowered == 'false':
            return False
    return None


def grade_answer(question: Question, answer) -> Optional[bool]:
    """Correctness verdict for ``answer``. Free text is never graded (None)."""
    correct = question.correct_answer
    if question.type == 'free_text':
        return None
    if question.type == 'single_choice':
        if answer is None or correct is None:
            return False
        return str(answer) == str(correct)
    if question.type == 'multi_choice':
        submitted = answer if isinstance(answer, list) else []
        expected = correct if isinstance(correct, list) else [correct]
        if not submitted:
            return False
        return {str(v) for v in submitted} == {str(v) for v in expected}
    if question.type == 'boolean':
        submitted = normalize_bool(answer)
        if submitted is None:
            return False
        return submitted == normalize_bool(correct)
    return False


def compute_speed_bonus(quiz: Quiz, latency_seconds: Optional[float]) -> int:
    """Bonus for a correct answer: bonus_max, minus points_per_step for every full step elapsed."""
    if not quiz.speed_bonus_enabled or latency_seconds is None:
        return 0
    bonus_max = max(0, int(quiz.speed_bonus_points or 0))
    step_seconds = max(1, int(quiz.speed_bonus_step_seconds or 1))
    points_per_step = max(0, int(quiz.speed_bonus_points_per_step or 0))
    steps = math.floor(latency_seconds / step_seconds)
    return max(0, bonus_max - steps * points_per_step)


def _parse_question_id(raw) -> int:
    if raw is None or raw == '':
        raise ValidationError('question_id is required')
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise ValidationError('question_id must be an integer')
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError('question_id must be an integer')


def _already_answered(participant: Participant, question: Question) -> bool:
    return Response.query.filter_by(participant_id=participant.id, question_id=question.id).first() is not None


def submit_answer(participant: Participant, question_id, answer) -> SubmissionResult:
    """Record one answer for the current question and score it.

    The Response insert and the Score increment commit together; a duplicate
    for the same (participant, question) fails on the unique constraint and
    leaves the score untouched.
    """
    qid = _parse_question_id(question_id)
    session = participant.session
    if session.state == 'finished':
        raise StateConflictError('The quiz is finished')
    if session.state != 'active':
        raise StateConflictError('The quiz has not started yet')

    question = timer.current_question(session)
    if question is None or question.id != qid:
        raise ValidationError('This question is not the current question')

    if _already_answered(participant, question):
        raise StateConflictError('Answer already recorded')

    timer.ensure_question_clock(session)
    latency = round(clock.elapsed_seconds_since(session.current_question_started_at), 2)
    verdict = grade_answer(question, answer)

    points_earned = 0
    speed_bonus = 0
    if verdict is True:
        base = question.points if question.points is not None else 1
        speed_bonus = compute_speed_bonus(session.quiz, latency)
        points_earned = base + speed_bonus

    response = Response(
        participant_id=participant.id,
        question_id=question.id,
        answer=answer,
        is_correct=verdict,
        response_time_seconds=latency,
        points_awarded=points_earned,
        speed_bonus_awarded=speed_bonus,
        created_at=clock.now(),
    )
    # The score update autoflushes the insert, so a losing duplicate fails inside this block
    try:
        db.session.add(response)
        if points_earned:
            Score.query.filter_by(participant_id=participant.id).update(
                {Score.total_score: Score.total_score + points_earned}, synchronize_session=False
            )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise StateConflictError('Answer already recorded')

    score = Score.query.filter_by(participant_id=participant.id).first()
    total_score = score.total_score if score else 0
    current_app.logger.info(
        f"[respond] session={session.id} participant={participant.id} question={question.id} "
        f"correct={verdict} latency={latency}s points={points_earned} bonus={speed_bonus} total={total_score}"
    )

    outcome = policy.evaluate(session)
    return SubmissionResult(
        response=response,
        is_correct=verdict,
        points_earned=points_earned,
        speed_bonus_earned=speed_bonus,
        total_score=total_score,
        correct_answer=None if question.type == 'free_text' else question.correct_answer,
        auto_finished=outcome.finished_now,
    )

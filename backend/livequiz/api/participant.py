from functools import wraps

from flask import Blueprint, jsonify, request, g

from livequiz.models import Response
from livequiz.services.live import participants as svc_participants
from livequiz.services.live import policy as svc_policy
from livequiz.services.live import ranking as svc_ranking
from livequiz.services.live import scoring as svc_scoring


participant = Blueprint('participant', __name__)


def _token_from_request():
    token = request.headers.get('X-Participant-Token')
    if token:
        return token
    auth = request.headers.get('Authorization', '')
    if auth.startswith('Bearer '):
        return auth[len('Bearer '):].strip()
    return None


def participant_required(view):
    """Resolve the bearer participant token into ``g.participant``."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.participant = svc_participants.participant_for_token(_token_from_request())
        return view(*args, **kwargs)
    return wrapper


@participant.route('/join', methods=['POST'])
def join():
    data = request.get_json(silent=True) or {}
    player, session = svc_participants.join_session(data.get('code'), data.get('pseudo'))
    return jsonify({
        'session_token': player.session_token,
        'participant_id': player.id,
        'session_id': session.id,
        'quiz_title': session.quiz.title,
        'ranking_enabled': bool(session.quiz.ranking_enabled),
        'total_questions': session.quiz.question_count,
    }), 201


def _finished_payload(player, session):
    return {
        'finished': True,
        'waiting_for_start': False,
        'total_questions': session.quiz.question_count,
        'ranking_enabled': bool(session.quiz.ranking_enabled),
        'participant_id': player.id,
        'session_id': session.id,
    }


@participant.route('/state', methods=['GET'])
@participant_required
def get_state():
    player = g.participant
    session = player.session
    quiz = session.quiz

    if session.state == 'open':
        return jsonify({
            'finished': False,
            'waiting_for_start': True,
            'total_questions': quiz.question_count,
            'participant_id': player.id,
            'session_id': session.id,
            'participants': [{'pseudo': p.pseudo} for p in session.participants],
        })

    # A passive read may itself finish the session
    outcome = svc_policy.evaluate(session)
    if outcome.finished or outcome.question is None:
        return jsonify(_finished_payload(player, session))

    question = outcome.question
    reading = outcome.reading
    has_answered = Response.query.filter_by(participant_id=player.id, question_id=question.id).first() is not None
    return jsonify({
        'finished': False,
        'waiting_for_start': False,
        'current_question_position': question.position,
        'question_started_at': reading.started_at.isoformat() + 'Z' if reading.started_at else None,
        'question_duration_seconds': reading.duration,
        'remaining_seconds': reading.remaining,
        'question': question.to_dict(include_answer=False),
        'has_answered': has_answered,
        'total_questions': quiz.question_count,
        'participant_id': player.id,
        'session_id': session.id,
    })


@participant.route('/respond', methods=['POST'])
@participant_required
def respond():
    data = request.get_json(silent=True) or {}
    result = svc_scoring.submit_answer(g.participant, data.get('question_id'), data.get('answer'))
    return jsonify(result.to_dict())


@participant.route('/ranking', methods=['GET'])
@participant_required
def get_ranking():
    player = g.participant
    return jsonify(svc_ranking.build_ranking(player.session, viewer=player))

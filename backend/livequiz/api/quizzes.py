from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from livequiz import db
from livequiz.models import Quiz, Question, QUESTION_TYPES, CHOICE_TYPES
from livequiz.services.live import clock
from livequiz.services.live import lifecycle as svc_lifecycle
from livequiz.services.live import policy as svc_policy
from livequiz.services.live import ranking as svc_ranking
from livequiz.services.live import timer as svc_timer
from livequiz.services.live.errors import NotFoundError, ValidationError
from livequiz.services.live.scoring import normalize_bool
from livequiz.services.live.sweeper import schedule_expiry_sweep


quizzes = Blueprint('quizzes', __name__)

# Speed bonus settings: (column, default, minimum, maximum)
SPEED_BONUS_FIELDS = (
    ('speed_bonus_points', 1, 0, 100),
    ('speed_bonus_step_seconds', 3, 1, 120),
    ('speed_bonus_points_per_step', 1, 0, 100),
)
MIN_OPTIONS = 2
MAX_OPTIONS = 5


def _get_owned_quiz(quiz_id: int) -> Quiz:
    # Another host's quiz looks exactly like a missing one
    quiz = Quiz.query.filter_by(id=quiz_id, creator_id=current_user.id).first()
    if not quiz:
        raise NotFoundError('Quiz not found')
    return quiz


def _apply_settings(quiz: Quiz, data: dict) -> None:
    if 'title' in data:
        title = data.get('title')
        if not isinstance(title, str) or not title.strip():
            raise ValidationError('Title is required')
        quiz.title = title.strip()
    if 'description' in data:
        description = data.get('description')
        quiz.description = description.strip() if isinstance(description, str) and description.strip() else None
    if 'ranking_enabled' in data:
        quiz.ranking_enabled = bool(data.get('ranking_enabled'))
    if 'speed_bonus_enabled' in data:
        quiz.speed_bonus_enabled = bool(data.get('speed_bonus_enabled'))
    for field, _default, minimum, maximum in SPEED_BONUS_FIELDS:
        if field not in data:
            continue
        try:
            value = int(data.get(field))
        except (TypeError, ValueError):
            raise ValidationError(f'{field} must be an integer >= {minimum}')
        if value < minimum:
            raise ValidationError(f'{field} must be an integer >= {minimum}')
        setattr(quiz, field, min(maximum, value))


def _question_fields(data: dict) -> dict:
    qtype = data.get('type')
    if qtype not in QUESTION_TYPES:
        raise ValidationError(f"Invalid type ({', '.join(QUESTION_TYPES)})")
    prompt = data.get('question')
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError('Question text is required')

    options = data.get('options')
    correct = data.get('correct_answer')
    points = data.get('points')
    points = points if isinstance(points, int) and not isinstance(points, bool) and points >= 0 else 1

    if qtype == 'free_text':
        options, correct, points = None, None, 0
    elif qtype in CHOICE_TYPES:
        if not isinstance(options, list) or not (MIN_OPTIONS <= len(options) <= MAX_OPTIONS) \
                or any(o is None or str(o).strip() == '' for o in options):
            raise ValidationError(f'Between {MIN_OPTIONS} and {MAX_OPTIONS} non-empty options are required')
        labels = {str(o) for o in options}
        if qtype == 'single_choice':
            if isinstance(correct, bool) or not isinstance(correct, (str, int)) or str(correct) not in labels:
                raise ValidationError('Single choice needs exactly one correct option')
        else:
            if not isinstance(correct, list) or not correct or any(str(c) not in labels for c in correct):
                raise ValidationError('Multiple choice needs at least one correct option')
    elif qtype == 'boolean':
        options = None
        correct = normalize_bool(correct)
        if correct is None:
            raise ValidationError('Boolean questions need a true/false correct answer')

    media_type = data.get('media_type') if data.get('media_type') in ('image', 'video') else None
    media_url = data.get('media_url')
    media_url = media_url.strip() if isinstance(media_url, str) and media_url.strip() else None

    return {
        'type': qtype,
        'prompt': prompt.strip(),
        'options': options,
        'correct_answer': correct,
        'points': points,
        'time_limit_seconds': svc_timer.clamp_duration(
            data.get('time_limit_seconds', svc_timer.DEFAULT_DURATION_SEC)
        ),
        'media_type': media_type,
        'media_url': media_url,
    }


@quizzes.route('', methods=['GET'])
@login_required
def list_quizzes():
    owned = Quiz.query.filter_by(creator_id=current_user.id).order_by(Quiz.id.desc()).all()
    return jsonify({'quizzes': [q.to_dict() for q in owned]})


@quizzes.route('', methods=['POST'])
@login_required
def create_quiz():
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('title'), str) or not data['title'].strip():
        raise ValidationError('Title is required')
    quiz = Quiz(creator_id=current_user.id, state='draft', created_at=clock.now(), title='')
    _apply_settings(quiz, data)
    db.session.add(quiz)
    db.session.commit()
    return jsonify({'quiz': quiz.to_dict()}), 201


@quizzes.route('/<int:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    return jsonify({'quiz': quiz.to_dict(include_questions=True)})


@quizzes.route('/<int:quiz_id>', methods=['PUT'])
@login_required
def update_quiz(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    svc_lifecycle.assert_quiz_editable(quiz)
    data = request.get_json(silent=True) or {}
    _apply_settings(quiz, data)
    if 'state' in data:
        svc_lifecycle.set_authoring_state(quiz, data.get('state'))
    db.session.commit()
    return jsonify({'quiz': quiz.to_dict()})


@quizzes.route('/<int:quiz_id>', methods=['DELETE'])
@login_required
def delete_quiz(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    svc_lifecycle.assert_quiz_editable(quiz)
    db.session.delete(quiz)
    db.session.commit()
    return '', 204


@quizzes.route('/<int:quiz_id>/questions', methods=['POST'])
@login_required
def add_question(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    svc_lifecycle.assert_quiz_editable(quiz)
    max_questions = int(current_app.config.get('MAX_QUESTIONS_PER_QUIZ', 30))
    if quiz.question_count >= max_questions:
        raise ValidationError(f'Maximum {max_questions} questions per quiz')
    fields = _question_fields(request.get_json(silent=True) or {})
    question = Question(quiz_id=quiz.id, position=quiz.question_count + 1, **fields)
    db.session.add(question)
    db.session.commit()
    return jsonify({'question': question.to_dict(include_answer=True)}), 201


@quizzes.route('/<int:quiz_id>/questions/<int:question_id>', methods=['PUT'])
@login_required
def update_question(quiz_id, question_id):
    quiz = _get_owned_quiz(quiz_id)
    svc_lifecycle.assert_quiz_editable(quiz)
    question = Question.query.filter_by(id=question_id, quiz_id=quiz.id).first()
    if not question:
        raise NotFoundError('Question not found')
    merged = question.to_dict(include_answer=True)
    merged.update(request.get_json(silent=True) or {})
    for key, value in _question_fields(merged).items():
        setattr(question, key, value)
    db.session.commit()
    return jsonify({'question': question.to_dict(include_answer=True)})


@quizzes.route('/<int:quiz_id>/questions/<int:question_id>', methods=['DELETE'])
@login_required
def delete_question(quiz_id, question_id):
    quiz = _get_owned_quiz(quiz_id)
    svc_lifecycle.assert_quiz_editable(quiz)
    question = Question.query.filter_by(id=question_id, quiz_id=quiz.id).first()
    if not question:
        raise NotFoundError('Question not found')
    removed_position = question.position
    db.session.delete(question)
    db.session.flush()
    # Keep positions contiguous; shift one row at a time to respect the unique constraint
    later = (
        Question.query
        .filter(Question.quiz_id == quiz.id, Question.position > removed_position)
        .order_by(Question.position.asc())
        .all()
    )
    for q in later:
        q.position -= 1
        db.session.flush()
    if Question.query.filter_by(quiz_id=quiz.id).count() == 0 and quiz.state == 'ready':
        quiz.state = 'draft'
    db.session.commit()
    return '', 204


@quizzes.route('/<int:quiz_id>/session', methods=['GET'])
@login_required
def get_session(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    session = svc_lifecycle.live_session_for(quiz)
    return jsonify({'session': session.to_dict() if session else None})


@quizzes.route('/<int:quiz_id>/live', methods=['GET'])
@login_required
def get_live_state(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    session = svc_lifecycle.live_session_for(quiz)
    if session is None and quiz.state == 'finished':
        session = svc_lifecycle.latest_session_for(quiz)
    if session is None:
        return jsonify({'quiz_state': quiz.state, 'ranking_enabled': bool(quiz.ranking_enabled), 'session': None})

    outcome = svc_policy.evaluate(session)
    db.session.refresh(quiz)
    question = outcome.question or svc_timer.current_question(session)
    participants = session.participants
    response_count = outcome.response_count
    if outcome.question is None and question is not None:
        response_count = svc_policy.count_responses(session, question)

    return jsonify({
        'quiz_state': quiz.state,
        'ranking_enabled': bool(quiz.ranking_enabled),
        'session': {
            **session.to_dict(),
            'total_questions': quiz.question_count,
            'remaining_seconds': outcome.reading.remaining if outcome.reading else None,
            'participants': len(participants),
            'responses': response_count,
            'all_answered': outcome.all_answered,
            'timed_out': outcome.timed_out,
            'participants_list': [{'id': p.id, 'pseudo': p.pseudo} for p in participants],
            'scores_ranking': svc_ranking.ranked_participants(session) if quiz.ranking_enabled else [],
            'question': question.to_dict(include_answer=False) if question else None,
        },
    })


@quizzes.route('/<int:quiz_id>/open', methods=['POST'])
@login_required
def open_quiz(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    session = svc_lifecycle.open_session(quiz, host_id=current_user.id)
    return jsonify({'session': session.to_dict()})


@quizzes.route('/<int:quiz_id>/launch', methods=['POST'])
@login_required
def launch_quiz(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    session = svc_lifecycle.launch_session(quiz)
    payload = {'quiz': quiz.to_dict(), 'session': session.to_dict()}
    schedule_expiry_sweep(current_app._get_current_object(), session.id)
    return jsonify(payload)


@quizzes.route('/<int:quiz_id>/start', methods=['POST'])
@login_required
def start_quiz(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    session = svc_lifecycle.start_session(quiz, host_id=current_user.id)
    return jsonify({'quiz': quiz.to_dict(), 'session': session.to_dict()})


@quizzes.route('/<int:quiz_id>/next-question', methods=['POST'])
@login_required
def next_question(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    session = svc_lifecycle.advance_question(quiz)
    payload = {'current_question_position': session.current_question_position, 'session': session.to_dict()}
    schedule_expiry_sweep(current_app._get_current_object(), session.id)
    return jsonify(payload)


@quizzes.route('/<int:quiz_id>/end', methods=['POST'])
@login_required
def end_quiz(quiz_id):
    quiz = _get_owned_quiz(quiz_id)
    session = svc_lifecycle.end_session(quiz)
    return jsonify({'quiz': quiz.to_dict(), 'session': session.to_dict()})

from livequiz import db, bcrypt
from flask_login import UserMixin
import json

QUIZ_STATES = ('draft', 'ready', 'open', 'active', 'finished')
LIVE_STATES = ('open', 'active')
QUESTION_TYPES = ('single_choice', 'multi_choice', 'boolean', 'free_text')
CHOICE_TYPES = ('single_choice', 'multi_choice')


def _dump(value):
    return json.dumps(value) if value is not None else None


def _load(raw):
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _iso(ts):
    return ts.isoformat() + 'Z' if ts else None


class User(UserMixin, db.Model):
    """Host account. Credential checking is a thin collaborator surface."""
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    quizzes = db.relationship('Quiz', back_populates='creator')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Quiz(db.Model):
    __tablename__ = 'quiz'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    state = db.Column(db.String(16), default='draft', nullable=False)  # draft, ready, open, active, finished
    ranking_enabled = db.Column(db.Boolean, default=True, nullable=False)
    # Tiered speed bonus: bonus_max minus points_per_step for every elapsed step
    speed_bonus_enabled = db.Column(db.Boolean, default=False, nullable=False)
    speed_bonus_points = db.Column(db.Integer, default=1, nullable=False)
    speed_bonus_step_seconds = db.Column(db.Integer, default=3, nullable=False)
    speed_bonus_points_per_step = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(db.DateTime, nullable=True)

    creator = db.relationship('User', back_populates='quizzes')
    questions = db.relationship(
        'Question', back_populates='quiz', order_by='Question.position',
        cascade='all, delete-orphan',
    )
    sessions = db.relationship(
        'QuizSession', back_populates='quiz', order_by='QuizSession.id',
        cascade='all, delete-orphan',
    )

    @property
    def question_count(self):
        return len(self.questions)

    def to_dict(self, include_questions=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'creator_id': self.creator_id,
            'state': self.state,
            'ranking_enabled': bool(self.ranking_enabled),
            'speed_bonus_enabled': bool(self.speed_bonus_enabled),
            'speed_bonus_points': self.speed_bonus_points,
            'speed_bonus_step_seconds': self.speed_bonus_step_seconds,
            'speed_bonus_points_per_step': self.speed_bonus_points_per_step,
            'question_count': self.question_count,
        }
        if include_questions:
            data['questions'] = [q.to_dict(include_answer=True) for q in self.questions]
        return data


class Question(db.Model):
    __tablename__ = 'question'
    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'position', name='uq_question_quiz_position'),
    )
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)  # 1-based
    type = db.Column(db.String(32), nullable=False)
    prompt = db.Column(db.Text, nullable=False)
    options_json = db.Column(db.Text, nullable=True)  # JSON-encoded list
    correct_answer_json = db.Column(db.Text, nullable=True)  # JSON-encoded value
    points = db.Column(db.Integer, default=1, nullable=False)
    time_limit_seconds = db.Column(db.Integer, default=30, nullable=False)
    media_type = db.Column(db.String(16), nullable=True)
    media_url = db.Column(db.String(512), nullable=True)

    quiz = db.relationship('Quiz', back_populates='questions')
    responses = db.relationship('Response', back_populates='question', cascade='all, delete-orphan')

    @property
    def options(self):
        return _load(self.options_json)

    @options.setter
    def options(self, value):
        self.options_json = _dump(value)

    @property
    def correct_answer(self):
        return _load(self.correct_answer_json)

    @correct_answer.setter
    def correct_answer(self, value):
        self.correct_answer_json = _dump(value)

    def to_dict(self, include_answer=False):
        data = {
            'id': self.id,
            'position': self.position,
            'type': self.type,
            'question': self.prompt,
            'options': self.options if self.type in CHOICE_TYPES else None,
            'points': self.points,
            'time_limit_seconds': self.time_limit_seconds,
            'media_type': self.media_type,
            'media_url': self.media_url,
        }
        if include_answer:
            data['correct_answer'] = self.correct_answer
        return data


class QuizSession(db.Model):
    __tablename__ = 'quiz_session'
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False, index=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    access_code = db.Column(db.String(6), nullable=False, index=True)
    state = db.Column(db.String(16), default='open', nullable=False)  # open, active, finished
    current_question_position = db.Column(db.Integer, default=1, nullable=False)
    # Null until the first question is shown or first polled
    current_question_started_at = db.Column(db.DateTime, nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)

    quiz = db.relationship('Quiz', back_populates='sessions')
    participants = db.relationship(
        'Participant', back_populates='session', order_by=lambda: (Participant.joined_at, Participant.id),
        cascade='all, delete-orphan',
    )

    @property
    def is_live(self):
        return self.state in LIVE_STATES

    def to_dict(self):
        return {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'access_code': self.access_code,
            'state': self.state,
            'current_question_position': self.current_question_position,
            'current_question_started_at': _iso(self.current_question_started_at),
            'started_at': _iso(self.started_at),
            'ended_at': _iso(self.ended_at),
        }


class Participant(db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    pseudo = db.Column(db.String(50), nullable=False)
    session_token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    joined_at = db.Column(db.DateTime, nullable=False)

    session = db.relationship('QuizSession', back_populates='participants')
    score = db.relationship('Score', back_populates='participant', uselist=False,
                            cascade='all, delete-orphan')
    responses = db.relationship('Response', back_populates='participant',
                                cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'pseudo': self.pseudo,
            'joined_at': _iso(self.joined_at),
            'total_score': self.score.total_score if self.score else 0,
        }


class Score(db.Model):
    __tablename__ = 'score'
    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('participant.id'), unique=True, nullable=False)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    total_score = db.Column(db.Integer, default=0, nullable=False)

    participant = db.relationship('Participant', back_populates='score')


class Response(db.Model):
    __tablename__ = 'response'
    __table_args__ = (
        db.UniqueConstraint('participant_id', 'question_id', name='uq_response_participant_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('participant.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    answer_json = db.Column(db.Text, nullable=True)
    is_correct = db.Column(db.Boolean, nullable=True)  # null for free text
    response_time_seconds = db.Column(db.Float, nullable=True)
    points_awarded = db.Column(db.Integer, default=0, nullable=False)
    speed_bonus_awarded = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)

    participant = db.relationship('Participant', back_populates='responses')
    question = db.relationship('Question', back_populates='responses')

    @property
    def answer(self):
        return _load(self.answer_json)

    @answer.setter
    def answer(self, value):
        self.answer_json = _dump(value)

    def to_dict(self):
        return {
            'id': self.id,
            'participant_id': self.participant_id,
            'question_id': self.question_id,
            'answer': self.answer,
            'is_correct': self.is_correct,
            'response_time_seconds': self.response_time_seconds,
            'points_awarded': self.points_awarded,
            'speed_bonus_awarded': self.speed_bonus_awarded,
        }

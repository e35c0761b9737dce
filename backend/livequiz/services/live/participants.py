import secrets
from typing import Optional, Tuple

from flask import current_app

from livequiz import db
from livequiz.models import Participant, QuizSession, Score, LIVE_STATES
from . import clock
from .errors import AuthenticationError, NotFoundError, ValidationError


PSEUDO_MAX_LENGTH = 50


def join_session(code, pseudo) -> Tuple[Participant, QuizSession]:
    """Create a participant and its zero score for the live session behind ``code``."""
    if not code or not isinstance(pseudo, str) or not pseudo.strip():
        raise ValidationError('Code and pseudo are required')

    session = (
        QuizSession.query
        .filter(QuizSession.access_code == str(code).strip().upper(),
                QuizSession.state.in_(LIVE_STATES))
        .order_by(QuizSession.id.desc())
        .first()
    )
    if not session:
        raise NotFoundError('Invalid code or session not open')

    participant = Participant(
        session_id=session.id,
        pseudo=pseudo.strip()[:PSEUDO_MAX_LENGTH],
        session_token=secrets.token_hex(32),
        joined_at=clock.now(),
    )
    db.session.add(participant)
    db.session.flush()
    db.session.add(Score(participant_id=participant.id, session_id=session.id, total_score=0))
    db.session.commit()
    current_app.logger.info(f"[join] session={session.id} participant={participant.id} pseudo={participant.pseudo!r}")
    return participant, session


def participant_for_token(token: Optional[str]) -> Participant:
    if not token:
        raise AuthenticationError('Participant token missing')
    participant = Participant.query.filter_by(session_token=token).first()
    if not participant:
        raise AuthenticationError('Participant token invalid or expired')
    return participant

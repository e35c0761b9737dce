from livequiz import socketio
from livequiz.models import QuizSession


def session_room(access_code: str) -> str:
    return f"session:{access_code.upper()}"


def notify_state_change(session: QuizSession, reason: str) -> None:
    """Tell connected clients to re-poll. The event carries no authoritative state."""
    socketio.emit(
        'state_update',
        {
            'access_code': session.access_code,
            'state': session.state,
            'current_question_position': session.current_question_position,
            'reason': reason,
        },
        to=session_room(session.access_code),
        namespace='/ws',
    )

from flask_socketio import join_room, leave_room, emit
from livequiz import socketio
from livequiz.services.live.notify import session_room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_session(data):
    access_code = (data or {}).get('access_code')
    if not access_code:
        emit('error', {'message': 'access_code is required'})
        return
    room = session_room(access_code)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_session(data):
    access_code = (data or {}).get('access_code')
    if not access_code:
        emit('error', {'message': 'access_code is required'})
        return
    room = session_room(access_code)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Rooms only carry "re-poll" hints; the HTTP state endpoints stay the
    source of truth. Always register on namespace '/ws'. When testing is
    True, also mirror handlers on the default namespace '/'.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('join_session', handle_join_session, namespace=namespace)
        socketio.on_event('leave_session', handle_leave_session, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)

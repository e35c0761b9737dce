import time
from typing import Set, Tuple

from livequiz import db, socketio
from livequiz.models import QuizSession
from . import policy, timer


_scheduled_sweeps: Set[Tuple[int, int]] = set()


def schedule_expiry_sweep(app, session_id: int) -> None:
    """Schedule a policy evaluation at the deadline of the session's last question.

    - No-ops unless ENABLE_EXPIRY_SWEEP is set (and in TESTING mode unless
      ENABLE_SCHEDULER_IN_TESTS is also set)
    - Only the last question can finish a session, so earlier questions are skipped
    - Ensures a single sweep per (session_id, position)
    - The worker applies the same idempotent check a state read does
    """
    if not app.config.get('ENABLE_EXPIRY_SWEEP'):
        return
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    with app.app_context():
        session = db.session.get(QuizSession, session_id)
        if not session or session.state != 'active':
            return
        if session.current_question_started_at is None:
            # Clock starts on the first read; that read decides
            return
        question = timer.current_question(session)
        if question is None or question.position < session.quiz.question_count:
            return

        position = int(session.current_question_position)
        key = (session.id, position)
        if key in _scheduled_sweeps:
            app.logger.info(f"[sweep-skip] session={session.id} position={position} already scheduled")
            return
        _scheduled_sweeps.add(key)
        delay = timer.read_timer(session, question).remaining
        app.logger.info(f"[sweep-set] session={session.id} position={position} delay={delay}s")

    def _worker(sid: int, expected_position: int, delay: int):
        # heartbeat sleep loop if enabled
        try:
            hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        except (TypeError, ValueError):
            hb = 0
        if hb > 0:
            slept = 0
            while slept < delay:
                step = min(hb, delay - slept)
                time.sleep(step)
                slept += step
                app.logger.info(f"[sweep-heartbeat] session={sid} position={expected_position} remaining={max(0, delay - slept)}s")
        else:
            time.sleep(delay)
        with app.app_context():
            _scheduled_sweeps.discard((sid, expected_position))
            s = db.session.get(QuizSession, sid)
            if not s:
                return
            if s.state != 'active' or int(s.current_question_position) != expected_position:
                app.logger.info(f"[sweep-abort] session={sid} state={s.state} position={s.current_question_position}")
                return
            outcome = policy.evaluate(s)
            app.logger.info(f"[sweep-fire] session={sid} position={expected_position} finished={outcome.finished_now}")

    if app.config.get('TESTING'):
        _worker(session_id, position, delay)
    else:
        socketio.start_background_task(_worker, session_id, position, delay)

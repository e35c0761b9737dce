from typing import List, Optional

from livequiz import db
from livequiz.models import Participant, QuizSession, Score


def ranked_participants(session: QuizSession) -> List[dict]:
    """Score descending, earliest join first on ties. Ranks are unique and contiguous."""
    rows = (
        db.session.query(Participant, Score.total_score)
        .join(Score, Score.participant_id == Participant.id)
        .filter(Participant.session_id == session.id)
        .order_by(Score.total_score.desc(), Participant.joined_at.asc(), Participant.id.asc())
        .all()
    )
    return [
        {
            'rank': idx + 1,
            'participant_id': p.id,
            'pseudo': p.pseudo,
            'total_score': int(total or 0),
        }
        for idx, (p, total) in enumerate(rows)
    ]


def build_ranking(session: QuizSession, viewer: Optional[Participant] = None) -> dict:
    if not session.quiz.ranking_enabled:
        return {'ranking_enabled': False, 'ranking': [], 'my_result': None}

    ranking = ranked_participants(session)
    my_result = None
    for idx, entry in enumerate(ranking):
        entry['is_me'] = viewer is not None and entry['participant_id'] == viewer.id
        if entry['is_me']:
            above = ranking[idx - 1] if idx > 0 else None
            my_result = {
                'rank': entry['rank'],
                'total_score': entry['total_score'],
                'points_to_next_rank': max(0, above['total_score'] - entry['total_score']) if above else 0,
            }
    return {'ranking_enabled': True, 'ranking': ranking, 'my_result': my_result}

from conftest import SINGLE_CHOICE


BOOLEAN = {'type': 'boolean', 'question': 'Sky is blue.', 'correct_answer': 'true', 'points': 2, 'time_limit_seconds': 30}


def _play_round(client, headers_and_answers):
    for headers, answer in headers_and_answers:
        state = client.get('/api/participant/state', headers=headers).get_json()
        client.post('/api/participant/respond', headers=headers,
                    json={'question_id': state['question']['id'], 'answer': answer})


def test_ties_broken_by_join_order(host_client, make_quiz, open_quiz, launch_quiz, join, fake_clock):
    quiz_id = make_quiz(questions=(SINGLE_CHOICE, BOOLEAN))
    code = open_quiz(quiz_id)
    alice = join(code, 'Alice')
    fake_clock.advance(1)
    bob = join(code, 'Bob')
    fake_clock.advance(1)
    cara = join(code, 'Cara')
    launch_quiz(quiz_id)

    # Cara and Bob tie on 3, Alice trails with 0
    _play_round(host_client, [(cara, 'Paris'), (bob, 'Paris'), (alice, 'Nice')])
    data = host_client.get('/api/participant/ranking', headers=cara).get_json()
    assert data['ranking_enabled'] is True
    assert [(r['rank'], r['pseudo'], r['total_score']) for r in data['ranking']] == [
        (1, 'Bob', 3), (2, 'Cara', 3), (3, 'Alice', 0),
    ]
    assert [r['is_me'] for r in data['ranking']] == [False, True, False]
    assert data['my_result'] == {'rank': 2, 'total_score': 3, 'points_to_next_rank': 0}

    alice_view = host_client.get('/api/participant/ranking', headers=alice).get_json()
    assert alice_view['my_result'] == {'rank': 3, 'total_score': 0, 'points_to_next_rank': 3}

    host_client.post(f'/api/quizzes/{quiz_id}/next-question')
    _play_round(host_client, [(alice, True), (bob, False), (cara, 'TRUE')])
    data = host_client.get('/api/participant/ranking', headers=bob).get_json()
    assert [(r['pseudo'], r['total_score']) for r in data['ranking']] == [
        ('Cara', 5), ('Bob', 3), ('Alice', 2),
    ]
    assert data['my_result'] == {'rank': 2, 'total_score': 3, 'points_to_next_rank': 2}
    assert [r['rank'] for r in data['ranking']] == [1, 2, 3]


def test_leader_has_no_gap(host_client, make_quiz, open_quiz, launch_quiz, join):
    quiz_id = make_quiz()
    code = open_quiz(quiz_id)
    alice = join(code, 'Alice')
    join(code, 'Bob')
    launch_quiz(quiz_id)
    _play_round(host_client, [(alice, 'Paris')])
    data = host_client.get('/api/participant/ranking', headers=alice).get_json()
    assert data['my_result'] == {'rank': 1, 'total_score': 3, 'points_to_next_rank': 0}


def test_ranking_disabled_returns_empty_payload(host_client, make_quiz, open_quiz, launch_quiz, join):
    quiz_id = make_quiz(ranking_enabled=False)
    code = open_quiz(quiz_id)
    alice = join(code, 'Alice')
    join(code, 'Bob')
    launch_quiz(quiz_id)
    _play_round(host_client, [(alice, 'Paris')])
    data = host_client.get('/api/participant/ranking', headers=alice).get_json()
    assert data == {'ranking_enabled': False, 'ranking': [], 'my_result': None}

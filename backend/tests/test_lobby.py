import threading

import pytest

from conftest import game_row, setup_lobby, setup_started_game, snapshot
from hitman import db
from hitman.errors import ErrorKind, Forbidden, GameError, NotFound, UnprocessableEntity, Unauthorized
from hitman.services.games import create_game, join_game, leave_game, process_kill
from hitman.services.games.changes import get_change_tracker


def test_create_game_makes_creator_host(flask_app):
    host = create_game('  Host ')
    game = game_row(host.game_code)
    assert game['status'] == 'lobby'
    assert game['host_id'] == host.player_id
    assert game['winner_id'] is None
    assert len(host.game_code) == 4
    players = snapshot(host.game_code)
    assert len(players) == 1
    assert players[0]['name'] == 'Host'
    assert players[0]['is_alive'] is True
    assert players[0]['target_id'] is None
    assert players[0]['secret_code'] == host.secret_code
    assert players[0]['auth_token'] == host.auth_token


def test_create_game_rejects_blank_name(flask_app):
    with pytest.raises(UnprocessableEntity) as err:
        create_game('   ')
    assert err.value.reason == 'name_required'
    with pytest.raises(UnprocessableEntity) as err:
        create_game('x' * 65)
    assert err.value.reason == 'name_too_long'
    with pytest.raises(UnprocessableEntity) as err:
        create_game(5)
    assert err.value.reason == 'name_required'


def test_join_unknown_game(flask_app):
    with pytest.raises(NotFound) as err:
        join_game('ZZZZ', 'Guest')
    assert err.value.reason == 'game_not_found'


def test_join_adds_player_and_bumps_version(flask_app):
    host = create_game('Host')
    before = get_change_tracker().version(host.game_code)
    guest = join_game(host.game_code.lower(), 'Guest')
    assert guest.player_id != host.player_id
    assert guest.secret_code != host.secret_code
    assert not guest.reconnected
    assert get_change_tracker().version(host.game_code) == before + 1
    assert [p['name'] for p in snapshot(host.game_code)] == ['Host', 'Guest']


def test_same_name_is_rejected_case_insensitively(flask_app):
    host = create_game('Host')
    join_game(host.game_code, 'Guest')
    with pytest.raises(UnprocessableEntity) as err:
        join_game(host.game_code, 'gUEST ')
    assert err.value.reason == 'name_taken'
    assert len(snapshot(host.game_code)) == 2


def test_reconnect_with_token_returns_same_identity(flask_app):
    host = create_game('Host')
    guest = join_game(host.game_code, 'Guest')
    again = join_game(host.game_code, 'guest', auth_token=guest.auth_token)
    assert again.reconnected
    assert again.player_id == guest.player_id
    assert again.secret_code == guest.secret_code
    assert again.auth_token == guest.auth_token
    assert len(snapshot(host.game_code)) == 2


def test_reconnect_with_someone_elses_token_is_rejected(flask_app):
    host = create_game('Host')
    join_game(host.game_code, 'Guest')
    with pytest.raises(UnprocessableEntity):
        join_game(host.game_code, 'Guest', auth_token=host.auth_token)


def test_join_after_start_is_rejected(flask_app):
    code, members = setup_started_game(2)
    with pytest.raises(UnprocessableEntity) as err:
        join_game(code, 'Latecomer')
    assert err.value.reason == 'game_not_in_lobby'
    # Even a known player cannot come back through the lobby
    with pytest.raises(UnprocessableEntity):
        join_game(code, 'Player_2', auth_token=members[1].auth_token)


def test_eliminated_name_cannot_rejoin(flask_app):
    # Only reachable if a lobby somehow holds a dead player; force one
    from hitman.models import Player
    host = create_game('Host')
    ghost = join_game(host.game_code, 'Ghost')
    db.session.get(Player, ghost.player_id).is_alive = False
    db.session.commit()
    with pytest.raises(Forbidden) as err:
        join_game(host.game_code, 'ghost')
    assert err.value.reason == 'eliminated_cannot_rejoin'


def test_leave_lobby_deletes_player(flask_app):
    code, members = setup_lobby(3)
    leave_game(code, members[2].auth_token)
    assert [p['name'] for p in snapshot(code)] == ['Player_1', 'Player_2']
    assert game_row(code)['host_id'] == members[0].player_id


def test_host_leaving_hands_host_to_earliest_player(flask_app):
    code, members = setup_lobby(3)
    leave_game(code, members[0].auth_token)
    assert game_row(code)['host_id'] == members[1].player_id
    assert [p['name'] for p in snapshot(code)] == ['Player_2', 'Player_3']


def test_last_player_leaving_deletes_game(flask_app):
    code, members = setup_lobby(2)
    leave_game(code, members[1].auth_token)
    leave_game(code, members[0].auth_token)
    assert game_row(code) is None
    with pytest.raises(NotFound):
        join_game(code, 'Someone')


def test_leave_requires_known_token(flask_app):
    code, members = setup_lobby(2)
    other_code, other_members = setup_lobby(1)
    with pytest.raises(Unauthorized):
        leave_game(code, 'not a token')
    # A valid token from another game does not authenticate here
    with pytest.raises(Unauthorized) as err:
        leave_game(code, other_members[0].auth_token)
    assert err.value.reason == 'unknown_token'
    with pytest.raises(NotFound) as err:
        leave_game('NOPE', 'garbage')
    assert err.value.reason == 'game_not_found'


def test_leave_mid_game_splices_ring(flask_app):
    code, members = setup_started_game(4)
    before = {p['id']: p for p in snapshot(code)}
    leaver = members[2]
    predecessor = next(p for p in before.values() if p['target_id'] == leaver.player_id)
    leave_game(code, leaver.auth_token)
    after = {p['id']: p for p in snapshot(code)}
    assert after[leaver.player_id]['is_alive'] is False
    assert after[leaver.player_id]['target_id'] is None
    assert after[predecessor['id']]['target_id'] == before[leaver.player_id]['target_id']
    assert game_row(code)['status'] == 'in_progress'


def test_leave_mid_game_with_two_players_finishes_game(flask_app):
    code, members = setup_started_game(2)
    leave_game(code, members[1].auth_token)
    game = game_row(code)
    assert game['status'] == 'finished'
    assert game['winner_id'] == members[0].player_id
    survivor = next(p for p in snapshot(code) if p['id'] == members[0].player_id)
    assert survivor['target_id'] is None


def test_dead_player_leaving_mid_game_changes_nothing(flask_app):
    code, members = setup_started_game(4)
    before = {p['id']: p for p in snapshot(code)}
    killer = before[members[0].player_id]
    victim = before[killer['target_id']]
    process_kill(code, killer['auth_token'], victim['secret_code'])
    ring = {p['id']: (p['is_alive'], p['target_id']) for p in snapshot(code)}

    leave_game(code, victim['auth_token'])
    assert {p['id']: (p['is_alive'], p['target_id']) for p in snapshot(code)} == ring
    assert game_row(code)['status'] == 'in_progress'


def test_leave_finished_game_keeps_winner(flask_app):
    code, members = setup_started_game(2)
    process_kill(code, members[0].auth_token, members[1].secret_code)
    leave_game(code, members[0].auth_token)
    game = game_row(code)
    assert game['status'] == 'finished'
    assert game['winner_id'] == members[0].player_id
    winner = next(p for p in snapshot(code) if p['id'] == members[0].player_id)
    assert winner['is_alive'] is False


def test_concurrent_joins_with_same_name(file_app):
    code, members = setup_lobby(1)
    db.session.remove()

    barrier = threading.Barrier(6)
    outcomes = []
    lock = threading.Lock()

    def attempt():
        with file_app.app_context():
            barrier.wait()
            try:
                join_game(code, 'Twin')
                outcome = 'ok'
            except GameError as exc:
                outcome = (exc.kind, exc.reason)
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count('ok') == 1
    assert [o for o in outcomes if o != 'ok'] == [(ErrorKind.UNPROCESSABLE_ENTITY, 'name_taken')] * 5
    assert [p['name'] for p in snapshot(code)].count('Twin') == 1

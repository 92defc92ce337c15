import random

from gridlock.client.matchmaking import find_match
from gridlock.client.session import start_multiplayer, start_solo
from gridlock.client.store import ClaimRejected
from gridlock.models import now_ms
from gridlock.services.engine.board import empty_board
from gridlock.services.engine.pieces import make_piece
from gridlock.services.engine.state import new_match

import pytest


class Clock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


def _row_ready_board():
    grid = empty_board()
    for c in range(3, 8):
        grid[0][c] = 1
    return grid


def _stacked_rows_board():
    # rows 0-5 full except column 0
    grid = empty_board()
    for r in range(6):
        for c in range(1, 8):
            grid[r][c] = 1
    return grid


# ---- single player ----

def test_solo_row_clear_end_to_end():
    clock = Clock(1_000)
    session = start_solo('me', rng=random.Random(1), clock=clock)
    me = session.state.player1
    me.board = _row_ready_board()
    me.pieces = [make_piece('3x1'), make_piece('1x1'), make_piece('1x1')]

    result = session.place(0, 0, 0)
    assert result.cleared_cells == 8
    assert me.score == 8
    assert me.board[0] == [0] * 8
    assert me.pieces[0] is None
    assert session.state.status == 'playing'


def test_solo_illegal_drop_is_a_no_op():
    session = start_solo('me', rng=random.Random(1), clock=Clock(0))
    me = session.state.player1
    me.board = empty_board()
    me.board[0][0] = 1
    me.pieces = [make_piece('2x2'), None, None]
    before = [row[:] for row in me.board]

    assert session.place(0, 0, 0) is None
    assert session.place(0, 7, 7) is None
    assert session.place(1, 3, 3) is None
    assert me.board == before
    assert me.pieces[0] is not None


def test_solo_stalemate_wipes_and_freezes():
    clock = Clock(10_000)
    session = start_solo('me', rng=random.Random(1), clock=clock)
    me = session.state.player1
    grid = [[(r + c) % 2 for c in range(8)] for r in range(8)]
    grid[0][1] = 0
    me.board = grid
    me.score = 20
    me.pieces = [make_piece('2x1'), make_piece('2x1'), make_piece('2x1')]

    result = session.place(0, 0, 0)
    assert result.stalemate
    assert me.board == empty_board()
    assert me.score == 10
    assert me.locked_until == 13_000

    clock.now = 12_999
    assert session.is_frozen()
    assert session.place(1, 0, 0) is None
    clock.now = 13_000
    assert not session.is_frozen()
    assert session.place(1, 0, 0) is not None


def test_solo_win_stops_further_turns():
    session = start_solo('me', rng=random.Random(1), clock=Clock(0))
    me = session.state.player1
    me.board = _row_ready_board()
    me.score = 92
    me.pieces = [make_piece('3x1'), make_piece('1x1'), make_piece('1x1')]

    session.place(0, 0, 0)
    assert session.state.status == 'finished'
    assert session.state.winner == 'me'
    assert session.place(1, 4, 4) is None


def test_solo_has_no_liveness():
    session = start_solo('me', rng=random.Random(1), clock=Clock(0))
    report = session.tick(now=10 ** 9)
    assert report.claim is None
    assert session.start_timers() is None
    assert session.state.player2.uid == 'bot'
    assert session.state.player2.pieces == []


# ---- multiplayer ----

@pytest.fixture()
def duel(make_store):
    store_a, store_b = make_store(), make_store()
    mid = store_a.create(participant_id='alice')['id']
    store_b.claim(mid, 'bob')
    clock = Clock(now_ms())
    a = start_multiplayer(store_a, mid, 'player1', 'alice', rng=random.Random(1), clock=clock, run_timers=False)
    b = start_multiplayer(store_b, mid, 'player2', 'bob', rng=random.Random(2), clock=clock, run_timers=False)
    return mid, store_a, store_b, a, b, clock


def test_pushed_snapshot_rehydrates_pieces(duel):
    mid, store_a, store_b, a, b, clock = duel
    a.tick(now=clock.now)  # heartbeat write triggers a push to both clients
    assert b.state.player1.last_seen == store_b.get(mid)['player1']['last_seen']
    assert b.state.player1.pieces
    for piece in b.state.player1.pieces:
        assert piece.cells
    assert b.state.status == 'playing'


def test_attacks_need_client_acknowledgement(duel):
    mid, store_a, store_b, a, b, clock = duel
    grid = _stacked_rows_board()
    pieces = [make_piece('1x3'), make_piece('1x3'), make_piece('1x1')]
    a.state.player1.board = grid
    a.state.player1.pieces = pieces
    a.adapter.apply_update({'player1.board': grid, 'player1.pieces': pieces})

    store_b.offline = True
    first = a.place(0, 0, 0)
    clock.now += 500
    second = a.place(1, 0, 3)
    assert first.lines_cleared == 3 and second.lines_cleared == 3
    assert a.state.player1.score == 48

    record = store_a.get(mid)
    assert record['player2']['incoming_attack'] == {'type': 'lock', 'duration': 7000, 'timestamp': clock.now}
    assert record['player1']['board'] == '0' * 64
    # bob's client never saw the attack, so nothing is locked
    assert b.locks.active(clock.now) == {}

    store_b.offline = False
    store_b._dispatch_snapshot(store_b.get(mid))
    locked = b.locks.locked_slots(clock.now)
    assert len(locked) == 1
    assert b.place(locked[0], 0, 0) is None
    assert store_a.get(mid)['player2']['incoming_attack'] is None

    # the lock lapses after its duration
    clock.now += 7000
    assert not b.is_slot_locked(locked[0])


def test_two_lines_do_not_reach_opponent(duel):
    mid, store_a, store_b, a, b, clock = duel
    grid = empty_board()
    for r in range(2):
        for c in range(1, 8):
            grid[r][c] = 1
    pieces = [make_piece('1x2'), make_piece('1x1'), make_piece('1x1')]
    a.state.player1.board = grid
    a.state.player1.pieces = pieces
    a.adapter.apply_update({'player1.board': grid, 'player1.pieces': pieces})

    assert a.place(0, 0, 0).lines_cleared == 2
    assert store_a.get(mid)['player2']['incoming_attack'] is None
    assert b.locks.active(clock.now) == {}


def test_timeout_claim_first_writer_wins(duel):
    mid, store_a, store_b, a, b, clock = duel
    start = clock.now

    assert not a.tick(now=start + 1000).degraded
    store_b.offline = True
    assert a.tick(now=start + 6000).degraded
    assert a.connection_degraded

    report = a.tick(now=start + 11_000)
    assert report.claim == {'status': 'finished', 'winner': 'alice'}
    record = store_a.get(mid)
    assert record['status'] == 'finished'
    assert record['winner'] == 'alice'

    # bob's stale view lets him claim too; the store refuses the second claim
    clock.now = start + 60_000
    b.tick()
    assert store_b.get(mid)['winner'] == 'alice'

    store_b.offline = False
    store_b._dispatch_snapshot(store_b.get(mid))
    assert b.state.winner == 'alice'
    assert b.state.status == 'finished'


def test_heartbeat_updates_last_seen(duel):
    mid, store_a, store_b, a, b, clock = duel
    before = store_a.get(mid)['player1']['last_seen']
    a.tick(now=clock.now + 5)
    after = store_a.get(mid)['player1']['last_seen']
    assert isinstance(after, int) and after >= before


# ---- matchmaking ----

def test_find_match_create_rejoin_and_join(make_store):
    sa, sb, sc = make_store(), make_store(), make_store()

    mid, role = find_match(sa, 'alice', rng=random.Random(5))
    assert role == 'player1'
    assert find_match(sa, 'alice') == (mid, 'player1')

    assert find_match(sb, 'bob') == (mid, 'player2')
    record = sa.get(mid)
    assert record['status'] == 'playing'
    assert record['player2']['uid'] == 'bob'
    assert isinstance(record['created_at'], int)

    other, role = find_match(sc, 'carol')
    assert other != mid and role == 'player1'


def test_lost_claim_means_try_again(make_store, monkeypatch):
    sa, sb, sc = make_store(), make_store(), make_store()
    mid, _ = find_match(sa, 'alice')
    stale = sa.get(mid)
    assert find_match(sb, 'bob') == (mid, 'player2')

    monkeypatch.setattr(sc, 'query', lambda *args, **kwargs: [stale])
    assert find_match(sc, 'carol') is None
    with pytest.raises(ClaimRejected):
        sc.claim(mid, 'carol')


def test_store_identity_rotation(make_store):
    store = make_store()
    first = store.sign_in()
    assert store.sign_in() == first
    store.sign_out()
    assert store.sign_in() != first


def test_repeated_attack_snapshot_installs_one_lock(duel, monkeypatch):
    mid, store_a, store_b, a, b, clock = duel
    store_b.offline = True
    store_a.update(mid, {'player2.incoming_attack': {'type': 'lock', 'duration': 7000, 'timestamp': clock.now}})
    stale = store_b.get(mid)

    acks = []
    write = store_b.update

    def recording_update(match_id, updates):
        acks.append(updates)
        return write(match_id, updates)

    monkeypatch.setattr(store_b, 'update', recording_update)

    store_b._dispatch_snapshot(stale)
    first = b.locks.active(clock.now)
    assert len(first) == 1

    # the same snapshot delivered again must not re-arm or re-acknowledge
    clock.now += 1000
    store_b._dispatch_snapshot(stale)
    assert b.locks.active(clock.now) == first
    assert acks == [{'player2.incoming_attack': None}]


def test_joiner_does_not_time_out_a_creator_who_waited(make_store):
    store_a, store_b = make_store(), make_store()
    record = new_match('alice', now_ms() - 15_000, rng=random.Random(4)).to_dict()
    mid = store_a.create(record)['id']
    store_b.claim(mid, 'bob')

    clock = Clock(now_ms() + 2000)
    b = start_multiplayer(store_b, mid, 'player2', 'bob', rng=random.Random(2), clock=clock, run_timers=False)
    report = b.tick()
    assert report.claim is None
    assert not report.degraded
    assert store_b.get(mid)['status'] == 'playing'
    assert store_b.get(mid)['winner'] is None

import random

import pytest

from gridlock.client.session import MatchSession
from gridlock.client.store import SyncError
from gridlock.client.sync import LocalSyncAdapter, StoreSyncAdapter
from gridlock.services.engine.board import empty_board
from gridlock.services.engine.pieces import make_piece
from gridlock.services.engine.state import SERVER_TIMESTAMP, MatchState, new_match


class RecordingStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.writes = []
        self.subscribed = []

    def update(self, match_id, updates):
        if self.fail:
            raise SyncError('store unreachable')
        self.writes.append((match_id, updates))
        return {}

    def subscribe(self, match_id, callback):
        self.subscribed.append((match_id, callback))

    def unsubscribe(self, match_id):
        self.subscribed = [s for s in self.subscribed if s[0] != match_id]


def test_local_adapter_applies_dotted_paths():
    state = new_match('a', now=0, rng=random.Random(1))
    adapter = LocalSyncAdapter(state, clock=lambda: 777)
    seen = []
    adapter.add_listener(seen.append)

    adapter.apply_update({
        'player1.score': 12,
        'player2.last_seen': SERVER_TIMESTAMP,
        'status': 'playing',
    })
    assert state.player1.score == 12
    assert state.player2.last_seen == 777
    assert state.status == 'playing'
    assert seen == [state]


def test_local_adapter_rejects_unknown_path():
    adapter = LocalSyncAdapter(MatchState())
    with pytest.raises(KeyError):
        adapter.apply_update({'player1.cells': []})


def test_store_adapter_serializes_values():
    store = RecordingStore()
    adapter = StoreSyncAdapter(store, 'm1')
    grid = empty_board()
    grid[0][0] = 1
    piece = make_piece('T')
    adapter.apply_update({'player1.board': grid, 'player1.pieces': [piece, None], 'player1.score': 3})

    [(mid, payload)] = store.writes
    assert mid == 'm1'
    assert payload['player1.board'] == '1' + '0' * 63
    assert payload['player1.pieces'] == [{'instance_id': piece.instance_id, 'shape_id': 'T'}, None]
    assert payload['player1.score'] == 3


def test_store_adapter_rehydrates_snapshots():
    store = RecordingStore()
    adapter = StoreSyncAdapter(store, 'm1')
    received = []
    adapter.add_listener(received.append)
    adapter.start()

    raw = new_match('a', now=5, rng=random.Random(2)).to_dict()
    [(_, callback)] = store.subscribed
    callback(raw)
    [state] = received
    assert adapter.snapshot() is state
    assert all(p.cells for p in state.player1.pieces)

    adapter.close()
    assert store.subscribed == []


def test_failed_write_keeps_optimistic_state():
    store = RecordingStore(fail=True)
    adapter = StoreSyncAdapter(store, 'm1')
    state = new_match('a', now=0, rng=random.Random(3))
    state.status = 'playing'
    state.player1.pieces = [make_piece('1x1'), make_piece('1x1'), make_piece('1x1')]
    session = MatchSession(adapter, 'player1', 'a', state=state, clock=lambda: 100)

    assert session.place(0, 4, 4) is not None
    assert session.state.player1.board[4][4] == 1
    assert session.state.player1.pieces[0] is None


def test_failed_timeout_claim_is_retried():
    store = RecordingStore(fail=True)
    adapter = StoreSyncAdapter(store, 'm1')
    state = new_match('a', now=0, rng=random.Random(4))
    state.status = 'playing'
    state.player2.uid = 'b'
    state.player2.last_seen = 1
    session = MatchSession(adapter, 'player1', 'a', state=state, clock=lambda: 20_000)

    report = session.tick()
    assert report.claim == {'status': 'finished', 'winner': 'a'}
    assert session.state.status == 'playing'
    assert session.state.winner is None
    assert store.writes == []

    store.fail = False
    session.tick()
    assert store.writes == [('m1', {'status': 'finished', 'winner': 'a'})]
    assert session.state.status == 'finished'
    assert session.connection_degraded

    # a finished match no longer reports a degraded opponent
    session.tick()
    assert not session.connection_degraded

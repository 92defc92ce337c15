import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .board import Grid, decode_board, empty_board, encode_board
from .pieces import Piece, generate_batch, hydrate_pieces, serialize_pieces
from .rules import DEFAULT_RULES, FINISHED, PLAYING, ROLES, WAITING, Rules

# Fields a dotted update path may address
MATCH_FIELDS = ('status', 'winner', 'created_at')
PLAYER_FIELDS = ('uid', 'board', 'pieces', 'score', 'incoming_attack', 'locked_until', 'last_seen')

# Placeholder resolved to the writer's clock (the store's, for remote writes)
SERVER_TIMESTAMP = {'.sv': 'timestamp'}


@dataclass
class PlayerState:
    uid: Optional[str] = None
    board: Grid = field(default_factory=empty_board)
    pieces: List[Optional[Piece]] = field(default_factory=list)
    score: int = 0
    incoming_attack: Optional[dict] = None
    locked_until: int = 0
    last_seen: Optional[int] = None

    def is_frozen(self, now: int) -> bool:
        return now < (self.locked_until or 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'uid': self.uid,
            'board': encode_board(self.board),
            'pieces': serialize_pieces(self.pieces),
            'score': self.score,
            'incoming_attack': copy.deepcopy(self.incoming_attack),
            'locked_until': self.locked_until,
            'last_seen': self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PlayerState':
        data = data or {}
        return cls(
            uid=data.get('uid'),
            board=decode_board(data.get('board')),
            pieces=hydrate_pieces(data.get('pieces')),
            score=int(data.get('score') or 0),
            incoming_attack=copy.deepcopy(data.get('incoming_attack')),
            locked_until=int(data.get('locked_until') or 0),
            last_seen=data.get('last_seen'),
        )


@dataclass
class MatchState:
    player1: PlayerState = field(default_factory=PlayerState)
    player2: PlayerState = field(default_factory=PlayerState)
    status: str = WAITING
    winner: Optional[str] = None
    created_at: Optional[int] = None

    def player(self, role: str) -> PlayerState:
        if role not in ROLES:
            raise KeyError(role)
        return getattr(self, role)

    @property
    def is_finished(self) -> bool:
        return self.status == FINISHED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'player1': self.player1.to_dict(),
            'player2': self.player2.to_dict(),
            'status': self.status,
            'winner': self.winner,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchState':
        return cls(
            player1=PlayerState.from_dict(data.get('player1')),
            player2=PlayerState.from_dict(data.get('player2')),
            status=data.get('status') or WAITING,
            winner=data.get('winner'),
            created_at=data.get('created_at'),
        )


def split_path(path: str):
    """Validate a dotted update path and return (role or None, field)."""
    parts = path.split('.')
    if len(parts) == 1 and parts[0] in MATCH_FIELDS:
        return None, parts[0]
    if len(parts) == 2 and parts[0] in ROLES and parts[1] in PLAYER_FIELDS:
        return parts[0], parts[1]
    raise KeyError(path)


def is_server_timestamp(value: Any) -> bool:
    return isinstance(value, dict) and value == SERVER_TIMESTAMP


def apply_updates(state: MatchState, updates: Dict[str, Any], now: Optional[int] = None) -> MatchState:
    """Apply domain-valued dotted updates to ``state`` in place.

    ``SERVER_TIMESTAMP`` values are replaced with ``now``.
    """
    for path, value in updates.items():
        role, name = split_path(path)
        target = state.player(role) if role else state
        if is_server_timestamp(value):
            value = now
        elif name == 'board':
            value = decode_board(value) if isinstance(value, str) else [list(row) for row in value]
        elif name == 'pieces':
            value = list(value or [])
        setattr(target, name, copy.deepcopy(value) if isinstance(value, dict) else value)
    return state


def serialize_value(path: str, value: Any) -> Any:
    """Convert a domain value to its stored form (board string, piece records)."""
    _, name = split_path(path)
    if name == 'board' and value is not None and not isinstance(value, str):
        return encode_board(value)
    if name == 'pieces':
        return serialize_pieces(value)
    return value


def check_win(score: int, rules: Rules = DEFAULT_RULES) -> bool:
    return score >= rules.win_score


def new_player(uid: Optional[str], rng=None, rules: Rules = DEFAULT_RULES, with_pieces: bool = True,
               now: Optional[int] = None) -> PlayerState:
    return PlayerState(
        uid=uid,
        board=empty_board(rules.board_size),
        pieces=generate_batch(rules.tray_size, rng) if with_pieces else [],
        last_seen=now,
    )


def new_match(player1_uid: str, now: int, rng=None, rules: Rules = DEFAULT_RULES) -> MatchState:
    """A waiting match with fresh trays on both sides and an empty second seat."""
    return MatchState(
        player1=new_player(player1_uid, rng, rules, now=now),
        player2=new_player(None, rng, rules, now=now),
        status=WAITING,
        created_at=now,
    )


def new_solo_match(uid: str, now: int, rng=None, rules: Rules = DEFAULT_RULES) -> MatchState:
    # the opponent seat is a placeholder with no tray
    return MatchState(
        player1=new_player(uid, rng, rules, now=now),
        player2=new_player('bot', rng, rules, with_pieces=False, now=now),
        status=PLAYING,
        created_at=now,
    )

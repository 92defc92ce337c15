import copy
from typing import Any, Dict, List, Optional

from gridlock import db
from gridlock.models import Match, now_ms
from gridlock.services.engine.rules import FINISHED, PLAYING, WAITING
from gridlock.services.engine.state import is_server_timestamp, new_match, split_path

# status -> statuses it may move to
ALLOWED_TRANSITIONS = {
    WAITING: {PLAYING},
    PLAYING: {FINISHED},
    FINISHED: set(),
}

QUERYABLE_FIELDS = ('status', 'winner')

# compare-and-set retries before a write is refused as busy
MAX_WRITE_ATTEMPTS = 25


class StoreError(Exception):
    status_code = 400


class UnknownFieldError(StoreError):
    status_code = 400


class MatchNotFound(StoreError):
    status_code = 404


class TransitionRejected(StoreError):
    status_code = 409


def get_match(match_id: str) -> Match:
    match = db.session.get(Match, match_id)
    if not match:
        raise MatchNotFound(f'match {match_id} not found')
    return match


def create_match(record: Optional[Dict[str, Any]] = None, participant_id: Optional[str] = None) -> Match:
    """Insert a match from a full record, or a fresh waiting match for ``participant_id``."""
    now = now_ms()
    if record is None:
        record = new_match(participant_id, now).to_dict()
    status = record.get('status') or WAITING
    if status not in ALLOWED_TRANSITIONS:
        raise StoreError(f'invalid status {status!r}')
    player1 = _resolve_timestamps(record.get('player1') or {}, now)
    player2 = _resolve_timestamps(record.get('player2') or {}, now)
    created_at = record.get('created_at')
    match = Match(
        status=status,
        winner=record.get('winner'),
        player1=player1,
        player2=player2,
        created_at=now if created_at is None or is_server_timestamp(created_at) else int(created_at),
    )
    db.session.add(match)
    db.session.commit()
    return match


def _resolve_timestamps(player: Dict[str, Any], now: int) -> Dict[str, Any]:
    return {k: (now if is_server_timestamp(v) else v) for k, v in player.items()}


def _check_transition(match: Match, updates: Dict[str, Any]) -> None:
    if match.status == FINISHED:
        raise TransitionRejected(f'match {match.id} is finished')
    if 'status' in updates:
        new_status = updates['status']
        if new_status != match.status and new_status not in ALLOWED_TRANSITIONS.get(match.status, set()):
            raise TransitionRejected(f'cannot move match {match.id} from {match.status} to {new_status}')
    if 'winner' in updates and updates.get('status') != FINISHED:
        raise TransitionRejected('winner can only be recorded when finishing the match')


def _compare_and_set(match_id: str, version: int, values: Dict[str, Any]) -> bool:
    """Write ``values`` only if nobody committed since ``version`` was read."""
    values = dict(values, version=version + 1)
    written = (
        db.session.query(Match)
        .filter(Match.id == match_id, Match.version == version)
        .update(values, synchronize_session=False)
    )
    if written != 1:
        db.session.rollback()
        return False
    db.session.commit()
    return True


def apply_match_updates(match_id: str, updates: Dict[str, Any]) -> Match:
    """Apply dotted-path updates to one match.

    Player documents are stored whole, so each write is a read-modify-write of
    the row committed with a compare-and-set on ``Match.version``. A writer
    that loses the race re-reads and reapplies its own paths, which keeps
    fields written concurrently by the other participant.
    """
    if not isinstance(updates, dict) or not updates:
        raise StoreError('updates must be a non-empty object')
    for path in updates:
        try:
            split_path(path)
        except KeyError:
            raise UnknownFieldError(f'unknown field {path!r}')

    for _ in range(MAX_WRITE_ATTEMPTS):
        match = get_match(match_id)
        try:
            _check_transition(match, updates)
        except TransitionRejected:
            db.session.rollback()
            raise

        now = now_ms()
        values: Dict[str, Any] = {
            'player1': copy.deepcopy(match.player1 or {}),
            'player2': copy.deepcopy(match.player2 or {}),
        }
        for path, value in updates.items():
            if is_server_timestamp(value):
                value = now
            role, name = split_path(path)
            if role:
                values[role][name] = value
            elif name == 'created_at':
                values['created_at'] = int(value)
            else:
                values[name] = value
        if _compare_and_set(match_id, match.version, values):
            return get_match(match_id)
    raise TransitionRejected(f'match {match_id} is busy, retry the write')


def claim_slot(match_id: str, participant_id: str) -> Match:
    """Take the second seat of a waiting match.

    The versioned ``waiting -> playing`` write is the single atomic step; a
    concurrent joiner that loses it re-reads, sees ``playing`` and gets
    TransitionRejected. Both heartbeats are stamped with the claim time so
    the creator is not judged on how long the match sat waiting.
    """
    if not participant_id:
        raise StoreError('participant_id is required')
    for _ in range(MAX_WRITE_ATTEMPTS):
        match = get_match(match_id)
        if match.status != WAITING:
            db.session.rollback()
            raise TransitionRejected(f'match {match_id} is no longer waiting')
        now = now_ms()
        player1 = copy.deepcopy(match.player1 or {})
        player1['last_seen'] = now
        player2 = copy.deepcopy(match.player2 or {})
        player2['uid'] = participant_id
        player2['last_seen'] = now
        values = {'status': PLAYING, 'player1': player1, 'player2': player2}
        if _compare_and_set(match_id, match.version, values):
            return get_match(match_id)
    raise TransitionRejected(f'match {match_id} is busy, retry the claim')


def query_matches(field: str, value: Any, limit: int) -> List[Match]:
    if field not in QUERYABLE_FIELDS:
        raise UnknownFieldError(f'cannot query on {field!r}')
    column = getattr(Match, field)
    return (
        Match.query.filter(column == value)
        .order_by(Match.created_at.asc())
        .limit(limit)
        .all()
    )

import logging
import random
from typing import Optional, Tuple

from gridlock.services.engine.rules import WAITING
from gridlock.services.engine.state import SERVER_TIMESTAMP, new_match
from .store import ClaimRejected, HttpDocumentStore, SyncError
from .sync import wall_clock_ms

logger = logging.getLogger(__name__)


def find_match(store: HttpDocumentStore, participant_id: str,
               rng: Optional[random.Random] = None) -> Optional[Tuple[str, str]]:
    """Join the oldest waiting match, or open a new one.

    Returns ``(match_id, role)``, or None when the seat was lost to another
    joiner or the store could not be reached; callers simply try again.
    """
    try:
        waiting = store.query('status', WAITING, limit=1)
        if waiting:
            match = waiting[0]
            if (match.get('player1') or {}).get('uid') == participant_id:
                logger.info(f"[matchmaking] match={match['id']} rejoining as player1")
                return match['id'], 'player1'
            try:
                store.claim(match['id'], participant_id)
            except ClaimRejected as exc:
                logger.info(f"[matchmaking] match={match['id']} claim lost: {exc}")
                return None
            logger.info(f"[matchmaking] match={match['id']} joined as player2")
            return match['id'], 'player2'

        record = new_match(participant_id, wall_clock_ms(), rng).to_dict()
        record['player1']['last_seen'] = SERVER_TIMESTAMP
        record['player2']['last_seen'] = SERVER_TIMESTAMP
        record['created_at'] = SERVER_TIMESTAMP
        created = store.create(record=record)
        logger.info(f"[matchmaking] match={created['id']} created, waiting for an opponent")
        return created['id'], 'player1'
    except SyncError as exc:
        logger.error(f"[matchmaking] error={exc}")
        return None

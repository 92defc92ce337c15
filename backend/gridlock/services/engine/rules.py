from dataclasses import dataclass


@dataclass(frozen=True)
class Rules:
    """Fixed game constants, passed by reference into the engine."""
    board_size: int = 8
    tray_size: int = 3
    win_score: int = 100
    stalemate_penalty: int = 10
    stalemate_freeze_ms: int = 3000
    attack_threshold: int = 3
    attack_lock_ms: int = 7000
    liveness_warning_ms: int = 5000
    liveness_timeout_ms: int = 10000


DEFAULT_RULES = Rules()

# Match status values
WAITING = 'waiting'
PLAYING = 'playing'
FINISHED = 'finished'

ROLES = ('player1', 'player2')


def opponent_role(role: str) -> str:
    return 'player2' if role == 'player1' else 'player1'

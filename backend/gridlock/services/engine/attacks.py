import random
from typing import Dict, List, Optional

from .rules import DEFAULT_RULES, Rules

LOCK = 'lock'


def should_attack(lines_cleared: int, rules: Rules = DEFAULT_RULES) -> bool:
    return lines_cleared >= rules.attack_threshold


def make_attack(now: int, rules: Rules = DEFAULT_RULES) -> dict:
    return {'type': LOCK, 'duration': rules.attack_lock_ms, 'timestamp': now}


class TrayLocks:
    """Client-local slot locks, each valid while ``now < expires_at``.

    Re-arming a slot replaces its expiry instead of stacking a second lock.
    """

    def __init__(self, tray_size: int = DEFAULT_RULES.tray_size):
        self.tray_size = tray_size
        self._expires: Dict[int, int] = {}

    def arm(self, slot: int, expires_at: int) -> None:
        if not 0 <= slot < self.tray_size:
            raise ValueError(f"slot {slot} out of range")
        self._expires[slot] = expires_at

    def is_locked(self, slot: int, now: int) -> bool:
        expires_at = self._expires.get(slot)
        if expires_at is None:
            return False
        if now >= expires_at:
            del self._expires[slot]
            return False
        return True

    def active(self, now: int) -> Dict[int, int]:
        """Slot -> expires_at for locks still in force; drops expired ones."""
        for slot in [s for s, exp in self._expires.items() if now >= exp]:
            del self._expires[slot]
        return dict(self._expires)

    def locked_slots(self, now: int) -> List[int]:
        return sorted(self.active(now))

    def clear(self) -> None:
        self._expires.clear()


def apply_incoming_attack(
    attack: Optional[dict],
    locks: TrayLocks,
    now: int,
    rng: Optional[random.Random] = None,
    rules: Rules = DEFAULT_RULES,
) -> Optional[int]:
    """Install a lock for an observed incoming attack.

    Returns the locked slot, or None when the attack is not a lock. The caller
    is responsible for acknowledging the attack (clearing the stored field).
    """
    if not attack or attack.get('type') != LOCK:
        return None
    rng = rng or random
    slot = rng.randrange(locks.tray_size)
    duration = attack.get('duration') or rules.attack_lock_ms
    locks.arm(slot, now + int(duration))
    return slot

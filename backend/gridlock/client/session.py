"""One participant's view of a match.

MatchSession owns the acting player's seat: it resolves placements, applies
the result optimistically, pushes it through the synchronization adapter,
acknowledges incoming attacks and runs the heartbeat/opponent-timeout timers.
Writes are best-effort; a failed write is logged and play continues on the
local state.
"""
import logging
import random
import threading
from typing import Any, Callable, Dict, Optional

from config import Config
from gridlock.services.engine.attacks import TrayLocks, apply_incoming_attack
from gridlock.services.engine.liveness import LivenessReport, check_opponent, heartbeat_update
from gridlock.services.engine.pieces import generate_batch
from gridlock.services.engine.rules import DEFAULT_RULES, PLAYING, WAITING, Rules
from gridlock.services.engine.state import (
    SERVER_TIMESTAMP,
    MatchState,
    apply_updates,
    new_solo_match,
)
from gridlock.services.engine.turns import TurnResult, build_turn_updates, resolve_turn
from .store import HttpDocumentStore, SyncError
from .sync import LocalSyncAdapter, StoreSyncAdapter, SyncAdapter, wall_clock_ms

logger = logging.getLogger(__name__)


class MatchSession:

    def __init__(
        self,
        adapter: SyncAdapter,
        role: str,
        participant_id: str,
        state: Optional[MatchState] = None,
        rules: Rules = DEFAULT_RULES,
        clock: Callable[[], int] = wall_clock_ms,
        rng: Optional[random.Random] = None,
        heartbeat_interval_ms: int = Config.HEARTBEAT_INTERVAL_MS,
        check_interval_ms: int = Config.LIVENESS_CHECK_INTERVAL_MS,
    ):
        self.adapter = adapter
        self.role = role
        self.participant_id = participant_id
        self.rules = rules
        self.clock = clock
        self.rng = rng or random.Random()
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.check_interval_ms = check_interval_ms

        self.state = state if state is not None else adapter.snapshot()
        self.locks = TrayLocks(rules.tray_size)
        self.connection_degraded = False
        self._last_heartbeat: Optional[int] = None
        self._acked_attack_ts: Optional[Any] = None
        self._claimed_timeout = False
        self._stopped = threading.Event()
        self._lock = threading.RLock()

        adapter.add_listener(self.on_snapshot)

    @property
    def multiplayer(self) -> bool:
        return self.adapter.multiplayer

    @property
    def me(self):
        return self.state.player(self.role)

    def is_frozen(self, now: Optional[int] = None) -> bool:
        return self.me.is_frozen(self.clock() if now is None else now)

    def is_slot_locked(self, slot: int, now: Optional[int] = None) -> bool:
        return self.locks.is_locked(slot, self.clock() if now is None else now)

    # ---- turns ----

    def _generate(self, n: int):
        return generate_batch(n, self.rng)

    def place(self, slot: int, x: int, y: int) -> Optional[TurnResult]:
        """Drop the piece from ``slot`` with its top-left cell at column ``x``, row ``y``.

        Returns None (and changes nothing) when the match is not running, the
        board is frozen, the slot is locked or the placement is illegal.
        """
        with self._lock:
            now = self.clock()
            if self.state is None or self.state.status != PLAYING:
                return None
            me = self.me
            if me.is_frozen(now) or self.locks.is_locked(slot, now):
                return None
            result = resolve_turn(me.board, me.pieces, slot, x, y, self.rules, self._generate)
            if result is None:
                return None

            updates = build_turn_updates(
                self.role, me, result, self.participant_id, now,
                multiplayer=self.multiplayer, rules=self.rules,
            )
            logger.info(
                f"[turn] role={self.role} slot={slot} at=({x},{y}) lines={result.lines_cleared} "
                f"delta={result.score_delta} refilled={result.refilled} stalemate={result.stalemate}"
            )
            if result.stalemate and 'winner' not in updates:
                logger.info(f"[stalemate] role={self.role} board wiped, frozen until {updates[f'{self.role}.locked_until']}")
            if any(path.endswith('.incoming_attack') for path in updates):
                logger.info(f"[attack-armed] role={self.role} lines={result.lines_cleared}")
            if 'winner' in updates:
                logger.info(f"[win] role={self.role} score={updates[f'{self.role}.score']}")
            self._commit(updates, now)
            return result

    def _commit(self, updates: Dict[str, Any], now: int) -> bool:
        if self.multiplayer:
            # optimistic: the acting client plays on its own view straight away
            apply_updates(self.state, updates, now=now)
        try:
            self.adapter.apply_update(updates)
        except SyncError as exc:
            logger.warning(f"[sync-error] role={self.role} paths={sorted(updates)} error={exc}")
            return False
        return True

    # ---- incoming snapshots ----

    def on_snapshot(self, snapshot: MatchState) -> None:
        with self._lock:
            if snapshot is not self.state:
                self._merge(snapshot)
            self._handle_incoming_attack()

    def _merge(self, snapshot: MatchState) -> None:
        if self.state is None:
            self.state = snapshot
            return
        # own board, tray and timers are written only by this client
        mine = self.me
        theirs = snapshot.player(self.role)
        theirs.board = mine.board
        theirs.pieces = mine.pieces
        theirs.score = mine.score
        theirs.locked_until = mine.locked_until
        self.state = snapshot

    def _handle_incoming_attack(self) -> None:
        attack = self.me.incoming_attack
        if not attack:
            return
        if self._acked_attack_ts is not None and attack.get('timestamp') == self._acked_attack_ts:
            return
        now = self.clock()
        slot = apply_incoming_attack(attack, self.locks, now, self.rng, self.rules)
        self._acked_attack_ts = attack.get('timestamp')
        if slot is not None:
            logger.info(f"[attack-ack] role={self.role} slot={slot} until={now + int(attack.get('duration') or self.rules.attack_lock_ms)}")
        self._commit({f'{self.role}.incoming_attack': None}, now)

    # ---- liveness ----

    def tick(self, now: Optional[int] = None) -> LivenessReport:
        """One timer step: heartbeat when due, then the opponent timeout check."""
        with self._lock:
            now = self.clock() if now is None else now
            if not self.multiplayer or self.state is None or self.state.status != PLAYING:
                self.connection_degraded = False
                return LivenessReport()

            if self._last_heartbeat is None or now - self._last_heartbeat >= self.heartbeat_interval_ms:
                self._last_heartbeat = now
                self._commit(heartbeat_update(self.role, SERVER_TIMESTAMP), now)

            report = check_opponent(self.state, self.role, self.participant_id, now, self.rules)
            if report.degraded and not self.connection_degraded:
                logger.warning(f"[liveness-warn] role={self.role} opponent silent for {report.silence_ms}ms")
            self.connection_degraded = report.degraded
            if report.claim and not self._claimed_timeout:
                self._claimed_timeout = True
                logger.info(f"[liveness-claim] role={self.role} opponent timed out after {report.silence_ms}ms")
                status, winner = self.state.status, self.state.winner
                if not self._commit(report.claim, now):
                    # unconfirmed claim: keep playing and claim again next tick
                    self.state.status, self.state.winner = status, winner
                    self._claimed_timeout = False
            return report

    def _timer_loop(self) -> None:
        interval = self.check_interval_ms / 1000.0
        while not self._stopped.is_set():
            status = self.state.status if self.state is not None else WAITING
            if status not in (WAITING, PLAYING):
                break
            try:
                self.tick()
            except Exception:
                logger.exception(f"[timer-error] role={self.role} tick failed")
            self.adapter.sleep(interval)

    def start_timers(self):
        """Run heartbeat and opponent checks in the background (multiplayer only)."""
        if not self.multiplayer:
            return None
        self._stopped.clear()
        return self.adapter.start_background_task(self._timer_loop)

    def stop(self) -> None:
        self._stopped.set()
        self.adapter.close()


def start_solo(participant_id: str, rng: Optional[random.Random] = None,
               clock: Callable[[], int] = wall_clock_ms, rules: Rules = DEFAULT_RULES) -> MatchSession:
    rng = rng or random.Random()
    state = new_solo_match(participant_id, clock(), rng, rules)
    adapter = LocalSyncAdapter(state, clock)
    return MatchSession(adapter, 'player1', participant_id, state=state, rules=rules, clock=clock, rng=rng)


def start_multiplayer(store: HttpDocumentStore, match_id: str, role: str, participant_id: str,
                      rng: Optional[random.Random] = None, clock: Callable[[], int] = wall_clock_ms,
                      rules: Rules = DEFAULT_RULES, run_timers: bool = True) -> MatchSession:
    adapter = StoreSyncAdapter(store, match_id)
    state = adapter.fetch()
    session = MatchSession(adapter, role, participant_id, state=state, rules=rules, clock=clock, rng=rng)
    adapter.start()
    if run_timers:
        session.start_timers()
    return session

"""Synchronization adapters.

Both adapters take the same vocabulary: a mapping of dotted field paths
(``status``, ``player1.score``, ``player2.incoming_attack`` ...) to domain
values (board grids, Piece lists). The local adapter mutates an in-memory
MatchState; the store adapter serializes the values and writes them to the
match store, and turns pushed snapshots back into MatchState objects.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from gridlock.services.engine.state import MatchState, apply_updates, serialize_value
from .store import HttpDocumentStore, SyncError

logger = logging.getLogger(__name__)

Listener = Callable[[MatchState], None]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class SyncAdapter:
    multiplayer = False

    def __init__(self):
        self._listeners: List[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, state: MatchState) -> None:
        for listener in list(self._listeners):
            listener(state)

    def apply_update(self, updates: Dict[str, Any]) -> None:
        raise NotImplementedError

    def snapshot(self) -> Optional[MatchState]:
        raise NotImplementedError

    def start_background_task(self, target, *args, **kwargs):
        thread = threading.Thread(target=target, args=args, kwargs=kwargs, daemon=True)
        thread.start()
        return thread

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def close(self) -> None:
        self._listeners.clear()


class LocalSyncAdapter(SyncAdapter):
    """Single-player: one in-process mutator, no store, no latency."""

    def __init__(self, state: MatchState, clock: Callable[[], int] = wall_clock_ms):
        super().__init__()
        self.state = state
        self.clock = clock
        self._lock = threading.Lock()

    def apply_update(self, updates: Dict[str, Any]) -> None:
        with self._lock:
            apply_updates(self.state, updates, now=self.clock())
        self._notify(self.state)

    def snapshot(self) -> MatchState:
        return self.state


class StoreSyncAdapter(SyncAdapter):
    """Multiplayer: partial writes to the match store, snapshots pushed back."""

    multiplayer = True

    def __init__(self, store: HttpDocumentStore, match_id: str):
        super().__init__()
        self.store = store
        self.match_id = match_id
        self._latest: Optional[MatchState] = None

    def start(self) -> None:
        self.store.subscribe(self.match_id, self._on_snapshot)

    def _on_snapshot(self, raw: Dict[str, Any]) -> None:
        # pieces arrive as {instance_id, shape_id}; cells are rebuilt from the catalog
        self._latest = MatchState.from_dict(raw)
        self._notify(self._latest)

    def apply_update(self, updates: Dict[str, Any]) -> None:
        payload = {path: serialize_value(path, value) for path, value in updates.items()}
        try:
            self.store.update(self.match_id, payload)
        except SyncError:
            raise
        except Exception as exc:
            raise SyncError(f"update of match {self.match_id} failed: {exc}") from exc

    def snapshot(self) -> Optional[MatchState]:
        return self._latest

    def fetch(self) -> MatchState:
        """Point read, used to seed a session before the first push arrives."""
        self._latest = MatchState.from_dict(self.store.get(self.match_id))
        return self._latest

    def start_background_task(self, target, *args, **kwargs):
        return self.store.start_background_task(target, *args, **kwargs)

    def sleep(self, seconds: float) -> None:
        self.store.sleep(seconds)

    def close(self) -> None:
        super().close()
        self.store.unsubscribe(self.match_id)

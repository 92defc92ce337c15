import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import requests
import socketio
from socketio.exceptions import ConnectionError as PushConnectionError

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Any]


class SyncError(Exception):
    """A store read or write failed."""


class ConflictError(SyncError):
    """The store refused a write (finished match, illegal status change)."""


class ClaimRejected(ConflictError):
    """Another joiner took the seat first."""


class HttpDocumentStore:
    """Client for the match store: REST for reads/writes, Socket.IO for pushes.

    ``http`` is anything with requests-style ``get/post/patch/delete``; it
    defaults to a ``requests.Session`` so the identity cookie is kept.
    """

    def __init__(self, base_url: str, http=None, sio: Optional[socketio.Client] = None,
                 namespace: str = '/ws', timeout: float = 5.0):
        self.base_url = base_url.rstrip('/')
        self.http = http if http is not None else requests.Session()
        self.sio = sio if sio is not None else socketio.Client(reconnection=True)
        self.namespace = namespace
        self.timeout = timeout
        self._subscribers: Dict[str, List[Callable[[Snapshot], None]]] = defaultdict(list)
        self._handlers_bound = False

    # ---- HTTP helpers ----

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = getattr(self.http, method)(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise SyncError(f"{method.upper()} {path} failed: {exc}") from exc
        if resp.status_code == 409:
            raise ConflictError(self._error_message(resp))
        if resp.status_code >= 400:
            raise SyncError(f"{method.upper()} {path} -> {resp.status_code}: {self._error_message(resp)}")
        return resp.json()

    @staticmethod
    def _error_message(resp) -> str:
        try:
            return (resp.json() or {}).get('error') or ''
        except ValueError:
            return ''

    # ---- identity ----

    def sign_in(self) -> str:
        data = self._request('post', '/session')
        return data['participant']['id']

    def sign_out(self) -> None:
        self._request('delete', '/session')

    # ---- document operations ----

    def create(self, record: Optional[Snapshot] = None, participant_id: Optional[str] = None) -> Snapshot:
        body: Dict[str, Any] = {}
        if record is not None:
            body['match'] = record
        if participant_id:
            body['participant_id'] = participant_id
        return self._request('post', '/api/matches', json=body)

    def get(self, match_id: str) -> Snapshot:
        return self._request('get', f'/api/matches/{match_id}')

    def update(self, match_id: str, updates: Dict[str, Any]) -> Snapshot:
        return self._request('patch', f'/api/matches/{match_id}', json={'updates': updates})

    def query(self, field: str, value: Any, limit: int = 1) -> List[Snapshot]:
        return self._request('get', '/api/matches', params={field: value, 'limit': limit})

    def claim(self, match_id: str, participant_id: str) -> Snapshot:
        try:
            return self._request('post', f'/api/matches/{match_id}/claim',
                                 json={'participant_id': participant_id})
        except ConflictError as exc:
            raise ClaimRejected(str(exc)) from exc

    # ---- push subscription ----

    def _dispatch_snapshot(self, data: Snapshot) -> None:
        for callback in list(self._subscribers.get((data or {}).get('id'), [])):
            try:
                callback(data)
            except Exception:
                logger.exception(f"[snapshot-handler] match={data.get('id')} callback failed")

    def _ensure_connected(self) -> None:
        if not self._handlers_bound:
            self.sio.on('match_snapshot', self._dispatch_snapshot, namespace=self.namespace)
            self.sio.on('error', lambda data: logger.warning(f"[sync-error] push: {data}"),
                        namespace=self.namespace)
            self._handlers_bound = True
        if not self.sio.connected:
            headers = {}
            cookies = getattr(self.http, 'cookies', None)
            if cookies:
                headers['Cookie'] = '; '.join(f'{k}={v}' for k, v in cookies.items())
            try:
                self.sio.connect(self.base_url, namespaces=[self.namespace], headers=headers)
            except PushConnectionError as exc:
                raise SyncError(f"push channel unavailable: {exc}") from exc

    def subscribe(self, match_id: str, callback: Callable[[Snapshot], None]) -> None:
        self._ensure_connected()
        self._subscribers[match_id].append(callback)
        self.sio.emit('subscribe_match', {'match_id': match_id}, namespace=self.namespace)

    def unsubscribe(self, match_id: str) -> None:
        self._subscribers.pop(match_id, None)
        if self.sio.connected:
            self.sio.emit('unsubscribe_match', {'match_id': match_id}, namespace=self.namespace)

    def close(self) -> None:
        self._subscribers.clear()
        if self.sio.connected:
            self.sio.disconnect()

    # ---- timers ----

    def start_background_task(self, target, *args, **kwargs):
        return self.sio.start_background_task(target, *args, **kwargs)

    def sleep(self, seconds: float) -> None:
        self.sio.sleep(seconds)

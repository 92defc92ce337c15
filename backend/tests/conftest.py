import os
import sys
import pytest

# Ensure the backend root (containing the `gridlock` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from gridlock import create_app, db, socketio
from gridlock.client.store import HttpDocumentStore

BASE_URL = 'http://testserver'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    HEARTBEAT_INTERVAL_MS = 1000
    LIVENESS_CHECK_INTERVAL_MS = 500
    MATCH_QUERY_LIMIT_MAX = 20


class _Response:
    def __init__(self, resp):
        self.status_code = resp.status_code
        self._resp = resp

    def json(self):
        data = self._resp.get_json()
        if data is None:
            raise ValueError('response is not JSON')
        return data


class FlaskHttp:
    """requests-style facade over a Flask test client."""

    def __init__(self, test_client):
        self.test_client = test_client

    def _call(self, method, url, params=None, json=None, timeout=None):
        path = url[len(BASE_URL):] if url.startswith(BASE_URL) else url
        kwargs = {'query_string': params}
        if json is not None:
            kwargs['json'] = json
        return _Response(getattr(self.test_client, method)(path, **kwargs))

    def get(self, url, **kwargs):
        return self._call('get', url, **kwargs)

    def post(self, url, **kwargs):
        return self._call('post', url, **kwargs)

    def patch(self, url, **kwargs):
        return self._call('patch', url, **kwargs)

    def delete(self, url, **kwargs):
        return self._call('delete', url, **kwargs)


class PushHub:
    """Delivers every written snapshot to the subscribed loopback stores."""

    def __init__(self):
        self.stores = []

    def broadcast(self, snapshot):
        for store in list(self.stores):
            if not store.offline:
                store._dispatch_snapshot(snapshot)


class LoopbackStore(HttpDocumentStore):
    """HTTP store client whose push channel is the in-process hub."""

    def __init__(self, hub, http):
        super().__init__(BASE_URL, http=http, sio=None)
        self.hub = hub
        self.offline = False
        hub.stores.append(self)

    def subscribe(self, match_id, callback):
        self._subscribers[match_id].append(callback)

    def unsubscribe(self, match_id):
        self._subscribers.pop(match_id, None)

    def update(self, match_id, updates):
        snapshot = super().update(match_id, updates)
        self.hub.broadcast(snapshot)
        return snapshot

    def claim(self, match_id, participant_id):
        snapshot = super().claim(match_id, participant_id)
        self.hub.broadcast(snapshot)
        return snapshot

    def close(self):
        self._subscribers.clear()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import gridlock.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def file_app(tmp_path):
    """App over a file SQLite database, for tests that write from several threads."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'gridlock.db'}"

    application = create_app(FileConfig)
    with application.app_context():
        import gridlock.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def hub():
    return PushHub()


@pytest.fixture()
def make_store(flask_app, hub):
    """Factory for per-participant store clients sharing one push hub."""
    def _make():
        return LoopbackStore(hub, FlaskHttp(flask_app.test_client()))
    return _make

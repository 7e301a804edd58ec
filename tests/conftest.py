"""Shared fixtures: temporary SQLite files stand in for both backends."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from app import build_services, create_app
from config import Settings
from gateway import PersistenceGateway
from local_store import LocalStore
from remote_store import RemoteStore


class FailingRemoteStore:
    """Remote store whose every operation raises, like a dropped network."""

    name = "remote"

    def __init__(self):
        self.calls = []

    def __getattr__(self, op):
        def fail(*args, **kwargs):
            self.calls.append(op)
            raise ConnectionError(f"remote down: {op}")

        return fail

    def dispose(self):
        pass


@pytest.fixture
def local_url(tmp_path):
    return f"sqlite:///{tmp_path / 'local.db'}"


@pytest.fixture
def remote_url(tmp_path):
    return f"sqlite:///{tmp_path / 'remote.db'}"


@pytest.fixture
def local_store(local_url):
    store = LocalStore(local_url)
    yield store
    store.dispose()


@pytest.fixture
def remote_store(remote_url):
    store = RemoteStore(remote_url, timeout=5)
    yield store
    store.dispose()


@pytest.fixture
def gateway(local_store, remote_store):
    gw = PersistenceGateway(local_store, remote=remote_store, timeout=5)
    yield gw
    gw.close()


@pytest.fixture
def local_gateway(local_store):
    gw = PersistenceGateway(local_store)
    yield gw
    gw.close()


@pytest.fixture
def failing_remote():
    return FailingRemoteStore()


@pytest.fixture
def failing_gateway(local_store, failing_remote):
    gw = PersistenceGateway(local_store, remote=failing_remote, timeout=1)
    yield gw
    gw.close()


@pytest.fixture(params=["remote", "local", "fallback"])
def any_gateway(request):
    """The same behaviour is expected whichever backend ends up serving."""
    return request.getfixturevalue({
        "remote": "gateway",
        "local": "local_gateway",
        "fallback": "failing_gateway",
    }[request.param])


@pytest.fixture
def services(any_gateway):
    return build_services(any_gateway)


@pytest.fixture
def settings(local_url, remote_url):
    return Settings(
        remote_url=remote_url,
        local_url=local_url,
        remote_timeout=5,
        ratelimit_enabled=False,
        testing=True,
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    app.extensions["noospace"]["gateway"].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def local_only_app(local_url):
    app = create_app(Settings(local_url=local_url, ratelimit_enabled=False, testing=True))
    yield app
    app.extensions["noospace"]["gateway"].close()

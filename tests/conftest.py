"""Shared fixtures for notestore tests."""

import pytest
from fastapi.testclient import TestClient

from notestore.config import Settings
from notestore.main import create_app
from notestore.notifier import ObserverRegistry
from notestore.store import DocumentStore

ROOT_NAME = 'Vault'


class RecordingObserver:
    """Sink that keeps every event it is handed."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.fixture
def storage_root(tmp_path):
    """Empty storage root with symlinks already resolved.

    Returns:
        pathlib.Path of the root directory.
    """
    root = tmp_path.resolve() / 'vault'
    root.mkdir()
    return root


@pytest.fixture
def registry():
    return ObserverRegistry()


@pytest.fixture
def observer(registry):
    """Observer subscribed to the test collection."""
    recorder = RecordingObserver()
    registry.connect('test-observer', recorder, [ROOT_NAME])
    return recorder


@pytest.fixture
def store(storage_root, registry):
    return DocumentStore(str(storage_root), ROOT_NAME, registry)


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        volume_path=str(tmp_path.resolve() / 'vault'),
        root_name=ROOT_NAME,
        log_file='',
    )


@pytest.fixture
def client(app_settings):
    """HTTP client running the app's startup and shutdown.

    Yields:
        fastapi.testclient.TestClient bound to a fresh app.
    """
    with TestClient(create_app(app_settings)) as test_client:
        yield test_client

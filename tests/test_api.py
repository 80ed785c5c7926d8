"""Tests for the HTTP and websocket surface."""

import asyncio
import os
from types import SimpleNamespace

from fastapi.testclient import TestClient

from notestore.main import create_app
from notestore.notifier import ObserverRegistry
from notestore.routers.events import websocket_events
from notestore.schemas import ChangeEvent, ChangeType


def _write(client, path, markdown):
    return client.post('/markdown', json={'path': path, 'markdown': markdown})


class TestMarkdownRoutes:
    """Tests for the /markdown routes."""

    def test_create_update_scenario(self, client):
        """Test 201 on create and 200 on update, then reading back."""
        response = _write(client, '/Vault/notes/a.md', 'hello')
        assert response.status_code == 201
        assert response.json()['filename'] == '/Vault/notes/a.md'
        assert response.json()['created'] is True

        response = _write(client, '/Vault/notes/a.md', 'world')
        assert response.status_code == 200
        assert response.json()['created'] is False

        response = client.get('/markdown/content', params={'path': '/Vault/notes/a.md'})
        assert response.status_code == 200
        body = response.json()
        assert body['content'] == 'world'
        assert body['size'] == 5
        assert 'lastModified' in body

        response = client.get('/markdown/names', params={'dirPath': '/Vault/notes'})
        assert response.json() == ['a.md']

    def test_update_route(self, client):
        """Test that PUT only updates existing notes."""
        response = client.put('/markdown', json={'path': '/Vault/a.md', 'markdown': 'x'})
        assert response.status_code == 404

        _write(client, '/Vault/a.md', 'x')
        response = client.put('/markdown', json={'path': '/Vault/a.md', 'markdown': 'y'})
        assert response.status_code == 200

    def test_tree_and_file_reads(self, client):
        """Test the tree shape and the file variant of GET /markdown."""
        _write(client, '/Vault/notes/a.md', 'hello')
        _write(client, '/Vault/top.md', 'top')

        tree = client.get('/markdown').json()
        assert tree == [
            {'path': '/Vault/notes', 'name': 'notes', 'children': [
                {'path': '/Vault/notes/a.md', 'name': 'a.md'},
            ]},
            {'path': '/Vault/top.md', 'name': 'top.md'},
        ]

        note = client.get('/markdown', params={'path': '/Vault/top.md'}).json()
        assert note['markdown'] == 'top'
        assert note['name'] == 'top.md'

    def test_error_statuses(self, client):
        """Test how each failure kind is reported."""
        _write(client, '/Vault/notes/a.md', 'hello')

        response = client.get('/markdown', params={'path': '../../etc/passwd'})
        assert response.status_code == 400
        assert response.json()['code'] == 'invalid_path'

        assert client.get('/markdown', params={'path': '/Vault/missing'}).status_code == 404
        assert client.get('/markdown/content', params={'path': '/Vault/notes'}).status_code == 400
        assert client.get('/markdown/names', params={'dirPath': '/Vault/notes/a.md'}).status_code == 400

        response = client.post('/markdown/folder', json={'path': '/Vault/notes/a.md'})
        assert response.status_code == 409
        assert response.json()['reason'] == 'file_exists'

        response = client.delete('/markdown', params={'path': '/Vault', 'recursive': 'true'})
        assert response.status_code == 403

        response = client.delete('/markdown', params={'path': '/Vault/notes'})
        assert response.status_code == 409
        assert response.json()['code'] == 'not_empty'

    def test_missing_body_field(self, client):
        """Test that request bodies are validated."""
        response = client.post('/markdown', json={'path': '/Vault/a.md'})

        assert response.status_code == 422

    def test_folder_delete_move_rename(self, client):
        """Test the remaining mutations end to end."""
        assert client.post('/markdown/folder', json={'path': '/Vault/new'}).status_code == 201
        _write(client, '/Vault/notes/a.md', 'world')

        response = client.post('/markdown/move', json={'source': '/Vault/notes/a.md', 'target': '/Vault/notes/b.md'})
        assert response.status_code == 200
        assert response.json() == {
            'message': 'Moved successfully',
            'path': '/Vault/notes/b.md',
            'oldPath': '/Vault/notes/a.md',
        }

        _write(client, '/Vault/notes/a.md', 'again')
        response = client.post('/markdown/move', json={'source': '/Vault/notes/a.md', 'target': '/Vault/notes/b.md'})
        assert response.status_code == 409
        assert response.json()['error'] == 'Name conflict'

        response = client.post('/markdown/rename', json={'path': '/Vault/notes/a.md', 'newName': 'c.md'})
        assert response.json()['path'] == '/Vault/notes/c.md'

        response = client.delete('/markdown', params={'path': '/Vault/notes', 'recursive': 'true'})
        assert response.status_code == 200
        assert response.json()['isDirectory'] is True
        assert client.get('/markdown/names').json() == ['new']


def test_health(client):
    """Test the health check."""
    body = client.get('/health').json()

    assert body['status'] == 'ok'
    assert 'timestamp' in body


def test_websocket_receives_change_events(client):
    """Test that a connected observer sees mutations as they happen."""
    with client.websocket_connect('/ws') as ws:
        _write(client, '/Vault/notes/a.md', 'hello')
        created = ws.receive_json()
        _write(client, '/Vault/notes/a.md', 'world')
        updated = ws.receive_json()

    assert created['collection'] == 'Vault'
    assert created['changeType'] == 'created'
    assert created['path'] == '/Vault/notes/a.md'
    assert updated['changeType'] == 'updated'


class _FailingWebSocket:
    """WebSocket stand-in whose sends always fail."""

    def __init__(self, registry, settings):
        self.app = SimpleNamespace(state=SimpleNamespace(registry=registry, settings=settings))
        self.registry = registry
        self.close_codes = []

    async def accept(self):
        self.registry.publish(
            ChangeEvent(collection='Vault', change_type=ChangeType.CREATED, path='/Vault/a.md')
        )

    async def send_json(self, data):
        raise RuntimeError('transport gone')

    async def receive_text(self):
        await asyncio.Event().wait()

    async def close(self, code=1000):
        self.close_codes.append(code)


def test_websocket_closed_after_failed_send(app_settings):
    """Test that a failed send closes the socket and drops the observer."""
    registry = ObserverRegistry()
    websocket = _FailingWebSocket(registry, app_settings)

    asyncio.run(asyncio.wait_for(websocket_events(websocket), timeout=2))

    assert websocket.close_codes == [1011]
    assert len(registry) == 0


def test_storage_root_created_on_startup(app_settings):
    """Test that the app creates a missing storage root."""
    assert not os.path.exists(app_settings.volume_path)
    with TestClient(create_app(app_settings)):
        assert os.path.isdir(app_settings.volume_path)

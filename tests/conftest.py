import pytest

from planning_roulette import create_app, socketio
from planning_roulette.extensions import sessions


@pytest.fixture
def app_config():
    return {
        "TESTING": True,
        "SOCKETIO_ASYNC_MODE": "threading",
        "SPIN_DELAY_SECONDS": 0,
        "SINGLE_ACTIVE_SESSION": True,
        "AUTO_CREATE_ON_JOIN": False,
        "DELETE_EMPTY_SESSIONS": False,
    }


@pytest.fixture
def app(app_config):
    return create_app(app_config)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def machine(app):
    return sessions.machine


@pytest.fixture
def socket_client(app):
    """Factory for connected Socket.IO test clients; all are disconnected on teardown."""
    created = []

    def _make():
        sc = socketio.test_client(app)
        assert sc.is_connected()
        created.append(sc)
        return sc

    yield _make
    for sc in created:
        if sc.is_connected():
            sc.disconnect()


@pytest.fixture
def session_id(client):
    resp = client.post("/api/sessions", json={"creatorName": "Alice"})
    assert resp.status_code == 200
    return resp.get_json()["sessionId"]


def received(sc, name):
    """Payloads of every `name` event the client got since the last call."""
    return [(msg["args"][0] if msg["args"] else None) for msg in sc.get_received() if msg["name"] == name]


def payloads(messages, name):
    return [(msg["args"][0] if msg["args"] else None) for msg in messages if msg["name"] == name]

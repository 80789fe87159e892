import os
import sys
import time
import pytest

# Ensure the backend root (containing the `farkle` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from farkle import create_app, db, socketio


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ROOM_NAMES = ['Table 1', 'Table 2', 'Table 3']
    MAX_PLAYERS = 5
    MIN_PLAYERS = 2
    WIN_SCORE = 10000
    BUST_DELAY_SEC = 0.2
    ROOM_RESET_GRACE_SEC = 0.2
    # Idle-turn and seat-expiry timers stay off unless a test turns them on
    TURN_REMINDER_SEC = 0
    TURN_TIMEOUT_SEC = 0
    SEAT_EXPIRY_SEC = 0
    ROOM_RULES = {}
    BLOCKED_IPS = []


class ScriptedDice:
    """Stands in for the session RNG; hands out faces in order."""

    def __init__(self, *faces):
        self.faces = list(faces)

    def queue(self, *faces):
        self.faces.extend(faces)

    def randint(self, low, high):
        value = self.faces.pop(0)
        assert low <= value <= high
        return value


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import farkle.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def gateway(flask_app):
    return flask_app.extensions['farkle_gateway']


@pytest.fixture()
def scripted_dice():
    return ScriptedDice


@pytest.fixture()
def connect(flask_app):
    """Factory for Socket.IO test clients on /ws; all are disconnected afterwards."""
    clients = []

    def _connect():
        test_client = socketio.test_client(flask_app, namespace='/ws')
        test_client.get_received('/ws')  # flush the initial room_list
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        if test_client.is_connected('/ws'):
            test_client.disconnect(namespace='/ws')


def events(test_client, name):
    return [pkt['args'][0] for pkt in test_client.get_received('/ws') if pkt['name'] == name]


def wait_for(test_client, name, predicate=lambda payload: True, timeout=3.0):
    """Poll a client's queue until an event matching predicate arrives."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        for payload in events(test_client, name):
            if predicate(payload):
                return payload
        time.sleep(0.05)
    return None

import os
import random
import sys
import pytest

# Ensure the backend root (containing the `chestquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from chestquiz import create_app, db, socketio
from chestquiz.services.games.constants import TEAMS_MASTER_DATA
from chestquiz.services.games.content import QuizContent
from chestquiz.services.games.sessions import clear_registry
from chestquiz.services.games.state import SessionState


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = []
    QUESTION_DURATION_SEC = 30
    MAX_TEAMS = 8
    ACTION_TIMEOUT_SEC = 5


class NoShuffle(random.Random):
    """Deals chests in table order."""

    def shuffle(self, x, *args, **kwargs):
        return None


def make_content(n_questions, with_final=True):
    data = {
        'game_name': 'Pub Night',
        'questions': [{'q': f'Question {i}?', 'a': f'Answer {i}'} for i in range(1, n_questions + 1)],
    }
    if with_final:
        data['final_question'] = {'q': 'Final?', 'a': 'Final answer', 'url': 'https://example.org/final'}
    return data


def make_state(n_teams=4, n_questions=8, code='123456', host_ref='1'):
    content = QuizContent.from_dict(make_content(n_questions))
    state = SessionState.initialize(
        {'code': code, 'host_ref': host_ref, 'number_of_teams': n_teams}, content, TEAMS_MASTER_DATA,
    )
    return state, content


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import chestquiz.models  # noqa: F401
        db.create_all()
        clear_registry()
        from chestquiz import socketio_events
        socketio_events._sid_to_ctx.clear()
        socketio_events._owner_count.clear()
    # Don't hold the app context across the test: requests would reuse it and
    # share `g` (including Flask-Login's cached user) between clients.
    yield application
    with application.app_context():
        clear_registry()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def register_host(test_client, username='host1', password='password'):
    res = test_client.post('/register', json={'username': username, 'password': password})
    assert res.status_code == 201
    return res.get_json()['user']


@pytest.fixture()
def host_client(flask_app):
    test_client = flask_app.test_client()
    register_host(test_client)
    return test_client


@pytest.fixture()
def created_game(host_client):
    res = host_client.post('/api/games/create', json={'content': make_content(8), 'number_of_teams': 4})
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')

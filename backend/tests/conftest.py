import os
import sys
import pytest

# Ensure the backend root (containing the `draftroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from draftroom import create_app, db


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ALLOWED_ORIGINS = []
    LOG_LEVEL = 'INFO'
    # Cheap hashes keep the suite fast
    BCRYPT_LOG_ROUNDS = 4
    ACTIVE_ROOM_MAX_AGE_DAYS = 7
    COMPLETED_ROOM_MAX_AGE_DAYS = 30
    ROOM_LOCK_TIMEOUT_SEC = 2
    ROOM_SAVE_RETRIES = 2
    ROOM_CODE_LENGTH = 6


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import draftroom.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def store(flask_app):
    return flask_app.extensions['room_store']

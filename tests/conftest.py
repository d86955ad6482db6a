import pytest

from app import create_app
from services import cache
from services.image import limiter


@pytest.fixture
def app(tmp_path):
    app = create_app(db_path=str(tmp_path / 'test.db'))
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _reset_state():
    cache.clear_cache()
    limiter.reset()
    yield
    cache.clear_cache()
    limiter.reset()


@pytest.fixture
def admin_client(client):
    with client.session_transaction() as sess:
        sess['user'] = {'email': 'admin@example.com', 'app_metadata': {'role': 'admin'}}
    return client

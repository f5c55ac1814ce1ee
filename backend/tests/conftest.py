import pytest
from fastapi.testclient import TestClient

from decide.core.limiter import limiter
from decide.core.settings import get_settings, reload_settings
from decide.db import RoomStore, init_db, make_engine
from helpers import FakeClock


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'decide.sqlite3'}"
    monkeypatch.setenv("DATABASE_URL", url)
    reload_settings()
    yield url
    get_settings.cache_clear()


@pytest.fixture
def engine(database_url):
    engine = make_engine(database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(engine, clock):
    return RoomStore(engine, clock=clock)


@pytest.fixture
def client(database_url):
    from decide.main import app

    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    limiter.reset()

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from cognipath.config import get_settings
from cognipath.db import Base, get_engine
from cognipath.main import app

AUTH_TOKENS = "token-alice=alice,token-bob=bob"


@pytest.fixture(autouse=True)
def reset_api_caches() -> Iterator[None]:
    get_settings.cache_clear()
    get_engine.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine.cache_clear()


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Engine]:
    sqlite_db_path = tmp_path / "cognipath-tests.db"
    monkeypatch.setenv("COGNIPATH_DATABASE_URL", f"sqlite+pysqlite:///{sqlite_db_path}")
    monkeypatch.setenv("COGNIPATH_DB_ECHO", "false")
    monkeypatch.setenv("COGNIPATH_AUTH_TOKENS", AUTH_TOKENS)
    monkeypatch.setenv("COGNIPATH_BLOB_BACKEND", "local")
    monkeypatch.setenv("COGNIPATH_BLOB_DIR", str(tmp_path / "documents"))
    monkeypatch.setenv("COGNIPATH_BLOB_BASE_URL", "http://files.test/documents")

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    yield engine

    engine.dispose()


@pytest.fixture
def client(engine: Engine) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

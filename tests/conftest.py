import os
import tempfile
from pathlib import Path

# The engine is built at import time, so point it at a scratch database first.
_DB_DIR = tempfile.mkdtemp(prefix="engsvc-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    with SessionLocal() as session:
        yield session


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_project(client):
    def _make(code="J25001", title="Jetty upgrade", headers=None, **extra):
        resp = client.post("/projects", json={"project_code": code, "title": title, **extra}, headers=headers or {})
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make

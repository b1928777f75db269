from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine

from warp_server.config import ServerConfig
from warp_server.models.base import WarpTable
from warp_server.models.definition import SESSION_DEFINITION, USER_DEFINITION, ModelDefinition
from warp_server.server import WarpServer

TEST_DATABASE_URL = "sqlite:///:memory:"
API_KEY = "test-api-key"
MASTER_KEY = "test-master-key"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. The server is built on test_engine, so the app never opens its own
# 4. Tables are dropped after every test so usernames/emails can be reused
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


class Article(WarpTable, table=True):
    """Application model used by the tests"""

    title: str
    body: Optional[str] = None
    views: int = 0
    author_id: Optional[int] = Field(default=None, foreign_key="user.id")
    cover: Optional[str] = None


ARTICLE_DEFINITION = ModelDefinition(
    class_name="Article",
    table=Article,
    viewable=["title", "body", "views", "author", "cover"],
    actionable=["title", "body", "views", "author", "cover"],
    pointers={"author": "User"},
    files=["cover"],
)


def make_config(tmp_path, **overrides) -> ServerConfig:
    values = dict(
        database_url=TEST_DATABASE_URL,
        api_key=API_KEY,
        master_key=MASTER_KEY,
        throttle_limit=1000,
        storage_path=str(tmp_path / "uploads"),
    )
    values.update(overrides)
    return ServerConfig(**values)


def make_server(tmp_path, **overrides) -> WarpServer:
    server = WarpServer(make_config(tmp_path, **overrides), engine=test_engine)
    server.register_auth_models(USER_DEFINITION, SESSION_DEFINITION)
    server.register_model(ARTICLE_DEFINITION)
    return server


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on freshly created tables"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="server")
def server_fixture(session: Session, tmp_path):
    return make_server(tmp_path)


@pytest.fixture(name="client")
def client_fixture(server: WarpServer):
    """Test client that sends the API key on every request"""
    with TestClient(server.create_app(), headers={"X-Warp-API-Key": API_KEY}) as client:
        yield client


# ============================================================================
# Helpers
# ============================================================================


def signup(client: TestClient, username: str, password: str = "secret", email: Optional[str] = None) -> dict:
    response = client.post(
        "/users",
        json={"username": username, "password": password, "email": email or f"{username}@example.com"},
    )
    assert response.status_code == 200, response.json()
    return response.json()["result"]


def login(client: TestClient, username: str, password: str = "secret") -> str:
    response = client.post("/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.json()
    return response.json()["result"]["session_token"]


def session_headers(token: str) -> dict:
    return {"X-Warp-Session-Token": token}


def master_headers() -> dict:
    return {"X-Warp-Master-Key": MASTER_KEY}

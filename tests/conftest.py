import os
import tempfile
import uuid
from fnmatch import fnmatchcase
from pathlib import Path

TEST_DB_PATH = Path(tempfile.gettempdir()) / f"pharmzone_test_{uuid.uuid4().hex}.sqlite"
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

os.environ.setdefault("PHARMZONE_SKIP_RUNTIME_INIT", "1")
os.environ["SQLALCHEMY_DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "pharmzone-test-secret"

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import validation_exception_handler
from app.db import get_db
from app.db.base import Base
import app.db.models  # noqa: F401  # Import models to register tables
from app.redis.client import set_redis
from app.routers import api_router

test_app = FastAPI(title="PharmzoneAPI", docs_url=None, redoc_url=None)
test_app.include_router(api_router)
test_app.add_exception_handler(RequestValidationError, validation_exception_handler)

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "testpass"

TEST_USERS = {
    "superadmin": ("super@pharmzone.test", "superadmin"),
    "admin": ("admin@pharmzone.test", "admin"),
    "treasurer": ("treasurer@pharmzone.test", "treasurer"),
    "secretary": ("secretary@pharmzone.test", "secretary"),
    "member": ("member@pharmzone.test", "member"),
    "other_member": ("other@pharmzone.test", "member"),
}


class FakeRedis:
    """Dict backed stand-in for the handful of redis-py calls the app makes."""

    def __init__(self):
        self.store = {}
        self.published = []
        self.hits = 0
        self.misses = 0

    def ping(self):
        return True

    def get(self, key):
        value = self.store.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match="*", count=None):
        return [key for key in list(self.store) if fnmatchcase(key, match)]

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    def dbsize(self):
        return len(self.store)

    def info(self, section=None):
        if section == "memory":
            return {"used_memory_human": "1.00K"}
        return {"keyspace_hits": self.hits, "keyspace_misses": self.misses}

    def close(self):
        pass


@pytest.fixture(scope="session", autouse=True)
def db_engine():
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def setup_test_users(db_engine):
    from app.db import crud
    from app.models.user import UserCreate, UserRole

    db = TestingSessionLocal()
    for name, (email, role) in TEST_USERS.items():
        if not crud.get_user_by_email(db, email):
            crud.create_user(
                db,
                UserCreate(
                    first_name=name.replace("_", " ").title(),
                    last_name="Tester",
                    email=email,
                    password=PASSWORD,
                    role=UserRole(role),
                ),
            )
    db.close()


@pytest.fixture(scope="session")
def client(setup_test_users):
    # Override the database dependency to use test database
    def override_get_db():
        try:
            db = TestingSessionLocal()
            yield db
        finally:
            db.close()

    test_app.dependency_overrides[get_db] = override_get_db
    with TestClient(test_app) as c:
        yield c


def login(client: TestClient, email: str, password: str = PASSWORD) -> TestClient:
    response = client.post("/api/auth/token", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    authed = TestClient(test_app)
    authed.headers.update({"Authorization": f"Bearer {response.json()['access_token']}"})
    return authed


@pytest.fixture(scope="session")
def auth_client(client):
    return login(client, TEST_USERS["superadmin"][0])


@pytest.fixture(scope="session")
def admin_client(client):
    return login(client, TEST_USERS["admin"][0])


@pytest.fixture(scope="session")
def treasurer_client(client):
    return login(client, TEST_USERS["treasurer"][0])


@pytest.fixture(scope="session")
def secretary_client(client):
    return login(client, TEST_USERS["secretary"][0])


@pytest.fixture(scope="session")
def member_client(client):
    return login(client, TEST_USERS["member"][0])


@pytest.fixture(scope="session")
def other_member_client(client):
    return login(client, TEST_USERS["other_member"][0])


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_ids(db):
    from app.db import crud

    return {name: crud.get_user_by_email(db, email).id for name, (email, _) in TEST_USERS.items()}


@pytest.fixture
def fake_redis():
    client = FakeRedis()
    set_redis(client)
    yield client
    set_redis(None)


def unique(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def create_pharmacy(client: TestClient, **overrides) -> dict:
    payload = {
        "name": unique("Pharmacy"),
        "registration_number": unique("REG"),
        "address": "12 Hospital Road",
        "ward_area": "Central",
        "registration_status": "active",
    }
    payload.update(overrides)
    response = client.post("/api/pharmacies", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def create_due_type(client: TestClient, **overrides) -> dict:
    payload = {"name": unique("Annual dues"), "default_amount": 5000}
    payload.update(overrides)
    response = client.post("/api/due-types", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def create_due(client: TestClient, pharmacy_id: int, due_type_id: int, **overrides) -> dict:
    payload = {
        "due_type_id": due_type_id,
        "title": "Annual membership",
        "amount": 5000,
        "due_date": "2030-03-31T00:00:00",
    }
    payload.update(overrides)
    response = client.post(f"/api/pharmacies/{pharmacy_id}/dues", json=payload)
    assert response.status_code == 201, response.text
    return response.json()

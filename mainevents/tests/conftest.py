from datetime import timedelta

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from mainevents.core.celery_config import celery_app
from mainevents.core.security import create_access_token, hash_password
from mainevents.core.utils import utcnow
from mainevents.database.db import Base, get_db
from mainevents.main import app
from mainevents.models.events import Event
from mainevents.models.users import User, UserRole

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def other_session():
    """A second session on the same database, for changes committed by another request."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch: pytest.MonkeyPatch, redis_server):
    """Every lock taken by the attendance service goes to an in-process fake Redis."""
    monkeypatch.setattr(
        "mainevents.services.attendance.get_redis_client",
        lambda: fakeredis.FakeRedis(server=redis_server, decode_responses=True),
    )
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture(autouse=True)
def eager_celery(monkeypatch: pytest.MonkeyPatch):
    """Run queued tasks inline against the test database."""
    monkeypatch.setattr(celery_app.conf, "task_always_eager", True)
    monkeypatch.setattr(celery_app.conf, "task_eager_propagates", False)
    monkeypatch.setattr("mainevents.tasks.SessionLocal", TestingSessionLocal)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db_session: Session):
    counter = {"n": 0}

    def _make_user(name: str = "Ana", role: str = UserRole.USER.value, password: str = "secret123") -> User:
        counter["n"] += 1
        user = User(
            name=name,
            last_name="Tester",
            email=f"{name.lower()}{counter['n']}@example.com",
            password_hash=hash_password(password),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_event(db_session: Session):
    def _make_event(owner: User, capacidad: int = 10, **fields) -> Event:
        values = {
            "name": "Concierto de prueba",
            "description": "Un evento creado para las pruebas",
            "date": utcnow() + timedelta(days=7),
            "location": "Teatro Municipal",
            "organizer": owner.name,
            "price": 25.0,
        }
        values.update(fields)
        event = Event(capacidad=capacidad, user_id=owner.id, **values)
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token({"id": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine, event, select
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401 — register models with Base.metadata
from app.core.config import settings
from app.core.database import Base, get_db
from app.main import app as fastapi_app
from app.models import User, UserPoints
from app.services.auth import create_access_token
from app.services.points import Ledger, LocalKeyedLock, get_ledger

settings.DEBUG = True
settings.PAYPAL_VERIFY_WEBHOOKS = False

# In-memory SQLite for tests — no PostgreSQL dependency needed
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Provide a test database session."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
def ledger(session_factory):
    """Ledger over the test database with an in-process keyed lock."""
    return Ledger(session_factory, LocalKeyedLock(timeout=5))


@pytest.fixture
def threaded_session_factory(tmp_path):
    """File-backed SQLite session factory safe for concurrent writers.

    Every transaction starts with BEGIN IMMEDIATE so writers queue on the
    database lock (bounded by the busy timeout) instead of failing when
    they try to upgrade a read lock.
    """
    threaded_engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(threaded_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(threaded_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=threaded_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=threaded_engine)
    Base.metadata.drop_all(bind=threaded_engine)
    threaded_engine.dispose()


def _create_user(db, email: str, is_admin: bool = False) -> User:
    user = User(email=email, full_name=email.split("@")[0], is_admin=is_admin)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db) -> User:
    return _create_user(db, "writer@example.com")


@pytest.fixture
def other_user(db) -> User:
    return _create_user(db, "agency@example.com")


@pytest.fixture
def admin_user(db) -> User:
    return _create_user(db, "admin@example.com", is_admin=True)


@pytest.fixture
def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_headers(admin_user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def client(db, ledger):
    """TestClient with overridden DB and ledger dependencies."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_ledger] = lambda: ledger
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def read_points(db):
    """Fresh read of a user's points row, bypassing the session's identity map."""

    def _read(user_id: uuid.UUID) -> UserPoints | None:
        db.expire_all()
        return db.execute(select(UserPoints).where(UserPoints.user_id == user_id)).scalar_one_or_none()

    return _read

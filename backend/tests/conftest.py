import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("TOKEN_STORE_BACKEND", "memory")
os.environ.setdefault("ERP_BASE_URL", "http://erp.test")
os.environ.setdefault("ERP_API_URL", "http://erp.test/api")

from sso_bridge.core.auth import SESSION_COOKIE, create_session
from sso_bridge.db.base import Base
from sso_bridge.db.session import get_db
from sso_bridge.main import app
from sso_bridge.models import User, UserStatus
from sso_bridge.services.sso_service import get_token_store


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session(engine) -> Session:
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture(autouse=True)
def _fresh_token_store():
    get_token_store.cache_clear()
    yield
    get_token_store.cache_clear()


@pytest.fixture()
def client(db_session: Session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session: Session):
    def _make_user(email: str, status: UserStatus = UserStatus.ENABLED, username: str | None = None) -> User:
        user = User(
            email=email,
            username=username or email.split("@")[0],
            display_name=(username or email.split("@")[0]).title(),
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def login_as(client: TestClient, db_session: Session):
    def _login_as(user: User) -> None:
        client.cookies.set(SESSION_COOKIE, create_session(db_session, user.id))

    return _login_as

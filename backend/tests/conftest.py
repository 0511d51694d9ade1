"""
Pytest configuration and fixtures for the identity service tests.

Every test gets a fresh in-memory SQLite database, its own rate limiter and a
recording SMS sender, so no state leaks between tests.
"""
import pathlib
import sys

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from roomauth import models  # noqa: E402,F401
from roomauth.core.config import Settings  # noqa: E402
from roomauth.db import Base, build_engine, build_session_factory  # noqa: E402
from roomauth.main import create_app  # noqa: E402
from roomauth.services.container import AuthServices  # noqa: E402
from tests.helpers.auth_fakes import FakeClock, RecordingSmsSender  # noqa: E402
from tests.helpers.auth_setup import build_services, make_settings  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sms_sender() -> RecordingSmsSender:
    return RecordingSmsSender()


@pytest.fixture
def engine():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite so several threads can hold their own connections"""
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    """
    Provide a database session for each test.

    Services commit, so isolation comes from the per-test engine rather than
    a rolled-back outer transaction.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def services(settings, clock, sms_sender) -> AuthServices:
    return build_services(settings, clock, sms_sender)


@pytest.fixture
def app(settings, services, engine):
    return create_app(settings, services=services, engine=engine)


@pytest.fixture
def client(app):
    """FastAPI TestClient wired to the per-test database and services"""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def issue_otp(services, sms_sender, db):
    """Request a code through the service and return (request_id, code)"""

    async def _issue(phone: str, ip: str = "203.0.113.10"):
        result = await services.otp.request_otp(db, phone, request_ip=ip)
        return result.request_id, sms_sender.last_code(phone)

    return _issue

import os
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MAIL_BACKEND"] = "console"
os.environ["JWT_SECRET"] = "test-secret-for-verification-tokens-0123456789"
os.environ["ADMIN_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.config import settings
from core.database import Base, SessionLocal, engine
from core.dependencies import get_case_service, get_verification_service, get_vote_service
from core.mailer import MailDeliveryError, Mailer
from core.rate_limit import RateLimiter
from crud import case_crud
from main import app
from services.case_service import CaseService
from services.verification_service import VerificationService
from services.vote_service import VoteService


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingMailer(Mailer):
    name = "recording"

    def __init__(self, settings):
        super().__init__(settings)
        self.sent = []
        self.messages = []
        self.fail = False

    def send_code(self, to_email, code):
        if self.fail:
            raise MailDeliveryError("mail server down")
        self.sent.append((to_email, code))
        super().send_code(to_email, code)

    def send(self, to_email, subject, text, html):
        self.messages.append((to_email, subject))

    def last_code(self, email=None):
        for to, code in reversed(self.sent):
            if email is None or to == email:
                return code
        raise AssertionError(f"no code sent to {email}")


def other_code(code: str) -> str:
    return f"{(int(code) + 1) % 1_000_000:06d}"


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_sessions(tmp_path):
    """Sessions on a file-backed SQLite database, for tests that need real
    connections per thread."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'unveil.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, autoflush=False)
    try:
        yield factory
    finally:
        file_engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return RecordingMailer(settings)


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


@pytest.fixture
def verification(mailer, limiter, clock):
    return VerificationService(settings, mailer, limiter, clock=clock)


@pytest.fixture
def votes(clock):
    return VoteService(clock=clock)


@pytest.fixture
def cases(limiter):
    return CaseService(settings, limiter)


@pytest.fixture
def make_case(db):
    def _make(**overrides):
        fields = {
            "name": "John Scammer",
            "email": None,
            "phone": None,
            "company": "Fake Corp",
            "actions": "phishing",
            "description": "Sent fake invoices asking for wire transfers.",
        }
        fields.update(overrides)
        return case_crud.create_case(db, fields, reported_by="reporter@example.com")

    return _make


@pytest.fixture
def client(db, verification, votes, cases):
    app.dependency_overrides[get_verification_service] = lambda: verification
    app.dependency_overrides[get_vote_service] = lambda: votes
    app.dependency_overrides[get_case_service] = lambda: cases
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()

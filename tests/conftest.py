"""Shared fixtures: a fresh SQLite database per test and fake collaborators."""
import os
import tempfile
from pathlib import Path

# Set environment BEFORE importing the app
_tmp_dir = tempfile.mkdtemp(prefix="otpboard-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_tmp_dir) / 'app.db'}"
os.environ["EMAIL_BACKEND"] = "console"
os.environ["LOGIN_THROTTLE_ENABLED"] = "false"
os.environ["OTP_REAPER_INTERVAL_SECONDS"] = "0"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["OTPBOARD_ENV_FILE"] = str(Path(_tmp_dir) / "missing.env")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from otpboard.database import Base, get_db
from otpboard.dependencies import get_mailer, get_throttle
from otpboard.errors import DeliveryError
from otpboard.main import app
from otpboard.schemas import CardPayload
from otpboard import board_store
from otpboard.auth import register_user


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, to_email, subject, body):
        if self.fail:
            raise DeliveryError()
        self.sent.append((to_email, subject, body))

    def last_code(self):
        return self.sent[-1][2].rsplit(" ", 1)[-1]


class FakeRedis:
    """Just enough of redis.Redis for LoginThrottle."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        self.data.pop(key, None)

    def pipeline(self):
        return FakePipeline(self)

    def close(self):
        pass


class FakePipeline:
    def __init__(self, r):
        self.r = r
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))

    def expire(self, key, seconds):
        self.ops.append(("expire", key, seconds))

    def execute(self):
        for op in self.ops:
            if op[0] == "incr":
                self.r.data[op[1]] = str(int(self.r.data.get(op[1], 0)) + 1)
            else:
                self.r.expiry[op[1]] = op[2]
        self.ops = []


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def client(session_factory, mailer):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_throttle] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def boards(db):
    """Board A with card 1, empty board B."""
    board_store.provision_board(db, "A", "Todo", [CardPayload(id="1", title="x")])
    board_store.provision_board(db, "B", "Done")
    return db


@pytest.fixture
def user(db):
    return register_user(db, "alice", "alice@example.com", "s3cret-pass")

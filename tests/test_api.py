"""
End-to-end tests through the HTTP API.
"""
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from otpboard import config
from otpboard.database import get_db
from otpboard.dependencies import get_throttle
from otpboard.email_utils import ConsoleMailer
from otpboard.main import app, run
from otpboard.redis_utils import LoginThrottle

from conftest import FakeRedis


def _register(client, username="alice", email="alice@example.com", password="s3cret-pass"):
    return client.post("/api/register", json={"username": username, "email": email, "password": password})


def test_health(client):
    response = client.get("/api")
    assert response.status_code == 200
    assert response.json() == {"message": "API server"}


def test_register(client):
    response = _register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "user created"
    assert body["id"]


def test_register_duplicate_username(client):
    _register(client)
    response = _register(client, email="other@example.com")
    assert response.status_code == 409


def test_register_rejects_bad_email(client):
    response = _register(client, email="not-an-email")
    assert response.status_code == 422


def test_login_then_verify_once(client, mailer):
    user_id = _register(client).json()["id"]

    response = client.post("/api/login", json={"username": "alice", "password": "s3cret-pass"})
    assert response.status_code == 200
    assert response.json() == {"message": "Please verify the OTP", "pending_user_id": user_id}

    code = mailer.last_code()
    response = client.post("/api/verify-otp", json={"otp": code})
    assert response.status_code == 200
    assert response.json() == {"message": "OTP verified", "authenticated": True, "user_id": user_id}

    response = client.post("/api/verify-otp", json={"otp": code})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid OTP"}


def test_wrong_password_and_unknown_user_look_the_same(client):
    _register(client)

    wrong_password = client.post("/api/login", json={"username": "alice", "password": "nope"})
    unknown_user = client.post("/api/login", json={"username": "mallory", "password": "nope"})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"detail": "Invalid username or password"}


def test_login_delivery_failure(client, mailer):
    _register(client)
    mailer.fail = True

    response = client.post("/api/login", json={"username": "alice", "password": "s3cret-pass"})
    assert response.status_code == 502
    assert response.json() == {"detail": "Error sending email"}


def test_login_throttled(client):
    _register(client)
    throttle = LoginThrottle(FakeRedis(), max_attempts=1, window=60)
    app.dependency_overrides[get_throttle] = lambda: throttle

    assert client.post("/api/login", json={"username": "alice", "password": "nope"}).status_code == 401
    response = client.post("/api/login", json={"username": "alice", "password": "s3cret-pass"})
    assert response.status_code == 429


def test_contact_form(client, mailer):
    response = client.post("/api/form-data", json={
        "name": "Karthi",
        "email": "karthi@example.com",
        "number": "12345",
        "message": "Need a quote",
    })
    assert response.status_code == 200
    assert response.json() == {"message": "Form data submitted successfully"}
    _, subject, body = mailer.sent[-1]
    assert "Karthi" in body and "Need a quote" in body


def test_contact_form_delivery_failure(client, mailer):
    mailer.fail = True
    response = client.post("/api/form-data", json={
        "name": "Karthi", "email": "karthi@example.com", "message": "hi",
    })
    assert response.status_code == 502


def test_list_boards(client, boards):
    response = client.get("/api/boards")
    assert response.status_code == 200
    assert response.json() == [
        {"id": "A", "title": "Todo", "cards": [{"id": "1", "title": "x", "description": ""}]},
        {"id": "B", "title": "Done", "cards": []},
    ]


def test_add_card(client, boards):
    response = client.post("/api/boards/A/cards", json={"id": "2", "title": "y", "description": "d"})
    assert response.status_code == 201
    assert [c["id"] for c in response.json()["cards"]] == ["1", "2"]


def test_add_card_to_unknown_board(client, boards):
    response = client.post("/api/boards/Z/cards", json={"id": "2", "title": "y"})
    assert response.status_code == 404


def test_add_card_requires_id(client, boards):
    response = client.post("/api/boards/A/cards", json={"title": "y"})
    assert response.status_code == 422


def test_delete_card(client, boards):
    response = client.delete("/api/boards/A/cards/1")
    assert response.status_code == 200
    assert response.json() == {"message": "Card deleted"}
    assert client.get("/api/boards").json()[0]["cards"] == []


def test_delete_unknown_card(client, boards):
    response = client.delete("/api/boards/A/cards/99")
    assert response.status_code == 404
    assert response.json() == {"detail": "Card '99' not found in board 'A'"}


def test_move_card(client, boards):
    response = client.post("/api/boards/A/move/B", json={"id": "1", "title": "x"})
    assert response.status_code == 200
    assert response.json() == {"message": "Card moved"}

    listed = {b["id"]: b for b in client.get("/api/boards").json()}
    assert listed["A"]["cards"] == []
    assert listed["B"]["cards"] == [{"id": "1", "title": "x", "description": ""}]


def test_move_to_unknown_board(client, boards):
    response = client.post("/api/boards/A/move/Z", json={"id": "1", "title": "x"})
    assert response.status_code == 404
    assert client.get("/api/boards").json()[0]["cards"][0]["id"] == "1"


def test_lifespan_builds_process_wide_collaborators():
    with TestClient(app) as client:
        assert isinstance(app.state.mailer, ConsoleMailer)
        assert app.state.throttle is None
        assert client.get("/api/boards").status_code == 200


def test_storage_outage_is_503(tmp_path):
    # A database without the schema fails every query.
    empty = create_engine(f"sqlite:///{tmp_path / 'empty.db'}", connect_args={"check_same_thread": False})
    EmptySession = sessionmaker(bind=empty)

    def broken_db():
        session = EmptySession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = broken_db
    try:
        response = TestClient(app).get("/api/boards")
    finally:
        app.dependency_overrides.clear()
        empty.dispose()

    assert response.status_code == 503
    assert response.json() == {"detail": "Storage backend unavailable"}


def test_verify_accepts_numeric_otp(client, mailer):
    _register(client)
    client.post("/api/login", json={"username": "alice", "password": "s3cret-pass"})
    code = int(mailer.last_code())

    response = client.post("/api/verify-otp", json={"otp": code})
    assert response.status_code == 200
    assert response.json()["authenticated"] is True

    response = client.post("/api/verify-otp", json={"otp": code})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid OTP"}


def test_run_starts_uvicorn_with_configured_address():
    with patch("otpboard.main.uvicorn.run") as mock_run:
        run()

    mock_run.assert_called_once_with(
        app, host=config.APP_HOST, port=config.APP_PORT, log_level=config.LOG_LEVEL.lower()
    )

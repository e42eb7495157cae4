from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import text

from messagely.config import Settings
from messagely.database import make_engine
from messagely.main import create_app
from messagely.store import MemoryStore


SECRET = "test-secret"


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        secret_key=SECRET,
        bcrypt_rounds=4,
        database_url=f"sqlite:///{tmp_path / 'api.db'}",
    )
    with TestClient(create_app(settings)) as c:
        yield c


def register(client, username: str, password: str, first_name: str = "First"):
    return client.post(
        "/auth/register",
        json={
            "username": username,
            "password": password,
            "first_name": first_name,
            "last_name": "Last",
            "phone": "555-0100",
        },
    )


def login(client, username: str, password: str) -> str:
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200
    return res.json()["token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_register_returns_signed_token(client):
    res = register(client, "alice", "secret1")

    assert res.status_code == 200
    payload = jwt.decode(res.json()["token"], SECRET, algorithms=["HS256"])
    assert payload["username"] == "alice"


def test_register_errors_are_400(client):
    register(client, "alice", "secret1")

    duplicate = register(client, "alice", "other")
    assert duplicate.status_code == 400
    assert duplicate.json()["error"]["detail"] == {"username": "alice"}

    assert register(client, "bob", "").status_code == 400
    assert client.post("/auth/register", json={"username": "bob"}).status_code == 400


def test_login(client):
    register(client, "alice", "secret1")

    assert login(client, "alice", "secret1")

    bad = client.post("/auth/login", json={"username": "alice", "password": "wrong"})
    assert bad.status_code == 400
    assert bad.json()["error"]["message"] == "Invalid user/password"

    unknown = client.post("/auth/login", json={"username": "carol", "password": "x"})
    assert unknown.status_code == 400
    assert unknown.json() == bad.json()


def test_login_updates_last_login(client):
    register(client, "alice", "secret1")
    token = login(client, "alice", "secret1")
    before = client.get("/users/alice", headers=auth_header(token)).json()["user"]

    token = login(client, "alice", "secret1")
    after = client.get("/users/alice", headers=auth_header(token)).json()["user"]

    assert after["join_at"] == before["join_at"]
    assert datetime.fromisoformat(after["last_login_at"]) >= datetime.fromisoformat(before["last_login_at"])


def test_users_require_token(client):
    assert client.get("/users").status_code == 401
    assert client.get("/users", headers=auth_header("garbage")).status_code == 401


def test_users_are_scoped_to_token_owner(client):
    alice_token = register(client, "alice", "secret1").json()["token"]
    register(client, "bob", "secret2")

    users = client.get("/users", headers=auth_header(alice_token))
    assert users.status_code == 200
    assert {u["username"] for u in users.json()["users"]} == {"alice", "bob"}

    me = client.get("/users/alice", headers=auth_header(alice_token))
    assert me.status_code == 200
    assert "password" not in me.json()["user"]

    assert client.get("/users/bob", headers=auth_header(alice_token)).status_code == 403
    assert client.get("/users/bob/to", headers=auth_header(alice_token)).status_code == 403


def test_auth_and_message_flow(client):
    alice_token = register(client, "alice", "secret1", "Alice").json()["token"]
    bob_token = register(client, "bob", "secret2", "Bob").json()["token"]
    carol_token = register(client, "carol", "secret3").json()["token"]

    res = client.post(
        "/messages",
        json={"to_username": "bob", "body": "hi"},
        headers=auth_header(alice_token),
    )
    assert res.status_code == 200
    msg = res.json()["message"]
    assert msg["from_username"] == "alice"
    assert msg["to_username"] == "bob"
    assert msg["read_at"] is None

    sent = client.get("/users/alice/from", headers=auth_header(alice_token)).json()["messages"]
    assert len(sent) == 1
    assert sent[0]["to_user"]["username"] == "bob"
    assert sent[0]["to_user"]["first_name"] == "Bob"

    received = client.get("/users/bob/to", headers=auth_header(bob_token)).json()["messages"]
    assert len(received) == 1
    assert received[0]["from_user"]["username"] == "alice"

    empty = client.get("/users/alice/to", headers=auth_header(alice_token))
    assert empty.status_code == 200
    assert empty.json() == {"messages": []}

    url = f"/messages/{msg['id']}"
    assert client.get(url, headers=auth_header(carol_token)).status_code == 403
    assert client.get(url, headers=auth_header(bob_token)).json()["message"]["body"] == "hi"

    assert client.post(f"{url}/read", headers=auth_header(alice_token)).status_code == 403
    read = client.post(f"{url}/read", headers=auth_header(bob_token))
    assert read.status_code == 200
    assert read.json()["message"]["read_at"] is not None


def test_send_to_unknown_user(client):
    token = register(client, "alice", "secret1").json()["token"]

    res = client.post("/messages", json={"to_username": "nobody", "body": "hi"}, headers=auth_header(token))
    assert res.status_code == 404
    assert res.json()["error"]["detail"] == {"username": "nobody"}


def test_store_failure_is_500(tmp_path):
    url = f"sqlite:///{tmp_path / 'api.db'}"
    settings = Settings(secret_key=SECRET, bcrypt_rounds=4, database_url=url)
    with TestClient(create_app(settings)) as c:
        token = register(c, "alice", "secret1").json()["token"]

        engine = make_engine(url)
        with engine.begin() as conn:
            conn.execute(text("DROP TABLE messages"))
        engine.dispose()

        res = c.get("/users/alice/from", headers=auth_header(token))

    assert res.status_code == 500
    assert res.json() == {"error": {"message": "Store failure", "status": 500, "detail": None}}


def test_legacy_empty_results(tmp_path):
    settings = Settings(secret_key=SECRET, bcrypt_rounds=4, empty_results_are_errors=True)
    with TestClient(create_app(settings, store=MemoryStore())) as c:
        token = register(c, "alice", "secret1").json()["token"]
        res = c.get("/users/alice/from", headers=auth_header(token))

    assert res.status_code == 404
    assert res.json()["error"]["message"] == "No messages from this user: alice"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

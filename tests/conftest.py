from datetime import datetime, timedelta, timezone

import pytest

from messagely.auth import AuthService, PasswordHasher
from messagely.database import init_db, make_engine, make_session_factory
from messagely.directory import UserDirectory
from messagely.messages import MessageService
from messagely.store import MemoryStore, SqlStore


class FakeClock:
    """Returns a strictly increasing time, one step per call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        self.now = self.now + self.step
        return self.now


@pytest.fixture(scope="session")
def hasher():
    # lowest cost bcrypt allows, keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        yield MemoryStore()
        return
    engine = make_engine(f"sqlite:///{tmp_path / 'store.db'}")
    init_db(engine)
    yield SqlStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def auth(store, hasher, clock):
    return AuthService(store, hasher, clock=clock)


@pytest.fixture
def directory(store):
    return UserDirectory(store)


@pytest.fixture
def messages(store, clock):
    return MessageService(store, clock=clock)


@pytest.fixture
def alice_and_bob(auth):
    auth.register("alice", "secret1", "Alice", "Anderson", "555-0101")
    auth.register("bob", "secret2", "Bob", "Brown", "555-0102")

from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.deps import db_session, get_store
from app.main import app
from facade.game_store_facade import GameStoreFacade
from repositories.sql_model_game_repository import SqlModelGameRepository


SEED_GAMES = [
    {"name": "Helix Jump", "platform": "ios", "store_id": "1345968745"},
    {"name": "Helix Jump", "platform": "android", "store_id": "com.h8games.helixjump"},
    {"name": "Swing Rider", "platform": "ios", "store_id": "1441364410"},
    {"name": "Swing Rider", "platform": "android", "store_id": "com.swing.rider"},
    {"name": "Car Crash!", "platform": "ios", "store_id": "1509447345"},
]


@pytest.fixture
def engine():
    # one in-memory database shared by every connection of the test
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> GameStoreFacade:
    return GameStoreFacade(SqlModelGameRepository(engine))


@pytest.fixture
def seeded_store(store) -> GameStoreFacade:
    for fields in SEED_GAMES:
        store.create({**fields, "publisher_id": "42", "is_published": True})
    return store


@pytest.fixture
def client(engine, store) -> Iterator[TestClient]:
    def _session() -> Iterator[Session]:
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[db_session] = _session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

# app/deps.py
import re
from typing import Iterator
from fastapi import Request
from repositories.sql_model_game_repository import get_session
from sqlmodel import Session

from app.errors import InvalidId
from facade.game_store_facade import GameStoreFacade

_ID_RE = re.compile(r"^-?[0-9]+\Z")
# SQLite INTEGER is a signed 64-bit value
_ID_MIN, _ID_MAX = -(2 ** 63), 2 ** 63 - 1


def db_session() -> Iterator[Session]:
    # FastAPI treats generators that yield as dependencies to tear down automatically
    with get_session() as s:
        yield s


def get_store(request: Request) -> GameStoreFacade:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise RuntimeError("Store not initialized")
    return store


def parse_game_id(game_id: str) -> int:
    """Path ids are integers; anything else is rejected instead of coerced."""
    if not _ID_RE.match(game_id):
        raise InvalidId(game_id)
    value = int(game_id)
    if not _ID_MIN <= value <= _ID_MAX:
        raise InvalidId(game_id)
    return value

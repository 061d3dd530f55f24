import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Any, Dict, Iterator

from sqlalchemy import Engine, UniqueConstraint, true
from sqlmodel import SQLModel, Field, Session, select
from sqlmodel import create_engine

# ===== Default SQLite / SQLModel Backend =====
BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DB_PATH = BASE_DIR / "database"
DEFAULT_DB_PATH.mkdir(parents=True, exist_ok=True)
DB_PATH = os.getenv("GAMES_DB_PATH", DEFAULT_DB_PATH / "games.db")
_engine = create_engine(f"sqlite:///{DB_PATH}", connect_args={"check_same_thread": False})


def get_session() -> Session:
    return Session(_engine)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored timezone-aware; naive values are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GameRow(SQLModel, table=True):
    """
    One catalog entry. (store_id, platform) is the identity used to skip
    duplicates on bulk insert; the same game on ios and android is two rows.
    """
    __tablename__ = "games"
    __table_args__ = (UniqueConstraint("store_id", "platform", name="uq_games_store_platform"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    publisher_id: Optional[str] = None
    name: Optional[str] = Field(default=None, index=True)
    platform: Optional[str] = Field(default=None, index=True)
    store_id: Optional[str] = None
    bundle_id: Optional[str] = None
    app_version: Optional[str] = None
    is_published: Optional[bool] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


def _new_row(fields: Dict[str, Any]) -> GameRow:
    # missing timestamps fall back to the column defaults
    data = {k: v for k, v in fields.items() if k != "id"}
    for key in ("created_at", "updated_at"):
        if data.get(key) is None:
            data.pop(key, None)
        else:
            data[key] = as_utc(data[key])
    return GameRow(**data)


class SqlModelGameRepository:
    """Concrete repository backed by SQLite via SQLModel."""
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine if engine is not None else _engine

    def init(self) -> None:
        SQLModel.metadata.create_all(self._engine)

    def _session(self) -> Session:
        return Session(self._engine)

    @contextmanager
    def _session_scope(self, session: Optional[Session]) -> Iterator[Session]:
        """Use the caller's session when given, otherwise open and close one."""
        own_session = session is None
        s = self._session() if own_session else session
        try:
            yield s
        except Exception:
            s.rollback()
            raise
        finally:
            if own_session:
                s.close()

    def find_all(self, where: Any = None, session: Optional[Session] = None) -> List[GameRow]:
        stmt = select(GameRow).where(where if where is not None else true()).order_by(GameRow.id)
        with self._session_scope(session) as s:
            return list(s.exec(stmt).all())

    def find_by_id(self, game_id: int, session: Optional[Session] = None) -> Optional[GameRow]:
        with self._session_scope(session) as s:
            return s.get(GameRow, game_id)

    def create(self, fields: Dict[str, Any], session: Optional[Session] = None) -> GameRow:
        with self._session_scope(session) as s:
            row = _new_row(fields)
            s.add(row)
            s.commit()
            s.refresh(row)
            return row

    def update(self, game_id: int, fields: Dict[str, Any], session: Optional[Session] = None) -> Optional[GameRow]:
        with self._session_scope(session) as s:
            row = s.get(GameRow, game_id)
            if row is None:
                return None
            for key, value in fields.items():
                if key in ("id", "created_at", "updated_at"):
                    continue
                setattr(row, key, value)
            row.updated_at = _utcnow()
            s.add(row)
            s.commit()
            s.refresh(row)
            return row

    def delete(self, game_id: int, session: Optional[Session] = None) -> bool:
        with self._session_scope(session) as s:
            row = s.get(GameRow, game_id)
            if row is None:
                return False
            s.delete(row)
            s.commit()
            return True

    def bulk_insert(self, games: List[Dict[str, Any]], skip_duplicates: bool = True,
                    session: Optional[Session] = None) -> int:
        """Insert many games in one transaction and return how many were written.

        With ``skip_duplicates`` a game whose (store_id, platform) already
        exists, in the table or earlier in the batch, is left out silently.
        A key with a null part never collides, as in the unique constraint.
        Without it such a game makes the whole call fail.
        """
        inserted = 0
        seen = set()
        with self._session_scope(session) as s:
            for g in games:
                key = (g.get("store_id"), g.get("platform"))
                if skip_duplicates and None not in key:
                    if key in seen:
                        continue
                    seen.add(key)
                    exists = s.exec(
                        select(GameRow.id).where(GameRow.store_id == key[0], GameRow.platform == key[1])
                    ).first()
                    if exists is not None:
                        continue
                s.add(_new_row(g))
                inserted += 1
            s.commit()
        return inserted

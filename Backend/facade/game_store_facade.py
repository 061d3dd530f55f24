from __future__ import annotations

import os
from typing import List, Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.errors import NotFound, StoreError
from app.search import SearchFilter, build_where
from repositories.game_repository import GameRepository
from repositories.sql_model_game_repository import SqlModelGameRepository


# ===== Facade & Contracts =====

class GameStoreFacade:
    """Facade that hides which backend we use.
    Supports SQLite/SQLModel, Postgres, etc.

    Store failures come out as ``StoreError``; a missing id on update or
    delete comes out as ``NotFound`` before anything is changed.
    """
    def __init__(self, repo: GameRepository):
        self.repo = repo
        self.repo.init()

    @staticmethod
    def from_env() -> "GameStoreFacade":
        """
        Select a backend via GAMES_DB_BACKEND env var.
        Supported: 'sqlmodel' (default).
        """
        backend = os.getenv("GAMES_DB_BACKEND", "sqlmodel").lower()
        if backend == "sqlmodel":
            return GameStoreFacade(SqlModelGameRepository())
        raise ValueError(f"Unsupported backend: {backend}")

    def list_games(self, session: Optional[Session] = None) -> List[Any]:
        return self.search(SearchFilter(), session=session)

    def search(self, search: SearchFilter, session: Optional[Session] = None) -> List[Any]:
        try:
            return self.repo.find_all(build_where(search), session=session)
        except SQLAlchemyError as e:
            raise StoreError(f"Query failed: {e.__class__.__name__}") from e

    def create(self, fields: Dict[str, Any], session: Optional[Session] = None) -> Any:
        try:
            return self.repo.create(fields, session=session)
        except SQLAlchemyError as e:
            raise StoreError(f"Create failed: {e.__class__.__name__}") from e

    def update(self, game_id: int, fields: Dict[str, Any], session: Optional[Session] = None) -> Any:
        self._require(game_id, session)
        try:
            game = self.repo.update(game_id, fields, session=session)
        except SQLAlchemyError as e:
            raise StoreError(f"Update failed: {e.__class__.__name__}") from e
        if game is None:
            # deleted between the check and the write
            raise NotFound(game_id)
        return game

    def delete(self, game_id: int, session: Optional[Session] = None) -> int:
        self._require(game_id, session)
        try:
            deleted = self.repo.delete(game_id, session=session)
        except SQLAlchemyError as e:
            raise StoreError(f"Delete failed: {e.__class__.__name__}") from e
        if not deleted:
            raise NotFound(game_id)
        return game_id

    def ingest(self, games: List[Dict[str, Any]], session: Optional[Session] = None) -> dict:
        """Bulk insert skipping duplicates; 'submitted' counts every candidate."""
        try:
            inserted = self.repo.bulk_insert(games, skip_duplicates=True, session=session)
        except SQLAlchemyError as e:
            raise StoreError(f"Bulk insert failed: {e.__class__.__name__}") from e
        return {"submitted": len(games), "inserted": inserted, "skipped": len(games) - inserted}

    def _require(self, game_id: int, session: Optional[Session]) -> None:
        try:
            found = self.repo.find_by_id(game_id, session=session)
        except SQLAlchemyError as e:
            raise StoreError(f"Lookup failed: {e.__class__.__name__}") from e
        if found is None:
            raise NotFound(game_id)

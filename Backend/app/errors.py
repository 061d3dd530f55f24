# app/errors.py
from __future__ import annotations
from typing import Any, Dict


class GameCatalogError(Exception):
    """Base for errors the API turns into a JSON error response."""
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class NotFound(GameCatalogError):
    def __init__(self, game_id: int):
        super().__init__(f"Game {game_id} not found", id=game_id)
        self.game_id = game_id


class InvalidId(GameCatalogError):
    def __init__(self, raw: str):
        super().__init__(f"Invalid game id: {raw!r}", id=raw)


class InvalidFilter(GameCatalogError):
    pass


class StoreError(GameCatalogError):
    pass


class FeedFetchError(GameCatalogError):
    """A feed could not be fetched or parsed; the populate run is aborted."""
    status_code = 500

    def __init__(self, url: str, reason: str):
        super().__init__("Failed to populate games", url=url, detail=reason)
        self.url = url
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.url}: {self.reason}"

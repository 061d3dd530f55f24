# app/search.py
from __future__ import annotations
from typing import Any, List, Optional

from pydantic import BaseModel, StrictStr, ValidationError
from sqlalchemy import and_, true
from sqlalchemy.sql.elements import ColumnElement

from app.errors import InvalidFilter
from repositories.sql_model_game_repository import GameRow


class SearchFilter(BaseModel):
    """
    Optional search fields. Unknown keys are ignored; values must already be
    strings, numbers are rejected rather than coerced.
    """
    name: Optional[StrictStr] = None
    platform: Optional[StrictStr] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "SearchFilter":
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise InvalidFilter("Search body must be a JSON object")
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise InvalidFilter("Search fields must be strings", fields=fields) from e


def name_contains(name: Optional[str]) -> Optional[ColumnElement]:
    if not name:
        return None
    # LIKE '%name%'; wildcards in the input are matched literally
    return GameRow.name.contains(name, autoescape=True)


def platform_equals(platform: Optional[str]) -> Optional[ColumnElement]:
    if not platform:
        return None
    return GameRow.platform == platform


def combine(constraints: List[Optional[ColumnElement]]) -> ColumnElement:
    """AND the present constraints; no constraint at all matches every row."""
    present = [c for c in constraints if c is not None]
    if not present:
        return true()
    if len(present) == 1:
        return present[0]
    return and_(*present)


def build_where(search: SearchFilter) -> ColumnElement:
    return combine([name_contains(search.name), platform_equals(search.platform)])

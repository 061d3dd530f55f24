# app/schemas.py
from __future__ import annotations
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # wire format is camelCase, columns are snake_case
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        from_attributes=True,
    )


class GameIn(_CamelModel):
    """Body of create and update. Every field is replaced on update."""
    publisher_id: Optional[str] = None
    name: Optional[str] = None
    platform: Optional[str] = None
    store_id: Optional[str] = None
    bundle_id: Optional[str] = None
    app_version: Optional[str] = None
    is_published: Optional[bool] = None


class GameOut(GameIn):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DeletedOut(BaseModel):
    id: int


class PopulateOut(BaseModel):
    inserted: int

# app/main.py
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Any, List

from fastapi import FastAPI, Body, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.deps import db_session, get_store, parse_game_id
from app.errors import GameCatalogError, StoreError
from app.schemas import GameIn, GameOut, DeletedOut, PopulateOut
from app.search import SearchFilter
from facade.game_store_facade import GameStoreFacade
from feeds.app_feeds import populate


logger = logging.getLogger("uvicorn.error")


# ---------------------------
# App init
# ---------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Init store and ensure tables exist once.
    app.state.store = GameStoreFacade.from_env()
    yield


app = FastAPI(title="Games Catalog API", lifespan=lifespan)


@app.exception_handler(GameCatalogError)
async def catalog_error_handler(request: Request, exc: GameCatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # bodies that fail type coercion are client errors like any other
    logger.warning("%s %s invalid body", request.method, request.url.path)
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "detail": jsonable_encoder(exc.errors())},
    )


@app.get("/", tags=["meta"])
def root():
    return {"ok": True, "service": app.title}


# ---------------------------
# CRUD endpoints
# ---------------------------
@app.get("/api/games", response_model=List[GameOut], tags=["games"])
def list_games(
    store: GameStoreFacade = Depends(get_store),
    session: Session = Depends(db_session),
):
    return [GameOut.model_validate(g) for g in store.list_games(session=session)]


@app.post("/api/games", response_model=GameOut, tags=["games"])
def create_game(
    game: GameIn,
    store: GameStoreFacade = Depends(get_store),
    session: Session = Depends(db_session),
):
    created = store.create(game.model_dump(), session=session)
    return GameOut.model_validate(created)


@app.put("/api/games/{game_id}", response_model=GameOut, tags=["games"])
def update_game(
    game: GameIn,
    game_id: int = Depends(parse_game_id),
    store: GameStoreFacade = Depends(get_store),
    session: Session = Depends(db_session),
):
    # every field is written; omitted ones become null
    updated = store.update(game_id, game.model_dump(), session=session)
    return GameOut.model_validate(updated)


@app.delete("/api/games/{game_id}", response_model=DeletedOut, tags=["games"])
def delete_game(
    game_id: int = Depends(parse_game_id),
    store: GameStoreFacade = Depends(get_store),
    session: Session = Depends(db_session),
):
    return DeletedOut(id=store.delete(game_id, session=session))


@app.post("/api/games/search", response_model=List[GameOut], tags=["games"])
def search_games(
    payload: Any = Body(None),
    store: GameStoreFacade = Depends(get_store),
    session: Session = Depends(db_session),
):
    search = SearchFilter.from_payload(payload)
    return [GameOut.model_validate(g) for g in store.search(search, session=session)]


# ---------------------------
# Feed ingestion
# ---------------------------
@app.post("/api/games/populate", response_model=PopulateOut, tags=["ingest"])
async def populate_games(
    store: GameStoreFacade = Depends(get_store),
    session: Session = Depends(db_session),
):
    try:
        counts = await populate(store, session=session)
    except StoreError as e:
        logger.exception("POST /api/games/populate failed")
        return JSONResponse(status_code=500, content={"error": "Failed to populate games", "detail": e.message})
    return PopulateOut(inserted=counts["submitted"])


if __name__ == "__main__":
    # Run with: uvicorn app.main:app --reload (from Backend/)
    import uvicorn
    uvicorn.run("app.main:app", host="127.0.0.1", port=3000, reload=True)

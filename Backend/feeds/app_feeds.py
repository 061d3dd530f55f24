# feeds/app_feeds.py
"""
Top-apps feed ingestion.

Each feed is a JSON list of app descriptors (sometimes a list of lists, one
per chart page). Feeds are fetched concurrently and all of them must succeed:
a single bad feed aborts the run before anything reaches the store.
"""
from __future__ import annotations
import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from app.errors import FeedFetchError

logger = logging.getLogger(__name__)

USER_AGENT = "GamesCatalog/0.1 (+https://example.local)"
DEFAULT_FEED_URLS = [
    "https://interview-marketing-eng-dev.s3.eu-west-1.amazonaws.com/ios.top100.json",
    "https://interview-marketing-eng-dev.s3.eu-west-1.amazonaws.com/android.top100.json",
]


def feed_urls() -> List[str]:
    raw = os.getenv("GAMES_FEED_URLS", "")
    urls = [u.strip() for u in raw.split(",") if u.strip()]
    return urls or list(DEFAULT_FEED_URLS)


def feed_limit() -> int:
    return int(os.getenv("GAMES_FEED_LIMIT", "100"))


def feed_timeout() -> float:
    return float(os.getenv("GAMES_FEED_TIMEOUT", "10"))


# ---------------------------
# Descriptor mapping
# ---------------------------

class FeedApp(BaseModel):
    """One app as the feeds describe it (store ids may be numbers)."""
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    publisher_id: Optional[str] = None
    name: Optional[str] = None
    os: Optional[str] = None
    app_id: Optional[str] = None
    bundle_id: Optional[str] = None
    version: Optional[str] = None
    release_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None

    @field_validator("release_date", "updated_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # feeds often omit the offset
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_game(self) -> Dict[str, Any]:
        return {
            "publisher_id": self.publisher_id,
            "name": self.name,
            "platform": self.os,
            "store_id": self.app_id,
            "bundle_id": self.bundle_id,
            "app_version": self.version,
            "is_published": True,
            "created_at": self.release_date,
            "updated_at": self.updated_date,
        }


def flatten_one_level(items: List[Any]) -> List[Any]:
    out: List[Any] = []
    for item in items:
        if isinstance(item, list):
            out.extend(item)
        else:
            out.append(item)
    return out


def prepare_apps(url: str, payload: Any, limit: int) -> List[Dict[str, Any]]:
    """Flatten, keep the first `limit` descriptors in feed order, map to game fields."""
    if not isinstance(payload, list):
        raise FeedFetchError(url, f"expected a JSON list, got {type(payload).__name__}")
    apps = flatten_one_level(payload)[:max(limit, 0)]
    out: List[Dict[str, Any]] = []
    for i, descriptor in enumerate(apps):
        if not isinstance(descriptor, dict):
            raise FeedFetchError(url, f"entry {i} is not an object")
        try:
            out.append(FeedApp.model_validate(descriptor).to_game())
        except ValidationError as e:
            raise FeedFetchError(url, f"entry {i} is malformed: {e.error_count()} error(s)") from e
    return out


# ---------------------------
# Fetching
# ---------------------------

async def fetch_feed(client: httpx.AsyncClient, url: str, limit: int, timeout: float) -> List[Dict[str, Any]]:
    try:
        resp = await asyncio.wait_for(client.get(url), timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FeedFetchError(url, f"timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise FeedFetchError(url, f"network error: {e}") from e

    if not resp.is_success:
        raise FeedFetchError(url, f"HTTP {resp.status_code}")
    try:
        payload = resp.json()
    except ValueError as e:
        raise FeedFetchError(url, "malformed JSON") from e

    games = prepare_apps(url, payload, limit)
    logger.info("Fetched %d apps from %s", len(games), url)
    return games


async def fetch_all_feeds(
    urls: List[str],
    limit: int,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch every feed concurrently and concatenate in feed order.
    The first failure wins; fetches still in flight are cancelled.
    """
    async with httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
        transport=transport,
    ) as client:
        tasks = [asyncio.create_task(fetch_feed(client, url, limit, timeout)) for url in urls]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
    return [game for feed in results for game in feed]


async def populate(
    store: Any,
    urls: Optional[List[str]] = None,
    limit: Optional[int] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    session: Any = None,
) -> dict:
    """
    Fetch all feeds, then hand every candidate to the store in one
    skip-duplicates bulk insert. Nothing is written if any feed fails.
    """
    urls = urls if urls is not None else feed_urls()
    limit = limit if limit is not None else feed_limit()
    timeout = timeout if timeout is not None else feed_timeout()

    try:
        games = await fetch_all_feeds(urls, limit, timeout, transport=transport)
    except FeedFetchError as e:
        logger.warning("Populate aborted, feed failed: %s", e)
        raise

    # the store is synchronous; keep the event loop free while it writes
    counts = await asyncio.to_thread(store.ingest, games, session)
    logger.info("Populate submitted %d games (%d inserted, %d skipped)",
                counts["submitted"], counts["inserted"], counts["skipped"])
    return counts

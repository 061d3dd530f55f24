"""Populate the games table from the top-apps feeds without starting the API.

Run from Backend/:
    python -m scripts.populate --limit 50
"""
from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from app.errors import GameCatalogError
from facade.game_store_facade import GameStoreFacade
from feeds.app_feeds import feed_limit, feed_timeout, feed_urls, populate


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", action="append", dest="urls",
                        help="feed URL (repeatable); defaults to GAMES_FEED_URLS or the built-in feeds")
    parser.add_argument("--limit", type=int, default=None, help="apps kept per feed")
    parser.add_argument("--timeout", type=float, default=None, help="per-feed timeout in seconds")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    store = GameStoreFacade.from_env()
    try:
        counts = asyncio.run(populate(
            store,
            urls=args.urls or feed_urls(),
            limit=args.limit if args.limit is not None else feed_limit(),
            timeout=args.timeout if args.timeout is not None else feed_timeout(),
        ))
    except GameCatalogError as e:
        logging.getLogger("populate").error("%s", e)
        return 1
    print(f"submitted={counts['submitted']} inserted={counts['inserted']} skipped={counts['skipped']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

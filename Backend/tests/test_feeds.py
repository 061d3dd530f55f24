import asyncio
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.errors import FeedFetchError
from feeds.app_feeds import fetch_all_feeds, flatten_one_level, populate, prepare_apps


IOS_URL = "https://feeds.test/ios.top100.json"
ANDROID_URL = "https://feeds.test/android.top100.json"


def _app(n, os_name):
    return {
        "publisher_id": 1000 + n,
        "name": f"App {n}",
        "os": os_name,
        "app_id": 500 + n if os_name == "ios" else f"com.app{n}",
        "bundle_id": f"com.app{n}",
        "version": "1.0",
        "release_date": "2018-03-05T07:00:00.000Z",
        "updated_date": "2020-01-10 12:30:00",
        "rank": n,
    }


IOS_FEED = [[_app(1, "ios"), _app(2, "ios")], [_app(3, "ios")]]
ANDROID_FEED = [_app(1, "android"), _app(2, "android"), _app(3, "android")]


def _transport(routes):
    def handler(request: httpx.Request) -> httpx.Response:
        route = routes[str(request.url)]
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)
    return httpx.MockTransport(handler)


class TestPrepareApps:

    def test_flattens_one_level_only(self):
        assert flatten_one_level([[1, 2], 3, [[4]]]) == [1, 2, 3, [4]]

    def test_maps_descriptor_fields(self):
        game = prepare_apps(IOS_URL, [_app(1, "ios")], 10)[0]
        assert game["publisher_id"] == "1001"
        assert game["name"] == "App 1"
        assert game["platform"] == "ios"
        assert game["store_id"] == "501"
        assert game["bundle_id"] == "com.app1"
        assert game["app_version"] == "1.0"
        assert game["is_published"] is True
        assert game["created_at"].year == 2018
        assert game["updated_at"].year == 2020
        assert "rank" not in game

    def test_dates_without_offset_are_utc(self):
        game = prepare_apps(IOS_URL, [_app(1, "ios")], 1)[0]
        assert game["updated_at"] == datetime(2020, 1, 10, 12, 30, tzinfo=timezone.utc)
        assert game["created_at"].utcoffset() == timedelta(0)

    def test_truncates_after_flattening_in_feed_order(self):
        games = prepare_apps(IOS_URL, IOS_FEED, 2)
        assert [g["name"] for g in games] == ["App 1", "App 2"]

    def test_unpublished_flag_in_feed_is_ignored(self):
        games = prepare_apps(IOS_URL, [{**_app(1, "ios"), "is_published": False}], 1)
        assert games[0]["is_published"] is True

    @pytest.mark.parametrize("payload", [{"apps": []}, [1, 2], [{"release_date": "yesterday"}]])
    def test_malformed_payload(self, payload):
        with pytest.raises(FeedFetchError) as exc:
            prepare_apps(IOS_URL, payload, 10)
        assert exc.value.url == IOS_URL


class TestFetchAllFeeds:

    def test_concatenates_in_feed_order(self):
        transport = _transport({IOS_URL: IOS_FEED, ANDROID_URL: ANDROID_FEED})
        games = asyncio.run(fetch_all_feeds([IOS_URL, ANDROID_URL], 2, 5, transport=transport))
        assert [(g["name"], g["platform"]) for g in games] == [
            ("App 1", "ios"), ("App 2", "ios"),
            ("App 1", "android"), ("App 2", "android"),
        ]

    @pytest.mark.parametrize("failure", [
        httpx.Response(503, text="unavailable"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.ConnectError("connection refused"),
    ])
    def test_failure_names_the_feed(self, failure):
        transport = _transport({IOS_URL: IOS_FEED, ANDROID_URL: failure})
        with pytest.raises(FeedFetchError) as exc:
            asyncio.run(fetch_all_feeds([IOS_URL, ANDROID_URL], 2, 5, transport=transport))
        assert exc.value.url == ANDROID_URL

    def test_stalled_feed_times_out(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json=[])

        transport = httpx.MockTransport(handler)
        started = time.monotonic()
        with pytest.raises(FeedFetchError) as exc:
            asyncio.run(fetch_all_feeds([IOS_URL], 2, 0.05, transport=transport))
        assert "timed out" in exc.value.reason
        assert time.monotonic() - started < 2

    def test_first_failure_cancels_other_fetches(self):
        finished = []

        async def handler(request):
            if str(request.url) == IOS_URL:
                return httpx.Response(500)
            await asyncio.sleep(1)
            finished.append(str(request.url))
            return httpx.Response(200, json=ANDROID_FEED)

        with pytest.raises(FeedFetchError) as exc:
            asyncio.run(fetch_all_feeds([IOS_URL, ANDROID_URL], 2, 5, transport=httpx.MockTransport(handler)))
        assert exc.value.url == IOS_URL
        assert finished == []


class TestPopulate:

    def test_inserts_at_most_limit_per_feed(self, store):
        transport = _transport({IOS_URL: IOS_FEED, ANDROID_URL: ANDROID_FEED})
        counts = asyncio.run(populate(store, [IOS_URL, ANDROID_URL], 2, 5, transport=transport))
        assert counts["submitted"] == 4
        assert counts["inserted"] == 4
        assert [(g.name, g.platform) for g in store.list_games()] == [
            ("App 1", "ios"), ("App 2", "ios"),
            ("App 1", "android"), ("App 2", "android"),
        ]

    def test_repopulating_skips_existing_games(self, store):
        transport = _transport({IOS_URL: IOS_FEED, ANDROID_URL: ANDROID_FEED})
        asyncio.run(populate(store, [IOS_URL, ANDROID_URL], 2, 5, transport=transport))
        counts = asyncio.run(populate(store, [IOS_URL, ANDROID_URL], 3, 5, transport=transport))
        assert counts == {"submitted": 6, "inserted": 2, "skipped": 4}
        assert len(store.list_games()) == 6

    def test_one_failed_feed_inserts_nothing(self, store):
        transport = _transport({IOS_URL: IOS_FEED, ANDROID_URL: httpx.Response(404)})
        with pytest.raises(FeedFetchError):
            asyncio.run(populate(store, [IOS_URL, ANDROID_URL], 2, 5, transport=transport))
        assert store.list_games() == []

    def test_defaults_come_from_environment(self, store, monkeypatch):
        monkeypatch.setenv("GAMES_FEED_URLS", f"{ANDROID_URL}, ")
        monkeypatch.setenv("GAMES_FEED_LIMIT", "1")
        transport = _transport({ANDROID_URL: ANDROID_FEED})
        counts = asyncio.run(populate(store, transport=transport))
        assert counts["submitted"] == 1

"""Shared fixtures: in-memory database, cache and a fake YouTube Data API."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("YOUTUBE_API_KEY", "test-key")

from typing import Dict, List, Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from tubestats.core.cache import InMemoryCacheStore  # noqa: E402
from tubestats.core.db import build_engine  # noqa: E402
from tubestats.ingestion.youtube_client import YouTubeClient  # noqa: E402
from tubestats.models import Base  # noqa: E402

BASE_URL = "https://yt.test/youtube/v3"


class FakeYouTube:
    """Serves channels.list, playlistItems.list and videos.list from dicts."""

    def __init__(self):
        self.channels: Dict[str, dict] = {}
        self.handles: Dict[str, str] = {}
        self.playlists: Dict[str, List[str]] = {}
        self.titles: Dict[str, str] = {}
        self.statistics: Dict[str, dict] = {}
        self.fail_channels: set = set()
        self.fail_statistics_for: set = set()
        self.fail_playlist_pages: set = set()
        # 200 responses with bodies of the wrong shape
        self.malformed_channels: set = set()
        self.malformed_statistics_for: set = set()
        self.malformed_playlist_pages: set = set()
        self.requests: List[httpx.Request] = []

    def add_channel(
        self,
        channel_id: str,
        title: str,
        handle: Optional[str] = None,
        videos: Optional[Dict[str, dict]] = None,
        subscribers: str = "100",
    ) -> str:
        uploads = "UU" + channel_id[2:]
        self.channels[channel_id] = {
            "id": channel_id,
            "snippet": {
                "title": title,
                "customUrl": f"@{title.lower()}",
                "thumbnails": {"high": {"url": f"https://yt3.test/{channel_id}.jpg"}},
            },
            "contentDetails": {"relatedPlaylists": {"uploads": uploads}},
            "statistics": {"subscriberCount": subscribers, "viewCount": "1000", "videoCount": str(len(videos or {}))},
        }
        if handle:
            self.handles[handle] = channel_id
        self.playlists[uploads] = list(videos or {})
        for video_id, stats in (videos or {}).items():
            self.titles[video_id] = f"Video {video_id}"
            self.statistics[video_id] = stats
        return channel_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        params = request.url.params

        if endpoint == "channels":
            channel_id = params.get("id") or self.handles.get(params.get("forHandle", ""))
            if channel_id in self.fail_channels:
                return httpx.Response(500, json={"error": {"message": "backend error"}})
            if channel_id in self.malformed_channels:
                return httpx.Response(200, json={"items": [{"id": channel_id, "snippet": "garbage"}]})
            item = self.channels.get(channel_id or "")
            return httpx.Response(200, json={"items": [item] if item else []})

        if endpoint == "playlistItems":
            video_ids = self.playlists.get(params["playlistId"], [])
            start = int(params.get("pageToken") or 0)
            if start in self.fail_playlist_pages:
                return httpx.Response(503, json={"error": {"message": "unavailable"}})
            if start in self.malformed_playlist_pages:
                return httpx.Response(200, json={"items": [{"snippet": "garbage"}], "nextPageToken": "999"})
            page_size = int(params["maxResults"])
            body: dict = {
                "items": [
                    {
                        "snippet": {
                            "title": self.titles[video_id],
                            "resourceId": {"kind": "youtube#video", "videoId": video_id},
                            "thumbnails": {"high": {"url": f"https://i.ytimg.test/vi/{video_id}/hq.jpg"}},
                        }
                    }
                    for video_id in video_ids[start : start + page_size]
                ]
            }
            if start + page_size < len(video_ids):
                body["nextPageToken"] = str(start + page_size)
            return httpx.Response(200, json=body)

        if endpoint == "videos":
            video_ids = params["id"].split(",")
            if self.fail_statistics_for.intersection(video_ids):
                return httpx.Response(500, json={"error": {"message": "backend error"}})
            if self.malformed_statistics_for.intersection(video_ids):
                return httpx.Response(200, json={"items": ["garbage"]})
            return httpx.Response(
                200,
                json={"items": [{"id": v, "statistics": self.statistics.get(v, {})} for v in video_ids]},
            )

        return httpx.Response(404, json={"error": {"message": "unknown endpoint"}})

    def calls_to(self, endpoint: str) -> int:
        return sum(1 for r in self.requests if r.url.path.endswith(f"/{endpoint}"))


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def cache():
    return InMemoryCacheStore()


@pytest.fixture
def fake_youtube():
    return FakeYouTube()


@pytest.fixture
def make_client_factory(fake_youtube):
    """Build a client factory bound to the fake API, optionally with a smaller batch size."""

    def build(batch_size: Optional[int] = None):
        def factory(quota):
            return YouTubeClient(
                quota,
                api_key="test-key",
                base_url=BASE_URL,
                http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_youtube.handler)),
                batch_size=batch_size,
            )

        return factory

    return build


@pytest.fixture
def client_factory(make_client_factory):
    return make_client_factory()

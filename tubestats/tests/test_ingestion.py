"""Ingestion orchestration tests"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from tubestats.core.exceptions import IngestionWriteError, InvalidChannelIdentifier, UpstreamError
from tubestats.ingestion.youtube_client import YouTubeClient
from tubestats.models import RefreshRun
from tubestats.services.ingestion_service import IngestionService
from tubestats.services.ranking_service import RankingService

ALPHA = "UC000000000000000000001A"
BETA = "UC000000000000000000002A"
GAMMA = "UC000000000000000000003A"


def videos(prefix, count):
    return {
        f"{prefix}{i}": {"viewCount": str(100 * (i + 1)), "likeCount": str(i + 1), "commentCount": "0"}
        for i in range(count)
    }


class TestIngestChannel:
    @pytest.fixture
    def service(self, db, cache, client_factory):
        return IngestionService(db, cache=cache, client_factory=client_factory)

    @pytest.mark.asyncio
    async def test_full_ingestion(self, service, fake_youtube, db):
        fake_youtube.add_channel(ALPHA, "Alpha", handle="@alpha", videos=videos("a", 3))

        result = await service.ingest_channel("@alpha")

        assert result.status == "success"
        assert result.channel.external_id == ALPHA
        assert result.items_processed == 3
        assert result.snapshots_appended == 3
        assert result.failed_batches == []
        assert result.quota == {
            "total": 3,
            "calls": 3,
            "by_operation": {"channels.list": 1, "playlistItems.list": 1, "videos.list": 1},
        }

        assert service.store.count_videos(channel_ids=[ALPHA]) == 3
        assert service.store.count_snapshots() == 3
        top = RankingService(db).top_videos("views", limit=1)
        assert (top[0].item_id, top[0].value) == ("a2", 300)

        run = db.get(RefreshRun, result.run_id)
        assert run.operation == "ingest_channel"
        assert run.target == "@alpha"
        assert run.status == "success"
        assert run.quota_used == 3
        assert run.snapshots_appended == 3
        assert run.ended_at is not None

    @pytest.mark.asyncio
    async def test_reingestion_appends_new_snapshots(self, service, fake_youtube):
        fake_youtube.add_channel(ALPHA, "Alpha", handle="@alpha", videos=videos("a", 3))

        await service.ingest_channel("@alpha")
        fake_youtube.statistics["a0"] = {"viewCount": "5000"}
        await service.ingest_channel("@alpha")

        assert service.store.count_channels() == 1
        assert service.store.count_videos() == 3
        assert service.store.count_snapshots() == 6

    @pytest.mark.asyncio
    async def test_channel_not_found(self, service, fake_youtube, db):
        result = await service.ingest_channel("@nobody")

        assert result.status == "not_found"
        assert result.channel is None
        assert result.quota["total"] == 1
        assert service.store.count_channels() == 0
        assert db.get(RefreshRun, result.run_id).status == "not_found"

    @pytest.mark.asyncio
    async def test_failed_batch_makes_result_partial(self, db, cache, fake_youtube, make_client_factory):
        fake_youtube.add_channel(ALPHA, "Alpha", handle="@alpha", videos=videos("a", 6))
        fake_youtube.fail_statistics_for.add("a3")
        service = IngestionService(db, cache=cache, client_factory=make_client_factory(batch_size=2))

        result = await service.ingest_channel("@alpha")

        assert result.status == "partial"
        assert result.items_processed == 6
        assert result.snapshots_appended == 4
        assert [b.item_ids for b in result.failed_batches] == [["a2", "a3"]]
        assert result.quota["by_operation"]["videos.list"] == 3

        run = db.get(RefreshRun, result.run_id)
        assert run.status == "partial"
        assert run.meta["failed_batches"] == [["a2", "a3"]]

    @pytest.mark.asyncio
    async def test_invalid_identifier(self, service, fake_youtube, db):
        with pytest.raises(InvalidChannelIdentifier):
            await service.ingest_channel("https://vimeo.com/alpha")

        assert fake_youtube.requests == []
        run = db.execute(select(RefreshRun)).scalar_one()
        assert run.status == "failure"
        assert "vimeo" in run.error_message

    @pytest.mark.asyncio
    async def test_upstream_failure_writes_nothing(self, service, fake_youtube):
        fake_youtube.add_channel(ALPHA, "Alpha", handle="@alpha", videos=videos("a", 3))
        fake_youtube.fail_channels.add(ALPHA)

        with pytest.raises(UpstreamError):
            await service.ingest_channel("@alpha")
        assert service.store.count_channels() == 0

    @pytest.mark.asyncio
    async def test_write_failure_keeps_earlier_stages(self, service, fake_youtube, db, monkeypatch):
        fake_youtube.add_channel(ALPHA, "Alpha", handle="@alpha", videos=videos("a", 3))

        def fail(descriptors):
            raise OperationalError("INSERT INTO video_statistics", {}, Exception("disk full"))

        monkeypatch.setattr(service.store, "append_snapshots", fail)

        with pytest.raises(IngestionWriteError) as exc_info:
            await service.ingest_channel("@alpha")

        assert exc_info.value.stage == "snapshots"
        assert exc_info.value.quota["total"] == 3
        assert service.store.count_channels() == 1
        assert service.store.count_videos() == 3
        assert service.store.count_snapshots() == 0
        assert db.execute(select(RefreshRun)).scalar_one().status == "failure"

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_run_failed(self, service, fake_youtube, db, monkeypatch):
        fake_youtube.add_channel(ALPHA, "Alpha", handle="@alpha", videos=videos("a", 3))

        async def explode(self, item_ids):
            raise RuntimeError("event loop closed")

        monkeypatch.setattr(YouTubeClient, "fetch_statistics", explode)

        with pytest.raises(UpstreamError, match="RuntimeError: event loop closed"):
            await service.ingest_channel("@alpha")

        run = db.execute(select(RefreshRun)).scalar_one()
        assert run.status == "failure"
        assert "event loop closed" in run.error_message
        assert run.quota_used == 2
        assert run.ended_at is not None
        assert service.store.count_channels() == 0


class TestRefreshAllChannels:
    @pytest.mark.asyncio
    async def test_refreshes_every_channel(self, db, cache, fake_youtube, client_factory):
        service = IngestionService(db, cache=cache, client_factory=client_factory)
        for channel_id, title in ((ALPHA, "Alpha"), (BETA, "Beta"), (GAMMA, "Gamma")):
            fake_youtube.add_channel(channel_id, title, handle=f"@{title.lower()}")
            await service.ingest_channel(f"@{title.lower()}")

        fake_youtube.channels[ALPHA]["statistics"]["subscriberCount"] = "999"
        fake_youtube.fail_channels.add(BETA)
        del fake_youtube.channels[GAMMA]

        result = await service.refresh_all_channels()

        outcomes = {o.channel_id: o for o in result.outcomes}
        assert len(outcomes) == 3
        assert outcomes[ALPHA].status == "success"
        assert outcomes[BETA].status == "failed"
        assert "500" in outcomes[BETA].error
        assert outcomes[GAMMA].status == "not_found"
        assert (result.succeeded, result.failed) == (2, 1)
        assert result.quota["by_operation"] == {"channels.list": 3}

        db.expire_all()
        assert service.store.get_channel(ALPHA).follower_count == 999
        assert db.get(RefreshRun, result.run_id).status == "partial"

    @pytest.mark.asyncio
    async def test_no_channels(self, db, cache, client_factory):
        result = await IngestionService(db, cache=cache, client_factory=client_factory).refresh_all_channels()
        assert result.outcomes == []
        assert result.quota["total"] == 0
        assert db.get(RefreshRun, result.run_id).status == "success"

    @pytest.mark.asyncio
    async def test_aborted_refresh_marks_run_failed(self, db, cache, client_factory, monkeypatch):
        service = IngestionService(db, cache=cache, client_factory=client_factory)

        def explode():
            raise OperationalError("SELECT channels", {}, Exception("connection reset"))

        monkeypatch.setattr(service.store, "channel_ids", explode)

        with pytest.raises(OperationalError):
            await service.refresh_all_channels()

        run = db.execute(select(RefreshRun)).scalar_one()
        assert run.operation == "refresh_all"
        assert run.status == "failure"
        assert "connection reset" in run.error_message

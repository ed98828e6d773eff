"""Snapshot store tests"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from tubestats.models import Channel, Video, VideoStatistics
from tubestats.schemas.upstream import ChannelDescriptor, ItemDescriptor, StatisticsDescriptor
from tubestats.services.snapshot_store import SnapshotStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def channel(external_id="UCalpha", name="Alpha", followers=10):
    return ChannelDescriptor(
        external_id=external_id,
        name=name,
        thumbnail_url=f"https://yt3.test/{external_id}.jpg",
        upload_handle="UU" + external_id[2:],
        follower_count=followers,
        view_count=100,
        item_count=2,
    )


class TestSnapshotStore:
    @pytest.fixture
    def store(self, db):
        return SnapshotStore(db)

    def test_upsert_channel_is_idempotent(self, store, db):
        first = store.upsert_channel(channel(followers=10))
        created_at, updated_at = first.created_at, first.updated_at

        second = store.upsert_channel(channel(followers=25))

        assert db.execute(select(Channel)).scalars().all() == [second]
        assert second.follower_count == 25
        assert second.created_at == created_at
        assert second.updated_at > updated_at

    def test_upsert_items_updates_title_only(self, store, db, monkeypatch):
        store.upsert_channel(channel())
        monkeypatch.setattr("tubestats.services.snapshot_store.utcnow", lambda: T0)
        assert store.upsert_items([ItemDescriptor(item_id="v1", title="Old")], "UCalpha") == 1
        created_at = store.get_video("v1").created_at
        updated_at = store.get_video("v1").updated_at

        monkeypatch.setattr("tubestats.services.snapshot_store.utcnow", lambda: T0 + timedelta(hours=1))
        store.upsert_items([ItemDescriptor(item_id="v1", title="New", thumbnail_url="https://t/v1.jpg")], "UCalpha")

        db.expire_all()
        video = store.get_video("v1")
        assert video.title == "New"
        assert video.thumbnail_url == "https://t/v1.jpg"
        assert video.url == "https://www.youtube.com/watch?v=v1"
        assert video.created_at == created_at
        assert video.updated_at > updated_at
        assert store.count_videos() == 1

    def test_upsert_items_dedupes_within_call(self, store):
        store.upsert_channel(channel())
        count = store.upsert_items(
            [ItemDescriptor(item_id="v1", title="A"), ItemDescriptor(item_id="v1", title="B")],
            "UCalpha",
        )
        assert count == 1
        assert store.get_video("v1").title == "B"

    def test_upsert_items_empty(self, store):
        assert store.upsert_items([], "UCalpha") == 0

    def test_snapshots_are_appended(self, store):
        store.upsert_channel(channel())
        store.upsert_items([ItemDescriptor(item_id="v1", title="A")], "UCalpha")

        for hours in range(3):
            appended = store.append_snapshots(
                [StatisticsDescriptor(item_id="v1", statistics={"viewCount": str(hours)}, recorded_at=T0 + timedelta(hours=hours))]
            )
            assert appended == 1

        snapshots = store.list_snapshots(item_ids=["v1"])
        assert [s.statistics["viewCount"] for s in snapshots] == ["2", "1", "0"]
        assert store.count_snapshots() == 3

    def test_snapshot_for_unknown_video_is_rejected(self, store):
        from sqlalchemy.exc import IntegrityError

        with pytest.raises(IntegrityError):
            store.append_snapshots([StatisticsDescriptor(item_id="ghost", recorded_at=T0)])
        assert store.count_snapshots() == 0

    def test_deleting_channel_cascades(self, store, db):
        store.upsert_channel(channel())
        store.upsert_items([ItemDescriptor(item_id="v1", title="A"), ItemDescriptor(item_id="v2", title="B")], "UCalpha")
        store.append_snapshots([StatisticsDescriptor(item_id="v1", recorded_at=T0)])

        db.delete(store.get_channel("UCalpha"))
        db.commit()

        assert db.execute(select(Video)).scalars().all() == []
        assert db.execute(select(VideoStatistics)).scalars().all() == []

    def test_list_and_count_channels(self, store):
        store.upsert_channel(channel("UCbeta", "Beta"))
        store.upsert_channel(channel("UCalpha", "Alpha"))
        store.upsert_channel(channel("UCgamma", "Gamma"))

        assert [c.name for c in store.list_channels()] == ["Alpha", "Beta", "Gamma"]
        assert [c.name for c in store.list_channels(limit=1, offset=1)] == ["Beta"]
        assert [c.name for c in store.list_channels(q="amm")] == ["Gamma"]
        assert store.count_channels(q="a") == 3
        assert store.channel_ids() == ["UCalpha", "UCbeta", "UCgamma"]

    def test_list_videos_filters(self, store):
        store.upsert_channel(channel("UCalpha", "Alpha"))
        store.upsert_channel(channel("UCbeta", "Beta"))
        store.upsert_items([ItemDescriptor(item_id="a1", title="Cooking pasta")], "UCalpha")
        store.upsert_items([ItemDescriptor(item_id="b1", title="Cooking rice")], "UCbeta")

        assert [v.item_id for v in store.list_videos(channel_ids=["UCbeta"])] == ["b1"]
        assert {v.item_id for v in store.list_videos(q="cooking")} == {"a1", "b1"}
        assert store.count_videos(channel_ids=["UCalpha"], q="rice") == 0

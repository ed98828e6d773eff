"""Bounded concurrent refresh tests"""

import asyncio

import pytest

from tubestats.ingestion.scheduler import RefreshScheduler


class TestRefreshScheduler:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self):
        channel_ids = [f"ch{i}" for i in range(10)]

        async def refresh_one(channel_id):
            await asyncio.sleep(0.001)
            if channel_id == "ch4":
                raise RuntimeError("quota exceeded")
            return "success"

        outcomes = await RefreshScheduler(limit=5).run(channel_ids, refresh_one)

        assert len(outcomes) == 10
        assert sorted(o.channel_id for o in outcomes) == sorted(channel_ids)
        failed = [o for o in outcomes if not o.ok]
        assert len(failed) == 1
        assert failed[0].channel_id == "ch4"
        assert failed[0].status == "failed"
        assert failed[0].error == "quota exceeded"
        assert sum(1 for o in outcomes if o.status == "success") == 9

    @pytest.mark.asyncio
    async def test_concurrency_limit(self):
        in_flight = 0
        peak = 0

        async def refresh_one(channel_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return "success"

        outcomes = await RefreshScheduler(limit=3).run([f"ch{i}" for i in range(12)], refresh_one)

        assert len(outcomes) == 12
        assert peak == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_a_failure(self):
        async def refresh_one(channel_id):
            return "not_found"

        outcomes = await RefreshScheduler(limit=2).run(["gone"], refresh_one)
        assert outcomes[0].status == "not_found"
        assert outcomes[0].ok

    @pytest.mark.asyncio
    async def test_no_channels(self):
        async def refresh_one(channel_id):
            raise AssertionError("must not be called")

        assert await RefreshScheduler(limit=5).run([], refresh_one) == []

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            RefreshScheduler(limit=-1)

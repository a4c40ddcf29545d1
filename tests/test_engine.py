import logging
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from conftest import SCOPE, FakeGateway
from warden.config import Settings
from warden.database.models import ClockTime
from warden.database.store import MemoryConfigStore, SqlConfigStore, lockhour_key
from warden.engine import ModerationEngine
from warden.platform import Member
from warden.services.lock_hours import get_lockhour_job_names


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        storage_backend="memory",
        muted_role_name="Silenced",
        max_roles_per_command=3,
        lock_hour_utc_offset_minutes=0,
        session_ttl_seconds=30,
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = ModerationEngine.from_settings(FakeGateway(), settings)
    yield engine
    await engine.shutdown()


class TestWiring:
    @pytest.mark.asyncio
    async def test_components_follow_settings(self, engine):
        assert isinstance(engine.store, MemoryConfigStore)
        assert engine.authorization.max_roles == 3
        assert engine.mutes.role_name == "Silenced"
        assert engine.sessions.ttl_seconds == 30
        assert engine.lock_hours.tz.utcoffset(None).total_seconds() == 0
        assert engine.mutes.scheduler is engine.lock_hours.scheduler

    @pytest.mark.asyncio
    async def test_custom_rank_comparator(self, settings):
        def never(first, second):
            return 0

        engine = ModerationEngine(FakeGateway(), MemoryConfigStore(), settings, compare_rank=never)

        assert engine.warns.compare_rank is never
        assert engine.mutes.compare_rank is never

    @pytest.mark.asyncio
    async def test_sqlite_backend(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = Settings(
                _env_file=None,
                storage_backend="sqlite",
                database_path=str(Path(tmpdir) / "warden.db"),
            )

            engine = ModerationEngine.from_settings(FakeGateway(), settings)

            assert isinstance(engine.store, SqlConfigStore)
            await engine.shutdown()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_restores_lock_hours(self, engine):
        await engine.store.set(
            lockhour_key(SCOPE),
            {"enabled": True, "start": {"hour": 22, "minute": 0}, "end": {"hour": 6, "minute": 0}},
        )

        await engine.start([SCOPE])

        assert engine.scheduler.running
        for job_id in get_lockhour_job_names(SCOPE):
            assert engine.scheduler.get_job(job_id) is not None

    @pytest.mark.asyncio
    async def test_start_without_scopes_warns(self, engine, caplog):
        with caplog.at_level(logging.WARNING, logger="warden.engine"):
            await engine.start()

        assert "lock hours were not restored" in caplog.text

    @pytest.mark.asyncio
    async def test_start_twice_is_harmless(self, engine):
        await engine.start()
        await engine.start()

        assert engine.scheduler.running

    @pytest.mark.asyncio
    async def test_shutdown_cancels_mutes_and_stops_scheduler(self, engine):
        await engine.start()
        gateway = engine.mutes.gateway
        gateway.add_member(SCOPE, "user-1", rank=1)
        issuer = Member(id="mod-1", rank=10)

        await engine.mutes.mute(SCOPE, "user-1", 60_000, "spam", issuer)
        await engine.shutdown()

        assert engine.mutes.active_mutes(SCOPE) == []
        assert not engine.scheduler.running

    @pytest.mark.asyncio
    async def test_lock_hours_survive_restart(self, settings):
        store = MemoryConfigStore()
        first = ModerationEngine(FakeGateway(), store, settings)
        await first.start()
        await first.lock_hours.configure(SCOPE, ClockTime(hour=22), ClockTime(hour=6), "admin-1")
        first.mutes.cancel_all()
        first.scheduler.shutdown(wait=False)

        second = ModerationEngine(FakeGateway(), store, settings)
        await second.start([SCOPE])

        assert second.lock_hours.next_runs(SCOPE)[0] is not None
        await second.shutdown()

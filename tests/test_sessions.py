import pytest

from warden.errors import NotFound, SessionMismatch
from warden.services.sessions import SessionRegistry


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return SessionRegistry(ttl_seconds=120, clock=clock)


class TestOpen:
    def test_returns_unique_opaque_nonces(self, registry):
        first = registry.open("admin-1", "mute", "role-mods")
        second = registry.open("admin-1", "mute", "role-mods")

        assert first != second
        assert "admin-1" not in first
        assert len(registry) == 2

    def test_payload_is_kept(self, registry):
        nonce = registry.open("admin-1", "lockhour", page=2)

        session = registry.resolve(nonce, "admin-1")

        assert session.action == "lockhour"
        assert session.role_id is None
        assert session.payload == {"page": 2}

    def test_open_purges_expired(self, registry, clock):
        registry.open("admin-1", "mute")
        clock.now += 121

        registry.open("admin-1", "warn")

        assert len(registry) == 1


class TestResolve:
    def test_owner_resolves(self, registry):
        nonce = registry.open("admin-1", "ban", "role-mods")

        session = registry.resolve(nonce, "admin-1")

        assert session.nonce == nonce
        assert session.role_id == "role-mods"

    def test_other_actor_rejected(self, registry):
        nonce = registry.open("admin-1", "ban", "role-mods")

        with pytest.raises(SessionMismatch):
            registry.resolve(nonce, "admin-2")

        assert registry.resolve(nonce, "admin-1").actor_id == "admin-1"

    def test_unknown_nonce(self, registry):
        with pytest.raises(NotFound):
            registry.resolve("bogus", "admin-1")

    def test_expired_nonce(self, registry, clock):
        nonce = registry.open("admin-1", "ban")
        clock.now += 120

        with pytest.raises(NotFound):
            registry.resolve(nonce, "admin-1")

        assert len(registry) == 0

    def test_still_valid_before_ttl(self, registry, clock):
        nonce = registry.open("admin-1", "ban")
        clock.now += 119

        assert registry.resolve(nonce, "admin-1").action == "ban"


class TestCloseAndPurge:
    def test_close(self, registry):
        nonce = registry.open("admin-1", "ban")

        registry.close(nonce)
        registry.close(nonce)

        with pytest.raises(NotFound):
            registry.resolve(nonce, "admin-1")

    def test_purge_counts_removed(self, registry, clock):
        registry.open("admin-1", "ban")
        registry.open("admin-2", "mute")
        clock.now += 60
        registry.open("admin-3", "warn")
        clock.now += 61

        assert registry.purge() == 2
        assert len(registry) == 1

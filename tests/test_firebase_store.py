"""
Tests for the remote document store.

The aiohttp session is replaced by a mock returning canned responses.
"""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from warden.database.firebase import FirebaseConfigStore
from warden.errors import BackendUnavailable

BASE_URL = "https://example.firebaseio.com"


def make_response(status, payload=None):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


@pytest.fixture
def session():
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    return session


@pytest.fixture
def store(session):
    return FirebaseConfigStore(BASE_URL + "/", session=session)


class TestUrlFor:
    def test_maps_key_to_json_document(self, store):
        assert store.url_for("scope/g1/lockdown") == f"{BASE_URL}/scope/g1/lockdown.json"

    def test_encodes_each_segment(self, store):
        url = store.url_for("scope/g 1/warns/a#b")

        assert url == f"{BASE_URL}/scope/g%201/warns/a%23b.json"


class TestLoad:
    @pytest.mark.asyncio
    async def test_returns_document(self, store, session):
        session.get = MagicMock(return_value=make_response(200, {"count": 3}))

        assert await store.load("scope/g1/warns/u1") == {"count": 3}
        session.get.assert_called_once_with(f"{BASE_URL}/scope/g1/warns/u1.json")

    @pytest.mark.asyncio
    async def test_null_body_is_absent(self, store, session):
        session.get = MagicMock(return_value=make_response(200, None))

        assert await store.load("scope/g1/warns/u1") is None
        assert await store.get("scope/g1/warns/u1", {"count": 0}) == {"count": 0}

    @pytest.mark.asyncio
    async def test_http_error_raises_backend_unavailable(self, store, session):
        session.get = MagicMock(return_value=make_response(503))

        with pytest.raises(BackendUnavailable):
            await store.load("scope/g1/lockdown")

    @pytest.mark.asyncio
    async def test_connection_error_degrades_in_get(self, store, session):
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("unreachable"))

        assert await store.get("scope/g1/lockdown", {}) == {}
        with pytest.raises(BackendUnavailable):
            await store.load("scope/g1/lockdown")


class TestWrite:
    @pytest.mark.asyncio
    async def test_set_puts_json(self, store, session):
        session.put = MagicMock(return_value=make_response(200, {"c1": "deny"}))

        await store.set("scope/g1/lockdown", {"c1": "deny"})

        session.put.assert_called_once_with(
            f"{BASE_URL}/scope/g1/lockdown.json", json={"c1": "deny"}
        )

    @pytest.mark.asyncio
    async def test_set_failure_is_surfaced(self, store, session):
        session.put = MagicMock(return_value=make_response(401))

        with pytest.raises(BackendUnavailable):
            await store.set("scope/g1/lockdown", {})

    @pytest.mark.asyncio
    async def test_set_transport_failure_is_surfaced(self, store, session):
        session.put = MagicMock(side_effect=aiohttp.ClientConnectionError("reset"))

        with pytest.raises(BackendUnavailable):
            await store.set("scope/g1/lockdown", {})

    @pytest.mark.asyncio
    async def test_delete(self, store, session):
        session.delete = MagicMock(return_value=make_response(200, None))

        await store.delete("scope/g1/lockhour")

        session.delete.assert_called_once_with(f"{BASE_URL}/scope/g1/lockhour.json")

    @pytest.mark.asyncio
    async def test_delete_failure_is_surfaced(self, store, session):
        session.delete = MagicMock(return_value=make_response(500))

        with pytest.raises(BackendUnavailable):
            await store.delete("scope/g1/lockhour")


class TestClose:
    @pytest.mark.asyncio
    async def test_injected_session_is_left_open(self, store, session):
        await store.close()

        session.close.assert_not_called()

"""HTTP surface tests. The lifespan does not run under ASGITransport, so state is wired by hand."""

import httpx
import pytest

from conftest import FakeDirectory, page
from globalfm.bookmarks import BookmarkStore
from globalfm.cache import CACHE_DURATION
from globalfm.catalog import CatalogService
from globalfm.main import app

pytestmark = pytest.mark.anyio


@pytest.fixture
def directory():
    return FakeDirectory({0: page(0), 200: page(200)})


@pytest.fixture
async def client(directory, memory_cache, tmp_path):
    app.state.catalog = CatalogService(
        client=directory, cache=memory_cache, page_size=200, secondary_languages=(), autostart=False
    )
    app.state.bookmarks = BookmarkStore(tmp_path / "bookmarks.json")
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def test_stations_triggers_cold_start(client, directory):
    response = await client.get("/api/stations", params={"limit": 5})

    assert response.status_code == 200
    body = response.json()
    assert len(body) == 5
    assert body[0]["stream_url"].startswith("https://")
    assert directory.calls == [0]


async def test_search_uses_published_snapshot(client):
    await client.get("/api/stations")

    response = await client.get("/api/stations/search", params={"q": "Station 19"})

    names = [s["name"] for s in response.json()]
    assert "Station 19" in names
    assert all("station 19" in n.lower() for n in names)


async def test_status_and_refresh(client, directory):
    await client.get("/api/stations")
    await app.state.catalog.load_next_page()

    status = (await client.get("/api/stations/status")).json()
    assert status["offset"] == 400
    assert status["published"] == 400

    response = await client.post("/api/stations/refresh")
    assert response.json() == {"stations": 200}
    assert directory.calls == [0, 200, 0]


async def test_bookmark_toggle_round_trip(client):
    first = await client.post("/api/bookmarks/st-00001")
    assert first.json() == {"station_id": "st-00001", "bookmarked": True}
    assert (await client.get("/api/bookmarks")).json() == ["st-00001"]

    second = await client.post("/api/bookmarks/st-00001")
    assert second.json()["bookmarked"] is False
    assert (await client.get("/api/bookmarks")).json() == []


async def test_favicon_is_silenced(client):
    assert (await client.get("/favicon.ico")).status_code == 204


async def test_stations_starts_new_cycle_after_expiry(client, directory, clock):
    await client.get("/api/stations")

    clock[0] += CACHE_DURATION + 1
    response = await client.get("/api/stations")

    assert len(response.json()) == 200
    assert directory.calls == [0, 0]
    assert app.state.catalog.generation == 2

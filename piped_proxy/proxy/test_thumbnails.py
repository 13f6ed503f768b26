import httpx
import pytest

from piped_proxy.proxy.thumbnails import best_thumbnail_path, wants_best_thumbnail
from piped_proxy.utils_tests.fake_upstream import FakeUpstream

THUMBS = "https://i.ytimg.com/vi/ID"


def test_wants_best_thumbnail():
    assert wants_best_thumbnail("/vi/ID/maxres.jpg")
    assert not wants_best_thumbnail("/vi/ID/maxresdefault.jpg")
    assert not wants_best_thumbnail("/vi/ID/hqdefault.jpg")


@pytest.mark.asyncio
async def test_first_available_candidate_wins():
    upstream = FakeUpstream()
    upstream.add("HEAD", f"{THUMBS}/maxresdefault.jpg", httpx.Response(404))
    upstream.add("HEAD", f"{THUMBS}/sddefault.jpg", httpx.Response(200))
    upstream.add("HEAD", f"{THUMBS}/hqdefault.jpg", httpx.Response(200))

    async with upstream.client() as client:
        result = await best_thumbnail_path(client, "/vi/ID/maxres.jpg")

    assert result == "/vi/ID/sddefault.jpg"
    assert upstream.urls("HEAD") == [
        f"{THUMBS}/maxresdefault.jpg",
        f"{THUMBS}/sddefault.jpg",
    ]


@pytest.mark.asyncio
async def test_maxres_used_when_present():
    upstream = FakeUpstream()
    upstream.add("HEAD", f"{THUMBS}/maxresdefault.jpg", httpx.Response(200))

    async with upstream.client() as client:
        result = await best_thumbnail_path(client, "/vi/ID/maxres.jpg")

    assert result == "/vi/ID/maxresdefault.jpg"
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_falls_back_to_mqdefault_when_nothing_found():
    upstream = FakeUpstream()

    async with upstream.client() as client:
        result = await best_thumbnail_path(client, "/vi/ID/maxres.jpg")

    assert result == "/vi/ID/mqdefault.jpg"
    assert len(upstream.urls("HEAD")) == 4


@pytest.mark.asyncio
async def test_probe_errors_count_as_misses():
    upstream = FakeUpstream()
    upstream.add("HEAD", f"{THUMBS}/maxresdefault.jpg", httpx.ConnectError("refused"))
    upstream.add("HEAD", f"{THUMBS}/sddefault.jpg", httpx.ReadTimeout("slow"))
    upstream.add("HEAD", f"{THUMBS}/hqdefault.jpg", httpx.Response(200))

    async with upstream.client() as client:
        result = await best_thumbnail_path(client, "/vi/ID/maxres.jpg")

    assert result == "/vi/ID/hqdefault.jpg"


@pytest.mark.asyncio
async def test_all_probes_failing_falls_back_to_mqdefault():
    upstream = FakeUpstream()
    for name in ("maxresdefault", "sddefault", "hqdefault", "mqdefault"):
        upstream.add("HEAD", f"{THUMBS}/{name}.jpg", httpx.ConnectError("refused"))

    async with upstream.client() as client:
        result = await best_thumbnail_path(client, "/vi/ID/maxres.jpg")

    assert result == "/vi/ID/mqdefault.jpg"

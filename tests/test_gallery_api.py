"""Tests for the remote gallery API client."""

from __future__ import annotations

import json

import httpx

from folio_gallery.clients.gallery_api import GalleryApiClient
from folio_gallery.config import settings
from folio_gallery.gallery import GalleryEntry


def make_client(handler, token: str | None = None) -> GalleryApiClient:
    return GalleryApiClient(
        base_url="http://gallery.test",
        token=token,
        transport=httpx.MockTransport(handler),
    )


class TestListEntries:
    """GET /api/gallery."""

    async def test_normalizes_remote_shape(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/api/gallery"
            return httpx.Response(
                200,
                json=[
                    {
                        "_id": "r1",
                        "title": "Harbor",
                        "imageUrl": "https://cdn.example.com/h.jpg",
                        "createdAt": "2024-01-01T00:00:00Z",
                    },
                    {"_id": "r2", "title": "Dunes", "src": "/assets/gallery/2.webp"},
                ],
            )

        async with make_client(handler) as api:
            entries = await api.list_entries()

        assert [e.id for e in entries] == ["r1", "r2"]
        assert entries[0].image_ref == "https://cdn.example.com/h.jpg"
        assert entries[0].timestamp == 1_704_067_200_000
        assert entries[1].image_ref == "/assets/gallery/2.webp"

    async def test_skips_malformed_items(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"_id": "r1"}, {"title": "no id"}])

        async with make_client(handler) as api:
            entries = await api.list_entries()
        assert [e.id for e in entries] == ["r1"]

    async def test_non_list_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "nope"})

        async with make_client(handler) as api:
            assert await api.list_entries() is None

    async def test_http_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "boom"})

        async with make_client(handler) as api:
            assert await api.list_entries() is None

    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as api:
            assert await api.list_entries() is None

    async def test_non_json_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        async with make_client(handler) as api:
            assert await api.list_entries() is None


class TestMutations:
    """POST/PUT/DELETE."""

    async def test_create_sends_remote_shape_and_token(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["token"] = request.headers.get("x-auth-token")
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={**captured["body"], "createdAt": 1000})

        entry = GalleryEntry(id="g1", title="Sunset", alt="Sun", image_ref="img:g1")
        async with make_client(handler, token="secret") as api:
            created = await api.create_entry(entry)

        assert captured["method"] == "POST"
        assert captured["token"] == "secret"
        assert captured["body"] == {
            "_id": "g1",
            "title": "Sunset",
            "description": "",
            "alt": "Sun",
            "imageUrl": settings.default_image_path,
        }
        assert created.id == "g1"
        assert created.timestamp == 1000

    async def test_direct_url_sent_unchanged(self) -> None:
        sent: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            sent.append(body["imageUrl"])
            return httpx.Response(200, json=body)

        entry = GalleryEntry(id="g1", image_ref="https://cdn.example.com/a.jpg")
        async with make_client(handler) as api:
            await api.update_entry(entry)
        assert sent == ["https://cdn.example.com/a.jpg"]

    async def test_no_token_header_by_default(self) -> None:
        seen: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("x-auth-token"))
            return httpx.Response(200, json=[])

        async with make_client(handler, token=None) as api:
            await api.list_entries()
        assert seen == [None]

    async def test_update_targets_entry(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PUT"
            assert request.url.path == "/api/gallery/g1"
            return httpx.Response(200, json=json.loads(request.content))

        async with make_client(handler) as api:
            updated = await api.update_entry(GalleryEntry(id="g1", title="New"))
        assert updated.title == "New"

    async def test_delete(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            return httpx.Response(200, json={"msg": "deleted"})

        async with make_client(handler) as api:
            assert await api.delete_entry("g1") is True

    async def test_delete_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"msg": "not found"})

        async with make_client(handler) as api:
            assert await api.delete_entry("g1") is False

    async def test_malformed_create_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"ok": True})

        async with make_client(handler) as api:
            assert await api.create_entry(GalleryEntry(id="g1")) is None

"""Async client for the remote gallery REST API.

The remote service is consulted opportunistically: every method returns None
(or False) on transport errors, HTTP errors and malformed responses, so its
unavailability never blocks a Gallery Store operation.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError

from folio_gallery.config import settings
from folio_gallery.gallery.schemas import GalleryEntry

logger = logging.getLogger(__name__)

GALLERY_PATH = "/api/gallery"


class GalleryApiClient:
    """Client for `GET/POST/PUT/DELETE /api/gallery`.

    Usage:
        async with GalleryApiClient("http://localhost:5000") as api:
            entries = await api.list_entries()
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        token = token or settings.api_token
        if token:
            headers["x-auth-token"] = token

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url or "",
            timeout=timeout or settings.api_timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> GalleryApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_entries(self) -> list[GalleryEntry] | None:
        """Fetch every remote entry, normalized. None if the API is unavailable."""
        body = await self._request("GET", GALLERY_PATH)
        if body is None:
            return None
        if not isinstance(body, list):
            logger.warning(
                "[API] GET %s returned %s, expected a list", GALLERY_PATH, type(body).__name__
            )
            return None

        entries: list[GalleryEntry] = []
        for item in body:
            try:
                entries.append(GalleryEntry.model_validate(item))
            except ValidationError:
                logger.warning("[API] skipping malformed remote entry: %r", item)
        return entries

    async def create_entry(self, entry: GalleryEntry) -> GalleryEntry | None:
        body = await self._request("POST", GALLERY_PATH, json=self._to_remote(entry))
        return self._parse_entry(body)

    async def update_entry(self, entry: GalleryEntry) -> GalleryEntry | None:
        body = await self._request(
            "PUT", f"{GALLERY_PATH}/{entry.id}", json=self._to_remote(entry)
        )
        return self._parse_entry(body)

    async def delete_entry(self, entry_id: str) -> bool:
        body = await self._request("DELETE", f"{GALLERY_PATH}/{entry_id}")
        return body is not None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("[API] %s %s → HTTP %d", method, path, e.response.status_code)
            return None
        except httpx.HTTPError as e:
            logger.warning("[API] %s %s unavailable: %s", method, path, e)
            return None
        except ValueError:
            logger.warning("[API] %s %s returned a non-JSON body", method, path)
            return None

        elapsed = (time.time() - start_time) * 1000  # ms
        logger.info("[API] %s %s → %d (%.0fms)", method, path, response.status_code, elapsed)
        return body

    def _parse_entry(self, body: Any) -> GalleryEntry | None:
        if body is None:
            return None
        try:
            return GalleryEntry.model_validate(body)
        except ValidationError:
            logger.warning("[API] malformed entry in response: %r", body)
            return None

    def _to_remote(self, entry: GalleryEntry) -> dict[str, Any]:
        """Entry in the remote service's field names.

        `img:` refs only resolve against local blob storage, so the remote
        gets the default image path for them.
        """
        image_url = settings.default_image_path if entry.blob_key is not None else entry.image_ref
        return {
            "_id": entry.id,
            "title": entry.title,
            "description": entry.description,
            "alt": entry.alt,
            "imageUrl": image_url,
        }

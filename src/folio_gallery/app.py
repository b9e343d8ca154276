"""FastAPI application for folio-gallery."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from folio_gallery import __version__
from folio_gallery.context import open_gallery
from folio_gallery.db import init_db
from folio_gallery.errors import NotFoundError, StorageFailure
from folio_gallery.gallery import EntryInput, GalleryEntry, GalleryStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    await init_db()
    async with open_gallery("api", watch=True) as store:
        app.state.store = store
        yield


app = FastAPI(
    title="folio-gallery",
    description="Durable, synchronized gallery entries and compressed image blobs",
    version=__version__,
    lifespan=lifespan,
)


def get_store(request: Request) -> GalleryStore:
    return request.app.state.store


StoreDep = Annotated[GalleryStore, Depends(get_store)]


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_507_INSUFFICIENT_STORAGE, content={"detail": str(exc)}
    )


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.get("/gallery")
async def list_entries(store: StoreDep) -> list[GalleryEntry]:
    return store.list()


@app.post("/gallery", status_code=status.HTTP_201_CREATED)
async def add_entry(body: EntryInput, store: StoreDep) -> GalleryEntry:
    """Add an entry. An inline data URI in `image_ref` is moved to the blob store."""
    return await store.add(body)


@app.put("/gallery/{entry_id}")
async def update_entry(entry_id: str, body: EntryInput, store: StoreDep) -> GalleryEntry:
    return await store.update({**body.supplied(), "id": entry_id})


@app.delete("/gallery/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(entry_id: str, store: StoreDep) -> None:
    await store.delete(entry_id)


@app.post("/gallery/refresh")
async def refresh(store: StoreDep) -> dict[str, Any]:
    """Reload the list from durable storage."""
    outcome = await store.refresh_from_storage()
    return {"status": outcome.status.value, "count": outcome.count, "error": outcome.error}


@app.get("/gallery/last-update")
async def last_update(store: StoreDep) -> dict[str, int]:
    return {"last_update": store.last_update}


@app.get("/images")
async def list_images(store: StoreDep) -> list[str]:
    return await store.images.list_images()


@app.get("/images/{key}")
async def get_image(key: str, store: StoreDep) -> dict[str, Any]:
    image = await store.images.get_image(key)
    if image is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No image {key!r}")
    return {
        "key": key,
        "data": image.data,
        "metadata": image.metadata,
        "is_default": image.is_default,
    }

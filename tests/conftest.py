"""Shared pytest fixtures for folio-gallery tests."""

from __future__ import annotations

import io
from collections.abc import AsyncGenerator, Callable
from typing import TYPE_CHECKING, Any

import pytest
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from folio_gallery.db import init_db, make_session_factory
from folio_gallery.gallery import GalleryStore
from folio_gallery.images import ImageBlobStore
from folio_gallery.storage import KeyValueStorage
from folio_gallery.utils.media import build_data_uri

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


class FakeClock:
    """Strictly increasing epoch-ms clock, one tick per call."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite database file shared by every context in a test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gallery.db'}", echo=False)
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(test_engine)


@pytest.fixture
def make_storage(
    session_factory: async_sessionmaker[AsyncSession], clock: FakeClock
) -> Callable[..., KeyValueStorage]:
    """Factory for storage handles; one per simulated context."""

    def _make(writer_id: str = "ctx-a", quota_bytes: int | None = None) -> KeyValueStorage:
        return KeyValueStorage(
            session_factory, writer_id=writer_id, quota_bytes=quota_bytes, clock=clock
        )

    return _make


@pytest.fixture
def storage(make_storage: Callable[..., KeyValueStorage]) -> KeyValueStorage:
    return make_storage()


@pytest.fixture
def images(storage: KeyValueStorage, clock: FakeClock) -> ImageBlobStore:
    return ImageBlobStore(storage, clock=clock)


@pytest.fixture
def make_store(
    make_storage: Callable[..., KeyValueStorage], clock: FakeClock
) -> Callable[..., GalleryStore]:
    """Factory for Gallery Stores sharing one database."""

    def _make(
        writer_id: str = "ctx-a",
        *,
        quota_bytes: int | None = None,
        api: Any = None,
    ) -> GalleryStore:
        storage = make_storage(writer_id, quota_bytes)
        return GalleryStore(storage, ImageBlobStore(storage, clock=clock), api=api, clock=clock)

    return _make


@pytest.fixture
def store(make_store: Callable[..., GalleryStore]) -> GalleryStore:
    return make_store()


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    """Factory for real encoded images."""

    def _make(
        width: int = 64,
        height: int = 48,
        *,
        fmt: str = "PNG",
        color: tuple[int, int, int] = (200, 80, 40),
    ) -> bytes:
        out = io.BytesIO()
        Image.new("RGB", (width, height), color).save(out, format=fmt)
        return out.getvalue()

    return _make


@pytest.fixture
def make_data_uri(make_image_bytes: Callable[..., bytes]) -> Callable[..., str]:
    """Factory for inline image data URIs, as UI uploads arrive."""

    def _make(width: int = 64, height: int = 48, *, fmt: str = "PNG", **kwargs: Any) -> str:
        data = make_image_bytes(width, height, fmt=fmt, **kwargs)
        return build_data_uri(data, f"image/{fmt.lower()}")

    return _make

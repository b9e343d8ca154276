"""StorageItem model backing the durable key-value storage."""

from __future__ import annotations

from sqlalchemy import BigInteger, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from folio_gallery.models.base import Base


class StorageItem(Base):
    """One key/value pair in durable storage.

    `writer_id` records which context wrote the value last, so watchers can
    tell their own writes apart from writes made by other contexts.
    """

    __tablename__ = "storage_items"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    writer_id: Mapped[str] = mapped_column(String(64))
    updated_at: Mapped[int] = mapped_column(BigInteger)  # epoch ms
    size_bytes: Mapped[int] = mapped_column(Integer)

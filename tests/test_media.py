"""Tests for data URI handling and image format probing."""

import base64
from pathlib import Path

import pytest

from folio_gallery.utils.media import (
    build_data_uri,
    file_to_data_uri,
    is_data_uri,
    mime_for_path,
    parse_data_uri,
    probe_image_format,
)


class TestProbeImageFormat:
    """Tests for magic-byte detection."""

    def test_png(self) -> None:
        assert probe_image_format(b"\x89PNG\r\n\x1a\n" + b"\x00" * 10) == "png"

    def test_jpeg(self) -> None:
        assert probe_image_format(b"\xff\xd8\xff\xe0" + b"\x00" * 10) == "jpeg"

    def test_gif(self) -> None:
        assert probe_image_format(b"GIF89a" + b"\x00" * 10) == "gif"

    def test_webp(self) -> None:
        assert probe_image_format(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "webp"

    def test_riff_non_image(self) -> None:
        # WAV files are RIFF containers too
        assert probe_image_format(b"RIFF\x00\x00\x00\x00WAVEfmt ") is None

    def test_unknown(self) -> None:
        assert probe_image_format(b"hello world") is None

    def test_empty(self) -> None:
        assert probe_image_format(b"") is None


class TestDataUri:
    """Tests for parsing and building data URIs."""

    def test_is_data_uri(self) -> None:
        assert is_data_uri("data:image/png;base64,AAAA")
        assert not is_data_uri("/assets/gallery/1.webp")
        assert not is_data_uri("img:g1")
        assert not is_data_uri(None)

    def test_parse_base64(self) -> None:
        parsed = parse_data_uri("data:image/png;base64," + base64.b64encode(b"abc").decode())
        assert parsed.mime_type == "image/png"
        assert parsed.data == b"abc"

    def test_parse_percent_encoded(self) -> None:
        parsed = parse_data_uri("data:text/plain,hello%20there")
        assert parsed.mime_type == "text/plain"
        assert parsed.data == b"hello there"

    def test_parse_defaults_mime(self) -> None:
        assert parse_data_uri("data:,x").mime_type == "text/plain"

    def test_parse_rejects_non_data_uri(self) -> None:
        with pytest.raises(ValueError):
            parse_data_uri("https://example.com/a.png")

    def test_parse_rejects_missing_separator(self) -> None:
        with pytest.raises(ValueError):
            parse_data_uri("data:image/png;base64")

    def test_parse_rejects_bad_base64(self) -> None:
        with pytest.raises(ValueError):
            parse_data_uri("data:image/png;base64,!!!not-base64!!!")

    def test_build_then_parse(self) -> None:
        uri = build_data_uri(b"\x89PNG\r\n\x1a\nrest", "image/png")
        assert uri.startswith("data:image/png;base64,")
        assert parse_data_uri(uri).data == b"\x89PNG\r\n\x1a\nrest"


class TestFiles:
    """Tests for reading image files into data URIs."""

    def test_mime_from_header(self, tmp_path: Path, make_image_bytes) -> None:
        # Header wins over a misleading extension
        path = tmp_path / "photo.gif"
        path.write_bytes(make_image_bytes(fmt="PNG"))
        assert mime_for_path(path) == "image/png"

    def test_mime_from_extension(self, tmp_path: Path) -> None:
        assert mime_for_path(tmp_path / "missing.jpg") == "image/jpeg"

    def test_mime_unknown(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("not an image")
        assert mime_for_path(path) is None

    def test_file_to_data_uri(self, tmp_path: Path, make_image_bytes) -> None:
        content = make_image_bytes(fmt="JPEG")
        path = tmp_path / "photo.jpg"
        path.write_bytes(content)

        uri = file_to_data_uri(path)
        assert uri.startswith("data:image/jpeg;base64,")
        assert parse_data_uri(uri).data == content

    def test_file_to_data_uri_rejects_non_image(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("not an image")
        with pytest.raises(ValueError):
            file_to_data_uri(path)

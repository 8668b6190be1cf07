"""Tests for input resolution and name inference."""
from datetime import datetime

import pytest

from swarm_uploader.exceptions import (
    InvalidInputError,
    MissingNameError,
    SourceNotFoundError,
)
from swarm_uploader.services.resolver import (
    TIMESTAMP_NAME_FORMAT,
    InputResolver,
    infer_name,
    is_valid_url,
)


class TestIsValidUrl:
    @pytest.mark.parametrize(
        "value",
        [
            "https://example.com/a.bin",
            "http://example.com",
            "ftp://files.example.com/pub/data.csv",
            "HTTPS://EXAMPLE.COM/x",
        ],
    )
    def test_valid(self, value):
        assert is_valid_url(value) is True

    @pytest.mark.parametrize(
        "value",
        ["", "example.com/a.bin", "file:///etc/passwd", "https:// example.com", "./list.txt"],
    )
    def test_invalid(self, value):
        assert is_valid_url(value) is False


class TestInferName:
    def test_strips_extension(self):
        assert infer_name("https://example.com/path/report.pdf") == "report"

    def test_percent_decoded(self):
        assert infer_name("https://example.com/my%20file.tar.gz") == "my file"

    def test_ignores_query(self):
        assert infer_name("https://example.com/dl/photo.jpg?size=large") == "photo"

    def test_local_path(self, tmp_path):
        assert infer_name(str(tmp_path / "archive.zip")) == "archive"

    def test_idempotent(self):
        url = "https://example.com/path/report.pdf"
        assert infer_name(url) == infer_name(url)

    def test_timestamp_fallback(self):
        name = infer_name("https://example.com/")
        assert datetime.strptime(name, TIMESTAMP_NAME_FORMAT).year >= 2024
        assert "." not in name

    def test_no_fallback_raises(self):
        with pytest.raises(MissingNameError, match="--filename"):
            infer_name("https://example.com/", timestamp_fallback=False)


class TestInputResolver:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/a.bin",
            "http://example.com/data.txt",
            "ftp://example.com/pub/file",
        ],
    )
    def test_url_single_item(self, url):
        items = InputResolver().resolve(url, "name")

        assert len(items) == 1
        assert items[0].source_ref == url
        assert items[0].display_name == "name"
        assert items[0].index == 0

    def test_url_without_name_defers_inference(self):
        items = InputResolver().resolve("https://host/data.txt")

        assert items[0].display_name is None
        assert infer_name(items[0].source_ref) == "data"

    def test_blank_explicit_name_is_absent(self):
        items = InputResolver().resolve("https://host/data.bin", "   ")
        assert items[0].display_name is None

    def test_manifest_preserves_order_and_skips_blank_lines(self, tmp_path):
        manifest = tmp_path / "list.txt"
        manifest.write_text(
            "https://example.com/one.bin\n\n   \nhttps://example.com/two.bin\n"
            "https://example.com/three.bin\n\n",
            encoding="utf-8",
        )

        items = InputResolver().resolve(str(manifest))

        assert [i.source_ref for i in items] == [
            "https://example.com/one.bin",
            "https://example.com/two.bin",
            "https://example.com/three.bin",
        ]
        assert [i.index for i in items] == [0, 1, 2]

    def test_manifest_single_line(self, tmp_path):
        manifest = tmp_path / "one.txt"
        manifest.write_text("https://example.com/only.bin", encoding="utf-8")

        items = InputResolver().resolve(str(manifest))

        assert len(items) == 1

    def test_manifest_line_with_name(self, tmp_path):
        manifest = tmp_path / "list.txt"
        manifest.write_text("https://example.com/a.bin myname\n", encoding="utf-8")

        items = InputResolver().resolve(str(manifest))

        assert items[0].source_ref == "https://example.com/a.bin"
        assert items[0].display_name == "myname"

    def test_manifest_local_entries_relative_to_manifest(self, tmp_path):
        (tmp_path / "data").mkdir()
        manifest = tmp_path / "data" / "list.txt"
        manifest.write_text("photo.jpg holiday\nmissing.bin\n", encoding="utf-8")

        items = InputResolver().resolve(str(manifest))

        assert items[0].source_ref == str(tmp_path / "data" / "photo.jpg")
        assert items[0].display_name == "holiday"
        # Existence is checked when the item is fetched.
        assert items[1].source_ref == str(tmp_path / "data" / "missing.bin")

    def test_manifest_extension_case_insensitive(self, tmp_path):
        manifest = tmp_path / "LIST.TXT"
        manifest.write_text("https://example.com/a.bin\nhttps://example.com/b.bin\n", encoding="utf-8")

        assert len(InputResolver().resolve(str(manifest))) == 2

    def test_empty_manifest(self, tmp_path):
        manifest = tmp_path / "empty.txt"
        manifest.write_text("\n\n", encoding="utf-8")

        with pytest.raises(InvalidInputError, match="does not list any source"):
            InputResolver().resolve(str(manifest))

    def test_relative_manifest_uses_cwd(self, tmp_path):
        (tmp_path / "list.txt").write_text("https://example.com/a.bin\n", encoding="utf-8")

        items = InputResolver(cwd=tmp_path).resolve("list.txt")

        assert len(items) == 1

    def test_local_binary_file_is_single_item(self, tmp_path):
        video = tmp_path / "clip.mp4"
        video.write_bytes(b"\x00\x01")

        items = InputResolver(cwd=tmp_path).resolve("clip.mp4", "holiday")

        assert len(items) == 1
        assert items[0].source_ref == str(video)
        assert items[0].display_name == "holiday"

    def test_local_file_without_extension(self, tmp_path):
        blob = tmp_path / "blob"
        blob.write_bytes(b"abc")

        items = InputResolver().resolve(str(blob))

        assert items[0].source_ref == str(blob)

    def test_missing_local_file(self, tmp_path):
        with pytest.raises(SourceNotFoundError) as exc_info:
            InputResolver(cwd=tmp_path).resolve("nope.txt")

        assert isinstance(exc_info.value, FileNotFoundError)
        assert "nope.txt" in str(exc_info.value)

    def test_directory_rejected(self, tmp_path):
        with pytest.raises(InvalidInputError, match="not a regular file"):
            InputResolver().resolve(str(tmp_path))

    def test_blank_source(self):
        with pytest.raises(InvalidInputError):
            InputResolver().resolve("   ")

    def test_strict_resolver_requires_name(self):
        resolver = InputResolver(timestamp_fallback=False)

        with pytest.raises(MissingNameError):
            resolver.resolve("https://example.com/")

        items = resolver.resolve("https://example.com/", "given")
        assert items[0].display_name == "given"

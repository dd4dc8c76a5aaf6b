"""Tests for the multipart form data parser."""

import pytest

from before_after.utils.multipart_parser import (
    DEFAULT_FILE_MIMETYPE,
    UploadedFile,
    extract_boundary,
    is_multipart,
    parse_multipart_form,
)


def build_multipart(
    boundary: str,
    fields: list[tuple[str, str]] | None = None,
    files: list[tuple[str, str, str | None, bytes]] | None = None,
) -> bytes:
    """Encode text fields and (name, filename, content type, data) files."""
    parts: list[bytes] = []
    for name, value in fields or []:
        parts.append(
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n'
            f"\r\n"
            f"{value}\r\n".encode()
        )
    for name, filename, content_type, data in files or []:
        header = (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
        )
        if content_type:
            header += f"Content-Type: {content_type}\r\n"
        parts.append(header.encode() + b"\r\n" + data + b"\r\n")
    return b"".join(parts) + f"--{boundary}--\r\n".encode()


class TestExtractBoundary:
    """Tests for boundary extraction from the Content-Type header."""

    def test_simple_boundary(self) -> None:
        assert extract_boundary("multipart/form-data; boundary=XYZ") == "XYZ"

    def test_missing_boundary(self) -> None:
        assert extract_boundary("multipart/form-data") is None

    def test_empty_boundary(self) -> None:
        assert extract_boundary("multipart/form-data; boundary=") is None

    def test_trailing_parameters_are_kept(self) -> None:
        """Everything after boundary= belongs to the token."""
        assert (
            extract_boundary("multipart/form-data; boundary=abc; charset=utf-8")
            == "abc; charset=utf-8"
        )


class TestIsMultipart:
    """Tests for multipart content type detection."""

    def test_multipart_with_boundary(self) -> None:
        assert is_multipart("multipart/form-data; boundary=XYZ")

    def test_case_insensitive(self) -> None:
        assert is_multipart("Multipart/Form-Data; boundary=XYZ")

    def test_other_types(self) -> None:
        assert not is_multipart("application/json")
        assert not is_multipart("")
        assert not is_multipart(None)


class TestParseMultipartForm:
    """Tests for parse_multipart_form."""

    def test_text_field_and_file(self) -> None:
        """Test the basic title plus image upload."""
        body = build_multipart(
            "XYZ",
            fields=[("title", "Test Movie")],
            files=[("image", "test.jpg", "image/jpeg", b"test image data")],
        )

        result = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert result is not None
        fields, files = result
        assert fields == {"title": "Test Movie"}
        assert list(files) == ["image"]
        assert files["image"].as_dict() == {
            "fieldname": "image",
            "originalname": "test.jpg",
            "mimetype": "image/jpeg",
            "buffer": b"test image data",
            "size": 15,
        }

    def test_no_boundary_returns_none(self) -> None:
        body = build_multipart("XYZ", fields=[("title", "Test Movie")])
        assert parse_multipart_form(body, "multipart/form-data") is None

    def test_duplicate_field_keeps_last(self) -> None:
        body = build_multipart(
            "XYZ", fields=[("category", "old"), ("category", "new")]
        )

        fields, files = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert fields["category"] == "new"
        assert files == {}

    def test_duplicate_file_keeps_last(self) -> None:
        body = build_multipart(
            "XYZ",
            files=[
                ("image", "first.png", "image/png", b"first"),
                ("image", "second.png", "image/png", b"second"),
            ],
        )

        _, files = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert files["image"].originalname == "second.png"
        assert files["image"].buffer == b"second"

    def test_file_without_content_type(self) -> None:
        body = build_multipart("XYZ", files=[("image", "blob.bin", None, b"abc")])

        _, files = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert files["image"].mimetype == DEFAULT_FILE_MIMETYPE
        assert files["image"].mimetype == "application/octet-stream"

    def test_binary_content_preserved(self) -> None:
        """CRLFs, nulls and dash runs inside file data survive untouched."""
        boundary = "----WebKitFormBoundary7MA4YWxkTrZu0gW"
        data = (
            bytes(range(256))
            + b"\r\n\r\n--not-the-boundary\r\n"
            + b"\x00\x00\xff\xd8\xff\xe0"
            + b"\r\n"
        )

        body = build_multipart(
            boundary,
            fields=[("title", "Binary")],
            files=[("image", "photo.jpg", "image/jpeg", data)],
        )

        fields, files = parse_multipart_form(
            body, f"multipart/form-data; boundary={boundary}"
        )

        assert fields == {"title": "Binary"}
        assert files["image"].buffer == data
        assert files["image"].size == len(data)

    def test_only_one_trailing_crlf_stripped_from_files(self) -> None:
        body = build_multipart(
            "XYZ", files=[("image", "a.txt", "text/plain", b"abc\r\n")]
        )

        _, files = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert files["image"].buffer == b"abc\r\n"

    def test_counts_match_constructed_parts(self) -> None:
        text_fields = [("title", "Alien"), ("year", "1979"), ("month", "5")]
        file_fields = [
            ("image", "alien.png", "image/png", b"\x89PNG\r\n\x1a\n"),
            ("poster", "poster.gif", "image/gif", b"GIF89a"),
        ]
        body = build_multipart("b0undary", fields=text_fields, files=file_fields)

        fields, files = parse_multipart_form(
            body, "multipart/form-data; boundary=b0undary"
        )

        assert fields == dict(text_fields)
        assert len(files) == 2
        for name, filename, content_type, data in file_fields:
            assert files[name] == UploadedFile(name, filename, content_type or "", data)

    def test_parsing_is_repeatable(self) -> None:
        body = build_multipart(
            "XYZ",
            fields=[("title", "Heat")],
            files=[("image", "heat.webp", "image/webp", b"RIFF\x00\x00WEBP")],
        )
        content_type = "multipart/form-data; boundary=XYZ"

        assert parse_multipart_form(body, content_type) == parse_multipart_form(
            body, content_type
        )

    def test_text_values_are_trimmed(self) -> None:
        body = build_multipart("XYZ", fields=[("title", "  Padded Title \t")])

        fields, _ = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert fields["title"] == "Padded Title"

    def test_text_value_keeps_inner_line_breaks(self) -> None:
        body = build_multipart("XYZ", fields=[("notes", "line one\r\nline two")])

        fields, _ = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert fields["notes"] == "line one\r\nline two"

    def test_invalid_utf8_text_does_not_raise(self) -> None:
        body = (
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; name="title"\r\n'
            b"\r\n"
            b"caf\xe9\r\n"
            b"--XYZ--\r\n"
        )

        fields, _ = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert fields["title"] == "caf\ufffd"

    def test_malformed_parts_are_skipped(self) -> None:
        """Parts without a header terminator or disposition are ignored."""
        body = (
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; name="broken"\r\n'
            b"no blank line here\r\n"
            b"--XYZ\r\n"
            b'Content-Disposition: attachment; name="other"\r\n'
            b"\r\n"
            b"ignored\r\n"
            b"--XYZ\r\n"
            b'content-disposition: form-data; name="lowercase"\r\n'
            b"\r\n"
            b"ignored too\r\n"
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; name="title"\r\n'
            b"\r\n"
            b"Kept\r\n"
            b"--XYZ--\r\n"
        )

        fields, files = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert fields == {"title": "Kept"}
        assert files == {}

    def test_empty_body(self) -> None:
        assert parse_multipart_form(b"", "multipart/form-data; boundary=XYZ") == (
            {},
            {},
        )

    def test_body_without_markers(self) -> None:
        result = parse_multipart_form(
            b"just some bytes", "multipart/form-data; boundary=XYZ"
        )
        assert result == ({}, {})

    def test_text_and_file_with_same_name(self) -> None:
        """Text fields and files are tracked in separate maps."""
        body = build_multipart(
            "XYZ",
            fields=[("image", "caption")],
            files=[("image", "pic.png", "image/png", b"png")],
        )

        fields, files = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert fields == {"image": "caption"}
        assert files["image"].buffer == b"png"

    @pytest.mark.parametrize("filename", ["photo.jpg", "my photo (1).png"])
    def test_original_filename_preserved(self, filename: str) -> None:
        body = build_multipart("XYZ", files=[("image", filename, "image/png", b"x")])

        _, files = parse_multipart_form(body, "multipart/form-data; boundary=XYZ")

        assert files["image"].originalname == filename


class TestUploadedFile:
    """Tests for the UploadedFile container."""

    def test_size_tracks_buffer(self) -> None:
        upload = UploadedFile("image", "a.png", "image/png", b"12345")
        assert upload.size == 5

    def test_equality(self) -> None:
        a = UploadedFile("image", "a.png", "image/png", b"data")
        b = UploadedFile("image", "a.png", "image/png", b"data")
        c = UploadedFile("image", "a.png", "image/png", b"other")
        assert a == b
        assert a != c

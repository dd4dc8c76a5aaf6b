"""Multipart form data parser for admin image uploads."""

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

DISPOSITION_PATTERN = re.compile(
    r'Content-Disposition: form-data; name="([^"]+)"(?:; filename="([^"]+)")?'
)
CONTENT_TYPE_PATTERN = re.compile(r"Content-Type: ([^\r\n]+)")
TRAILING_CRLF_PATTERN = re.compile(r"\r\n\Z")

HEADER_TERMINATOR = b"\r\n\r\n"
CRLF = b"\r\n"
DEFAULT_FILE_MIMETYPE = "application/octet-stream"


class UploadedFile:
    """Binary-safe container for one file part of a multipart body."""

    def __init__(self, fieldname: str, originalname: str, mimetype: str, buffer: bytes):
        self.fieldname = fieldname
        self.originalname = originalname
        self.mimetype = mimetype
        self.buffer = buffer
        self.size = len(buffer)

    def as_dict(self) -> dict[str, Any]:
        """Return the file as a plain mapping."""
        return {
            "fieldname": self.fieldname,
            "originalname": self.originalname,
            "mimetype": self.mimetype,
            "buffer": self.buffer,
            "size": self.size,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UploadedFile):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return (
            f"UploadedFile(fieldname={self.fieldname}, originalname={self.originalname}, "
            f"mimetype={self.mimetype}, size={self.size})"
        )


def is_multipart(content_type: str | None) -> bool:
    """Check whether a Content-Type header announces multipart/form-data."""
    if not content_type:
        return False
    return content_type.strip().lower().startswith("multipart/form-data")


def extract_boundary(content_type: str) -> str | None:
    """Extract the boundary token from a Content-Type header value.

    Everything after ``boundary=`` is the token; no trimming or unquoting
    is applied since uploads carry a single parameter.

    Args:
        content_type: Content-Type header value

    Returns:
        Boundary token, or None when absent or empty
    """
    segments = content_type.split("boundary=")
    if len(segments) < 2 or not segments[1]:
        return None
    return segments[1]


def parse_multipart_form(
    body: bytes, content_type: str
) -> tuple[dict[str, str], dict[str, UploadedFile]] | None:
    """Parse multipart form data from a raw request body.

    The body is scanned for consecutive ``--<boundary>`` markers; the bytes
    between two markers form one part. Parts without a header terminator or
    without a matching Content-Disposition header are skipped. File content
    is only ever sliced, never decoded, so binary payloads survive intact.
    A repeated field name keeps the last part.

    Args:
        body: Raw request body
        content_type: Content-Type header value carrying the boundary

    Returns:
        Tuple of (fields, files) dictionaries, or None if no boundary was given
    """
    boundary = extract_boundary(content_type)
    if not boundary:
        logger.debug(f"No boundary found in content-type header: {content_type!r}")
        return None

    marker = b"--" + boundary.encode("utf-8")
    fields: dict[str, str] = {}
    files: dict[str, UploadedFile] = {}

    logger.debug(f"Parsing multipart form with boundary: {boundary}")
    logger.debug(f"Content length: {len(body)} bytes")

    position = body.find(marker)
    while position != -1:
        next_position = body.find(marker, position + len(marker))
        if next_position == -1:
            break

        part = body[position + len(marker) : next_position]
        position = next_position

        header_end = part.find(HEADER_TERMINATOR)
        if header_end == -1:
            logger.debug("Skipping part without header terminator")
            continue

        headers = part[:header_end].decode("utf-8", errors="replace")
        content = part[header_end + len(HEADER_TERMINATOR) :]

        disposition = DISPOSITION_PATTERN.search(headers)
        if not disposition:
            logger.debug(f"Skipping part with unrecognised headers: {headers!r}")
            continue

        name, filename = disposition.group(1), disposition.group(2)

        if filename:
            content_type_match = CONTENT_TYPE_PATTERN.search(headers)
            mimetype = (
                content_type_match.group(1)
                if content_type_match
                else DEFAULT_FILE_MIMETYPE
            )
            if content.endswith(CRLF):
                content = content[: -len(CRLF)]

            files[name] = UploadedFile(
                fieldname=name,
                originalname=filename,
                mimetype=mimetype,
                buffer=content,
            )
            logger.debug(f"Found file field: {name} = {filename} ({len(content)} bytes)")
        else:
            text = content.decode("utf-8", errors="replace")
            fields[name] = TRAILING_CRLF_PATTERN.sub("", text).strip()
            logger.debug(
                f"Found field '{name}' = '{fields[name][:50]}...'"
                if len(fields[name]) > 50
                else f"Found field '{name}' = '{fields[name]}'"
            )

    return fields, files

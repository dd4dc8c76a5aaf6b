"""Request validation middleware."""

import logging
import re

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

TRAVERSAL_PATTERNS = [
    r"\.\./",
    r"\.\.\\",  # Windows path traversal
    r"%2e%2e",
    r"\.\.%2f",
    r"%2e%2e%2f",
]


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Middleware for validating incoming requests."""

    # Room for the text fields and multipart framing around the image
    FORM_OVERHEAD_BYTES = 2 * 1024 * 1024
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024 + FORM_OVERHEAD_BYTES
    ALLOWED_CONTENT_TYPES = [
        "multipart/form-data",
        "application/json",
    ]
    CHECKED_HEADERS = ["x-api-key", "referer"]
    SKIP_PATHS = ["/health", "/metrics", "/docs", "/redoc", "/openapi.json"]

    def __init__(self, app: ASGIApp, max_image_size_mb: int | None = None):
        """Initialize request validation.

        Args:
            app: The wrapped ASGI application
            max_image_size_mb: Largest accepted image; the request size cap
                is derived from it
        """
        super().__init__(app)
        if max_image_size_mb is not None:
            self.max_content_length = (
                max_image_size_mb * 1024 * 1024 + self.FORM_OVERHEAD_BYTES
            )
        else:
            self.max_content_length = self.MAX_CONTENT_LENGTH

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Validate incoming requests before processing.

        Args:
            request: The incoming request
            call_next: The next middleware/handler in the chain

        Returns:
            Response from the next handler, or an error response
        """
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        client_host = request.client.host if request.client else "unknown"

        content_length = request.headers.get("content-length")
        if content_length:
            try:
                length = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400, content={"detail": "Invalid Content-Length header"}
                )
            if length > self.max_content_length:
                logger.warning(f"Request too large: {length} bytes from {client_host}")
                return JSONResponse(
                    status_code=413,
                    content={
                        "detail": f"Request too large. Maximum size: {self.max_content_length} bytes"
                    },
                )

        # Bodies are only accepted as JSON or multipart form data
        if request.method in ["POST", "PUT"]:
            content_type = request.headers.get("content-type", "").lower()
            base_content_type = content_type.split(";")[0].strip()

            if base_content_type not in self.ALLOWED_CONTENT_TYPES:
                logger.warning(
                    f"Invalid content type: {content_type} from {client_host}"
                )
                return JSONResponse(
                    status_code=415,
                    content={
                        "detail": f"Unsupported content type: {base_content_type}"
                    },
                )

        for header_name in self.CHECKED_HEADERS:
            header_value = request.headers.get(header_name)
            if header_value and contains_path_traversal(header_value):
                logger.warning(
                    f"Path traversal attempt in header {header_name} from {client_host}"
                )
                return JSONResponse(
                    status_code=400,
                    content={"detail": "Potential path traversal detected"},
                )

        if contains_path_traversal(request.url.path):
            logger.warning(
                f"Path traversal attempt in URL from {client_host}: {request.url.path}"
            )
            return JSONResponse(
                status_code=400, content={"detail": "Potential path traversal detected"}
            )

        return await call_next(request)


def contains_path_traversal(value: str) -> bool:
    """Check if value contains path traversal attempts.

    Args:
        value: String to check

    Returns:
        True if path traversal patterns found
    """
    value_lower = value.lower()
    return any(re.search(pattern, value_lower) for pattern in TRAVERSAL_PATTERNS)


def sanitize_filename(filename: str) -> str:
    """Sanitize an uploaded filename for logging and storage metadata.

    Args:
        filename: The filename to sanitize

    Returns:
        Sanitized filename
    """
    # Remove any path components
    filename = filename.split("/")[-1].split("\\")[-1]

    # Remove control characters and non-printable characters
    filename = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", filename)

    filename = re.sub(r'[<>:"|?*]', "_", filename)

    max_length = 255
    if len(filename) > max_length:
        # Preserve extension if possible
        parts = filename.rsplit(".", 1)
        if len(parts) == 2 and len(parts[1]) < 10:
            base = parts[0][: max_length - len(parts[1]) - 1]
            filename = f"{base}.{parts[1]}"
        else:
            filename = filename[:max_length]

    if not filename:
        filename = "unnamed_file"

    return filename


def sanitize_string(value: str, max_length: int = 255) -> str:
    """Sanitize a string value for safe storage.

    Args:
        value: The string to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    value = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", value)

    if len(value) > max_length:
        value = value[:max_length]

    return value.strip()

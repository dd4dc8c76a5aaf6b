"""Custom exceptions for before-after-api."""


class BeforeAfterAPIException(Exception):
    """Base exception for before-after-api."""

    pass


class InvalidImageTypeError(BeforeAfterAPIException):
    """Raised when an uploaded image has a MIME type outside the allow-list."""

    pass


class FileSizeError(BeforeAfterAPIException):
    """Raised when file size exceeds limits."""

    pass


class ImageProcessingError(BeforeAfterAPIException):
    """Raised when an image cannot be decoded or resized."""

    pass


class StorageError(BeforeAfterAPIException):
    """Raised when object storage operations fail."""

    pass


class InvalidAPIKeyError(BeforeAfterAPIException):
    """Raised when API key is invalid or unauthorized."""

    pass


class DatabaseError(BeforeAfterAPIException):
    """Raised when database operations fail."""

    pass


class ConfigurationError(BeforeAfterAPIException):
    """Raised when configuration is invalid."""

    pass

"""Utility modules for before-after-api."""

from .image_processor import process_image, validate_image_file
from .multipart_parser import UploadedFile, parse_multipart_form
from .object_storage import create_storage, upload_image_pair

__all__ = [
    "UploadedFile",
    "create_storage",
    "parse_multipart_form",
    "process_image",
    "upload_image_pair",
    "validate_image_file",
]

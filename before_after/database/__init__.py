"""Database module for before-after-api."""

from .connection import DatabaseManager
from .operations import DatabaseOperations

__all__ = ["DatabaseManager", "DatabaseOperations"]

"""API module for BeforeAfterAPI."""

from .admin import router as admin_router
from .app import create_app
from .cards import router as cards_router
from .loss_gifs import router as loss_gifs_router

__all__ = ["admin_router", "cards_router", "create_app", "loss_gifs_router"]
